[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "traprelay"
version = "0.1.0"
description = "Groups SNMP traps stored in a database into alerts, relays them to Alertmanager and serves a small web view"
requires-python = ">=3.11"
keywords = ["snmp", "trap", "alertmanager", "prometheus", "monitoring", "alerts"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "sqlalchemy>=2.0",
    "flask>=2.3",
    "requests>=2.31",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "responses>=0.24",
]

[project.scripts]
traprelay = "traprelay.main:main"

[tool.hatch.build.targets.wheel]
packages = ["traprelay"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
ignore_missing_imports = true
