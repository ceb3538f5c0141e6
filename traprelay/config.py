"""Command-line options and the settings file."""

from __future__ import annotations

import argparse
import ipaddress
import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = "config"
DEFAULT_WEB_LISTEN = ("127.0.0.1", 7788)
DEFAULT_ANNOUNCE_SEC = 60
DEFAULT_COMMUNITY_LABEL = "community"

SocketAddress = tuple[str, int]


class ConfigError(ValueError):
    """The settings could not be loaded."""


def _parse_socket_addr(text: str) -> SocketAddress:
    if text.startswith("["):
        host, sep, port = text[1:].partition("]:")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        ipaddress.IPv6Address(host)
    else:
        host, sep, port = text.rpartition(":")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        ipaddress.IPv4Address(host)
    if not (port.isascii() and port.isdigit()) or int(port) > 65535:
        raise ValueError(f"invalid port in socket address: {text!r}")
    return host, int(port)


@dataclass(frozen=True)
class CLISettings:
    """Options given on the command line."""

    config: Path | None = None
    listen: SocketAddress | None = None

    @property
    def config_path(self) -> str:
        return DEFAULT_CONFIG_PATH if self.config is None else str(self.config)


def parse_cli(argv: list[str] | None = None) -> CLISettings:
    """Parse command-line options."""
    parser = argparse.ArgumentParser(prog="traprelay")
    parser.add_argument(
        "-c", "--config", type=Path, help="Path of the configuration file [config]"
    )
    parser.add_argument(
        "-l",
        "--listen",
        type=_parse_socket_addr,
        help="Socket Address of the web frontend [127.0.0.1:7788]",
    )
    args = parser.parse_args(argv)
    return CLISettings(config=args.config, listen=args.listen)


@dataclass(frozen=True)
class Settings:
    """Service settings."""

    web_url: str
    db_connection_url: str
    alertmanager_url: str
    web_listen: SocketAddress = DEFAULT_WEB_LISTEN
    alertmanager_announce_sec: int = DEFAULT_ANNOUNCE_SEC
    alertmanager_community_label: str = DEFAULT_COMMUNITY_LABEL

    def announce_interval(self) -> timedelta:
        """How often alerts are announced to Alertmanager."""
        return timedelta(seconds=self.alertmanager_announce_sec)


_FIELDS = (
    "web_url",
    "web_listen",
    "db_connection_url",
    "alertmanager_url",
    "alertmanager_announce_sec",
    "alertmanager_community_label",
)
_REQUIRED = ("web_url", "db_connection_url", "alertmanager_url")
_READERS = {".toml": "toml", ".json": "json"}


def _find_file(path: str | os.PathLike[str]) -> Path:
    candidate = Path(path)
    if candidate.suffix in _READERS and candidate.is_file():
        return candidate
    for ext in _READERS:
        with_ext = candidate.with_name(candidate.name + ext)
        if with_ext.is_file():
            return with_ext
    raise ConfigError(f"configuration file {str(path)!r} not found")


def _read_file(path: Path) -> dict[str, Any]:
    try:
        if _READERS[path.suffix] == "toml":
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        else:
            with path.open(encoding="utf-8") as fh:
                data = json.load(fh)
    except (OSError, tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} does not hold a table of settings")
    return data


def _as_text(key: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"setting {key!r} must be text")
    return str(value)


def _as_u32(key: str, value: Any) -> int:
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2**32:
        raise ConfigError(f"setting {key!r} must be a non-negative 32-bit integer")
    return value


def _as_listen(key: str, value: Any) -> SocketAddress:
    try:
        return _parse_socket_addr(_as_text(key, value))
    except ValueError as exc:
        raise ConfigError(f"setting {key!r}: {exc}") from exc


def load_settings(
    path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH,
    environ: Mapping[str, str] | None = None,
    listen: SocketAddress | None = None,
) -> Settings:
    """Load settings from a TOML or JSON file, overridden by environment variables.

    Environment variable names are matched case-insensitively to setting
    names. ``listen``, when given, replaces the configured web address.
    """
    data = _read_file(_find_file(path))
    env = os.environ if environ is None else environ
    for key, value in env.items():
        if key.lower() in _FIELDS:
            data[key.lower()] = value

    missing = [key for key in _REQUIRED if key not in data]
    if missing:
        raise ConfigError(f"missing settings: {', '.join(missing)}")

    values: dict[str, Any] = {key: _as_text(key, data[key]) for key in _REQUIRED}
    if "web_listen" in data:
        values["web_listen"] = _as_listen("web_listen", data["web_listen"])
    if "alertmanager_announce_sec" in data:
        values["alertmanager_announce_sec"] = _as_u32(
            "alertmanager_announce_sec", data["alertmanager_announce_sec"]
        )
    if "alertmanager_community_label" in data:
        values["alertmanager_community_label"] = _as_text(
            "alertmanager_community_label", data["alertmanager_community_label"]
        )
    if listen is not None:
        values["web_listen"] = listen
    return Settings(**values)