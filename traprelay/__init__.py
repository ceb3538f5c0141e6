"""Group SNMP traps stored in a database into alerts, relay them to Alertmanager and list them on a web page."""

__version__ = "0.1.0"