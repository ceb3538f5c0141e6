"""Service entry point: web front end plus the Alertmanager relay."""

from __future__ import annotations

import logging
import os
import threading

from dotenv import load_dotenv
from sqlalchemy.exc import ArgumentError

from traprelay.alertmanager import AlertmanagerRelay
from traprelay.config import ConfigError, load_settings, parse_cli
from traprelay.trap_db import TrapDb
from traprelay.web import create_app

log = logging.getLogger(__name__)

LOG_LEVEL_VARIABLE = "TRAPRELAY_LOG"
_RELAY_JOIN_TIMEOUT = 5.0


def _configure_logging() -> None:
    name = os.environ.get(LOG_LEVEL_VARIABLE, "ERROR").upper()
    level = logging.getLevelNamesMapping().get(name, logging.ERROR)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    """Run the service; return the exit status."""
    load_dotenv()
    _configure_logging()
    cli = parse_cli(argv)
    try:
        settings = load_settings(cli.config_path, listen=cli.listen)
    except ConfigError as exc:
        log.error("%s", exc)
        return 1
    try:
        db = TrapDb(settings.db_connection_url)
    except ArgumentError as exc:
        log.error("Invalid database connection URL: %s", exc)
        return 1

    stop = threading.Event()
    relay = AlertmanagerRelay(settings.alertmanager_url, db, settings)
    relay_thread = threading.Thread(
        target=relay.run, args=(stop,), name="alertmanager-relay", daemon=True
    )
    relay_thread.start()

    host, port = settings.web_listen
    try:
        create_app(db).run(host=host, port=port)
    finally:
        stop.set()
        relay_thread.join(timeout=_RELAY_JOIN_TIMEOUT)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())