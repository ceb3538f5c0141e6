"""Access to the table of received SNMP traps, with a short-lived alert cache."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from sqlalchemy import MetaData, Table, create_engine, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from traprelay.alerts import Alert, map_traps_to_alerts

log = logging.getLogger(__name__)

TRAP_TABLE = "snmp_trap"
CACHE_TTL = 5.0


def build_delete_query(alert: Alert) -> TextClause:
    """Build a DELETE statement that removes every trap belonging to ``alert``.

    Label keys are used as column names; keys holding a double quote are
    skipped because they cannot be quoted safely.
    """
    parts = [f"DELETE FROM {TRAP_TABLE} WHERE name = :name AND community = :community"]
    params: dict[str, Any] = {"name": alert.name, "community": alert.community}
    for index, (key, value) in enumerate(alert.labels.items()):
        if '"' in key:
            log.error(
                "Label %r contains unquoted string in alert %s. Since the label key is "
                "used as the database field, this shouldn't happen. Skipping.",
                key,
                alert.name,
            )
            continue
        param = f"label_{index}"
        column = key.replace(":", r"\:")
        parts.append(f' AND "{column}" = :{param}')
        params[param] = value
        log.debug("%s = %s", key, value)
    return text("".join(parts)).bindparams(**params)


class TrapDb:
    """Reads traps from the database and keeps the alerts built from them."""

    def __init__(
        self,
        connection: str | Engine,
        *,
        cache_ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = create_engine(connection) if isinstance(connection, str) else connection
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._alerts: set[Alert] = set()
        self._last_update: float | None = None
        self._table: Table | None = None

    def _is_stale(self) -> bool:
        with self._lock:
            return self._last_update is None or self._clock() - self._last_update > self.cache_ttl

    def cached_alerts(self) -> frozenset[Alert]:
        """Return the current alerts, refreshing them when the cache is stale."""
        if self._is_stale():
            self.update_cache()
        with self._lock:
            return frozenset(self._alerts)

    def update_cache(self) -> None:
        """Reload alerts from the database; on failure the old ones are kept."""
        try:
            alerts = self.fetch_alerts()
        except SQLAlchemyError as exc:
            log.error("Error fetching alerts: %s", exc)
            return
        with self._lock:
            self._alerts = alerts
            self._last_update = self._clock()

    def _trap_table(self, conn: Connection) -> Table:
        if self._table is None:
            self._table = Table(TRAP_TABLE, MetaData(), autoload_with=conn)
        return self._table

    def fetch_raw_traps(self) -> list[dict[str, Any]]:
        """Return every trap row as a mapping of column name to value."""
        with self.engine.connect() as conn:
            result = conn.execute(select(self._trap_table(conn)))
            return [dict(row) for row in result.mappings()]

    def fetch_alerts(self) -> set[Alert]:
        """Read all traps and merge them into alerts."""
        return map_traps_to_alerts(self.fetch_raw_traps())

    def clear_alerts(self, alert_hash: int) -> bool:
        """Delete the traps of the alert with ``alert_hash``.

        Returns False when no cached alert has that hash.
        """
        alert = next((a for a in self.cached_alerts() if a.hash == alert_hash), None)
        if alert is None:
            log.warning("Alert lookup by hash supplied no results. Already deleted?")
            return False
        self.delete_alert(alert)
        self.update_cache()
        return True

    def delete_alert(self, alert: Alert) -> None:
        """Delete every trap row that belongs to ``alert``."""
        with self.engine.begin() as conn:
            conn.execute(build_delete_query(alert))