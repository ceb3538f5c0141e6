"""Periodic announcement of alerts to an Alertmanager instance."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from traprelay.alerts import Alert
from traprelay.config import Settings

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


class AlertSource(Protocol):
    def cached_alerts(self) -> frozenset[Alert]: ...


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    formatted = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        formatted += "." + f"{moment.microsecond:06d}".rstrip("0")
    return formatted + "Z"


def alert_to_alertmanager(
    alert: Alert, settings: Settings, now: datetime | None = None
) -> dict[str, Any]:
    """Describe ``alert`` in the shape the Alertmanager v2 API accepts.

    The alert is marked to end three announce intervals after ``now``, so it
    resolves on its own once it stops being announced.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    labels = alert.pretty_labels()
    labels["alertname"] = alert.pretty_name()
    labels["severity"] = str(alert.severity)
    labels[settings.alertmanager_community_label] = alert.community
    return {
        "startsAt": _rfc3339(alert.earliest()),
        "endsAt": _rfc3339(now + settings.announce_interval() * 3),
        "labels": dict(sorted(labels.items())),
        "generatorURL": settings.web_url,
    }


class AlertmanagerRelay:
    """Sends the current alerts to Alertmanager at a fixed interval."""

    def __init__(
        self,
        url: str,
        db: AlertSource,
        settings: Settings,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.db = db
        self.settings = settings
        self.session = session or requests.Session()
        self._clock = clock
        self._last_try: float | None = None

    def relay_alerts(self) -> None:
        """Post all current alerts; raise requests errors on failure."""
        now = datetime.now(timezone.utc)
        payload = [
            alert_to_alertmanager(alert, self.settings, now)
            for alert in self.db.cached_alerts()
        ]
        response = self.session.post(
            f"{self.url}/api/v2/alerts", json=payload, timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Relay alerts every announce interval until ``stop_event`` is set."""
        stop = stop_event if stop_event is not None else threading.Event()
        interval = self.settings.announce_interval().total_seconds()
        while True:
            wait = 0.0
            if self._last_try is not None:
                wait = max(self._last_try + interval - self._clock(), 0.0)
            if stop.wait(wait):
                return
            try:
                self.relay_alerts()
            except requests.RequestException as exc:
                log.warning("Couldn't relay alerts to alertmanager: %s", exc)
            else:
                log.debug("SNMP Trap alerts successfully relayed to Alertmanager")
            self._last_try = self._clock()