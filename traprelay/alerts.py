"""Alerts built by grouping SNMP trap rows."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from traprelay.sanitize import (
    clean_alert_name,
    truncate_labels_prefix,
    truncate_labels_suffix,
)

log = logging.getLogger(__name__)

DROP_COLUMNS = frozenset({"mib", "oid", "source", "version", "sysUpTime.0", "host"})

_CRITICAL_WORDS = ("crit", "error", "major", "high")
_WARNING_WORDS = ("warn", "minor", "mid")
_INFO_WORDS = ("info", "normal", "debug", "low")
_SEVERITY_KEYS = ("severity",)


class Severity(Enum):
    """Severity of an alert."""

    INFO = 0
    WARNING = 1
    CRITICAL = 2

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, text: str) -> Severity:
        """Guess a severity from free text; raise ValueError if nothing matches."""
        lowered = text.lower()
        if any(word in lowered for word in _CRITICAL_WORDS):
            return cls.CRITICAL
        if any(word in lowered for word in _WARNING_WORDS):
            return cls.WARNING
        if any(word in lowered for word in _INFO_WORDS):
            return cls.INFO
        raise ValueError("unknown severity")


def _stable_hash(name: str, severity: Severity, community: str, labels: Mapping[str, str]) -> int:
    payload = json.dumps(
        [name, severity.value, community, sorted(labels.items())],
        ensure_ascii=False,
    ).encode()
    return int.from_bytes(hashlib.blake2b(payload, digest_size=8).digest(), "big")


def _as_utc(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"time column holds {type(value).__name__}, not a timestamp")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(eq=False)
class Alert:
    """A group of traps that share name, severity, community and labels.

    Equality and hashing ignore the trap times, so traps of the same kind
    collapse into one alert.
    """

    name: str
    severity: Severity
    community: str
    times: list[datetime]
    labels: dict[str, str]
    hash: int = field(init=False)

    def __post_init__(self) -> None:
        self.times = sorted(self.times)
        self.labels = dict(sorted(self.labels.items()))
        self.hash = _stable_hash(self.name, self.severity, self.community, self.labels)

    def _identity(self) -> tuple:
        return (self.name, self.severity, self.community, tuple(self.labels.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Alert):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Alert:
        """Build an alert from one trap row; raise ValueError if it is unusable."""
        name: str | None = None
        community: str | None = None
        time: datetime | None = None
        labels: dict[str, str] = {}

        for column, value in row.items():
            if column in DROP_COLUMNS:
                continue
            if column == "time":
                time = _as_utc(value)
            elif column == "name":
                name = value
            elif column == "community":
                community = value
            else:
                if column in labels or value is None:
                    # A null column belongs to a different kind of trap.
                    continue
                if not isinstance(value, str):
                    raise ValueError(f"column {column!r} does not hold text")
                if value:
                    labels[column] = value

        if name is None:
            raise ValueError("No name in database row found for alert")
        if community is None:
            raise ValueError("No community in database row found for alert")
        if time is None:
            raise ValueError("No time in database row found for alert")

        severity = extract_severity(labels) or Severity.CRITICAL
        return cls(name, severity, community, [time], labels)

    def earliest(self) -> datetime:
        """First trap time, or now if there is none."""
        return min(self.times, default=None) or datetime.now(timezone.utc)

    def latest(self) -> datetime:
        """Last trap time, or now if there is none."""
        return max(self.times, default=None) or datetime.now(timezone.utc)

    def pretty_name(self) -> str:
        return clean_alert_name(self.name)

    def pretty_labels(self) -> dict[str, str]:
        """Labels with the shared key prefix and suffix removed."""
        return truncate_labels_suffix(truncate_labels_prefix(self.labels))

    def intervals(self) -> Iterator[timedelta]:
        """Time between each pair of consecutive traps."""
        return (later - earlier for earlier, later in zip(self.times, self.times[1:]))

    def interval_min(self) -> timedelta | None:
        return min(self.intervals(), default=None)

    def interval_avg(self) -> timedelta | None:
        gaps = list(self.intervals())
        if not gaps:
            return None
        return sum(gaps, timedelta()) / len(gaps)

    def interval_max(self) -> timedelta | None:
        return max(self.intervals(), default=None)


def extract_severity(labels: dict[str, str]) -> Severity | None:
    """Take the first severity-like label out of ``labels`` and parse it.

    The label is removed only when its value is a recognised severity.
    """
    found = next(
        (key for key in sorted(labels) if any(word in key.lower() for word in _SEVERITY_KEYS)),
        None,
    )
    if found is None:
        return None
    value = labels[found]
    try:
        severity = Severity.parse(value)
    except ValueError:
        log.warning(
            "Failed to match up severity. Found %r, but %r was not a valid severity.",
            found,
            value,
        )
        return None
    del labels[found]
    return severity


def generate_alerts(raw_alerts: Iterable[Alert]) -> set[Alert]:
    """Merge alerts of the same kind, collecting their times in order."""
    merged: dict[Alert, Alert] = {}
    for alert in raw_alerts:
        existing = merged.get(alert)
        if existing is None:
            merged[alert] = alert
        else:
            existing.times = sorted([*existing.times, *alert.times])
    return set(merged)


def map_traps_to_alerts(rows: Iterable[Mapping[str, Any]]) -> set[Alert]:
    """Turn trap rows into merged alerts, skipping rows that are unusable."""

    def valid() -> Iterator[Alert]:
        for row in rows:
            try:
                yield Alert.from_row(row)
            except ValueError as exc:
                log.warning("Invalid alert database row: %s", exc)

    return generate_alerts(valid())