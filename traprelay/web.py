"""Web front end listing the current alerts."""

from __future__ import annotations

import html
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import Flask, Response, request
from sqlalchemy.exc import SQLAlchemyError

from traprelay.alerts import Alert
from traprelay.trap_db import TrapDb

log = logging.getLogger(__name__)

_UNITS = (
    ("d", timedelta(days=1)),
    ("h", timedelta(hours=1)),
    ("m", timedelta(minutes=1)),
    ("s", timedelta(seconds=1)),
    ("ms", timedelta(milliseconds=1)),
    ("µs", timedelta(microseconds=1)),
)


def _format_duration(duration: timedelta) -> str:
    sign = "-" if duration < timedelta() else ""
    duration = abs(duration)
    if not duration:
        return "0.000s"
    for name, unit in _UNITS:
        value = duration / unit
        if value >= 1:
            return f"{sign}{value:.3f}{name}"
    return f"{sign}{duration / _UNITS[-1][1]:.3f}µs"


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    offset = moment.utcoffset() or timedelta()
    sign = "-" if offset < timedelta() else "+"
    seconds = int(abs(offset).total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    fraction = f"{moment.microsecond:06d}".rstrip("0") or "0"
    return (
        f"{moment.date().isoformat()} {moment.hour}:{moment.minute:02}:{moment.second:02}"
        f".{fraction} {sign}{hours:02}:{minutes:02}:{secs:02}"
    )


@dataclass(frozen=True)
class AlertView:
    """An alert prepared for display."""

    hash: int
    severity: str
    name: str
    times: list[str]
    time_min: str
    time_avg: str
    time_max: str
    labels: dict[str, str]
    community: str

    @classmethod
    def from_alert(cls, alert: Alert) -> AlertView:
        zero = timedelta()
        return cls(
            hash=alert.hash,
            severity=str(alert.severity),
            name=alert.pretty_name(),
            times=[_format_time(t) for t in alert.times],
            time_min=_format_duration(alert.interval_min() or zero),
            time_avg=_format_duration(alert.interval_avg() or zero),
            time_max=_format_duration(alert.interval_max() or zero),
            labels=alert.pretty_labels(),
            community=alert.community,
        )


_PAGE_HEAD = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>SNMP trap alerts</title>
<style>
body { font-family: sans-serif; margin: 1em; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #ccc; padding: 4px 8px; vertical-align: top; text-align: left; }
tr.severity-critical td.severity { background: #f8b4b4; }
tr.severity-warning td.severity { background: #fbe3a1; }
tr.severity-info td.severity { background: #b9d8f8; }
ul { margin: 0; padding-left: 1.2em; }
</style>
</head>
<body>
<h1>SNMP trap alerts</h1>
"""

_PAGE_TAIL = "</body>\n</html>\n"


def _render_row(view: AlertView) -> str:
    esc = html.escape
    labels = "".join(
        f"<li><b>{esc(key)}</b>: {esc(value)}</li>" for key, value in view.labels.items()
    )
    times = "".join(f"<li>{esc(t)}</li>" for t in view.times)
    return (
        f'<tr class="severity-{esc(view.severity)}">'
        f'<td class="severity">{esc(view.severity)}</td>'
        f"<td>{esc(view.name)}</td>"
        f"<td>{esc(view.community)}</td>"
        f"<td><ul>{labels}</ul></td>"
        f"<td><details><summary>{len(view.times)}</summary><ul>{times}</ul></details></td>"
        f"<td>{esc(view.time_min)} / {esc(view.time_avg)} / {esc(view.time_max)}</td>"
        '<td><form method="post" action="/api/clear">'
        f'<input type="hidden" name="hash" value="{view.hash}">'
        '<button type="submit">Clear</button></form></td>'
        "</tr>\n"
    )


def render_alerts(alerts: Iterable[Alert]) -> str:
    """Render an HTML page listing ``alerts``, most recent first."""
    views = [
        AlertView.from_alert(alert)
        for alert in sorted(alerts, key=lambda a: a.latest(), reverse=True)
    ]
    if not views:
        return _PAGE_HEAD + "<p>No alerts.</p>\n" + _PAGE_TAIL
    header = (
        "<table>\n<tr><th>Severity</th><th>Name</th><th>Community</th><th>Labels</th>"
        "<th>Traps</th><th>Interval min / avg / max</th><th></th></tr>\n"
    )
    rows = "".join(_render_row(view) for view in views)
    return _PAGE_HEAD + header + rows + "</table>\n" + _PAGE_TAIL


def _parse_hash(value: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"invalid alert hash: {value!r}")
    number = int(value)
    if number >= 2**64:
        raise ValueError(f"alert hash out of range: {value!r}")
    return number


def create_app(db: TrapDb) -> Flask:
    """Create the web application serving the alert list and clear action."""
    app = Flask(__name__)

    @app.get("/")
    def alerts_view() -> str:
        return render_alerts(db.cached_alerts())

    @app.post("/api/clear")
    def clear_alert() -> Response:
        try:
            alert_hash = _parse_hash(request.form.get("hash", ""))
        except ValueError as exc:
            return Response(str(exc), status=400)
        try:
            db.clear_alerts(alert_hash)
        except SQLAlchemyError as exc:
            log.error("Failed to clear alerts: %s", exc)
            return Response("Failed to clear alerts", status=500)
        return Response(status=302, headers={"Location": "/"})

    return app