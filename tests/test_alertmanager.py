import json
import threading
from datetime import datetime, timedelta, timezone

import pytest
import requests
import responses

from traprelay.alertmanager import AlertmanagerRelay, alert_to_alertmanager
from traprelay.alerts import Alert, Severity
from traprelay.config import Settings

AM_URL = "http://alertmanager.example.com"
POST_URL = AM_URL + "/api/v2/alerts"
START = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def make_settings(**overrides):
    values = {
        "web_url": "http://traprelay.example.com",
        "db_connection_url": "sqlite://",
        "alertmanager_url": AM_URL,
    }
    values.update(overrides)
    return Settings(**values)


def make_alert(times=(START,), labels=None):
    return Alert(
        "linkDownTrap",
        Severity.WARNING,
        "public",
        list(times),
        labels if labels is not None else {"ifIndex": "1"},
    )


class FakeDb:
    def __init__(self, alerts):
        self.alerts = frozenset(alerts)

    def cached_alerts(self):
        return self.alerts


def body_of(call):
    return json.loads(call.request.body)


def test_alert_to_alertmanager_labels_and_times():
    settings = make_settings()
    now = START + timedelta(hours=1)
    data = alert_to_alertmanager(make_alert(), settings, now)
    assert data["startsAt"] == "2024-01-02T03:04:05Z"
    assert data["endsAt"] == "2024-01-02T04:07:05Z"
    assert data["generatorURL"] == settings.web_url
    assert data["labels"]["alertname"] == "linkDown"
    assert data["labels"]["severity"] == "warning"
    assert data["labels"]["community"] == "public"


def test_alert_to_alertmanager_uses_earliest_time():
    later = START + timedelta(minutes=10)
    data = alert_to_alertmanager(make_alert(times=(later, START)), make_settings(), START)
    assert data["startsAt"] == "2024-01-02T03:04:05Z"


def test_alert_to_alertmanager_custom_community_label():
    settings = make_settings(alertmanager_community_label="snmp_community")
    data = alert_to_alertmanager(make_alert(), settings, START)
    assert data["labels"]["snmp_community"] == "public"
    assert "community" not in data["labels"]


def test_fractional_seconds_drop_trailing_zeros():
    moment = START.replace(microsecond=500000)
    data = alert_to_alertmanager(make_alert(times=(moment,)), make_settings(), START)
    assert data["startsAt"] == "2024-01-02T03:04:05.5Z"


def test_labels_are_sorted_and_pretty():
    alert = make_alert(labels={"ifIndex.1": "1", "ifDescr.1": "eth0"})
    data = alert_to_alertmanager(alert, make_settings(), START)
    keys = list(data["labels"])
    assert keys == sorted(keys)
    assert data["labels"]["Index"] == "1"
    assert data["labels"]["Descr"] == "eth0"


def test_relay_alerts_posts_payload():
    settings = make_settings()
    alert = make_alert()
    expected = alert_to_alertmanager(alert, settings, START)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, POST_URL, status=200)
        AlertmanagerRelay(AM_URL, FakeDb([alert]), settings).relay_alerts()
        assert len(rsps.calls) == 1
        body = body_of(rsps.calls[0])
    assert len(body) == 1
    assert body[0]["labels"] == expected["labels"]
    assert body[0]["startsAt"] == expected["startsAt"] == "2024-01-02T03:04:05Z"
    assert body[0]["generatorURL"] == expected["generatorURL"]


def test_relay_alerts_raises_on_error_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, POST_URL, status=500)
        relay = AlertmanagerRelay(AM_URL, FakeDb([]), make_settings())
        with pytest.raises(requests.HTTPError):
            relay.relay_alerts()


def test_run_relays_until_stopped():
    stop = threading.Event()
    settings = make_settings()
    alert = make_alert()
    expected = alert_to_alertmanager(alert, settings, START)

    def reply(request):
        stop.set()
        return 200, {}, ""

    with responses.RequestsMock() as rsps:
        rsps.add_callback(responses.POST, POST_URL, callback=reply)
        AlertmanagerRelay(AM_URL, FakeDb([alert]), settings).run(stop)
        assert len(rsps.calls) == 1
        body = body_of(rsps.calls[0])
    assert [item["labels"] for item in body] == [expected["labels"]]
    assert body[0]["startsAt"] == expected["startsAt"]


def test_run_keeps_going_after_failures():
    stop = threading.Event()
    statuses = [500, 200]
    settings = make_settings(alertmanager_announce_sec=0)
    alert = make_alert()
    expected = alert_to_alertmanager(alert, settings, START)

    def reply(request):
        status = statuses.pop(0)
        if not statuses:
            stop.set()
        return status, {}, ""

    with responses.RequestsMock() as rsps:
        rsps.add_callback(responses.POST, POST_URL, callback=reply)
        AlertmanagerRelay(AM_URL, FakeDb([alert]), settings).run(stop)
        bodies = [body_of(call) for call in rsps.calls]
    assert statuses == []
    assert len(bodies) == 2
    assert all([item["labels"] for item in body] == [expected["labels"]] for body in bodies)


def test_run_with_stop_already_set_sends_nothing():
    stop = threading.Event()
    stop.set()
    settings = make_settings()
    alert = make_alert()
    expected = alert_to_alertmanager(alert, settings, START)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, POST_URL, status=200)
        relay = AlertmanagerRelay(AM_URL, FakeDb([alert]), settings)
        relay.run(stop)
        assert len(rsps.calls) == 0
        relay.relay_alerts()
        assert len(rsps.calls) == 1
        body = body_of(rsps.calls[0])
    assert [item["labels"] for item in body] == [expected["labels"]]