import json
import random
from datetime import datetime, timedelta, timezone

import pytest

import extension_bridge as eb
from client_storage import CACHED_SCREEN_TIME, EXTENSION_INSTALLED, EXTENSION_NAME, LAST_SYNC_TIME, MemoryStorage

NOW = datetime(2024, 3, 4, 15, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def fake_extension(bus, payload, installed=True):
    """Answer check and data requests on the bus like the browser extension does."""
    requests = []

    def on_check(event):
        if installed:
            bus.dispatch(eb.CHECK_RESPONSE_EVENT, {"status": "installed"})

    def on_data(event):
        requests.append(event.detail)
        bus.dispatch(eb.DATA_RESPONSE_EVENT, {"data": payload})

    bus.add_listener(eb.CHECK_EVENT, on_check)
    bus.add_listener(eb.DATA_REQUEST_EVENT, on_data)
    return requests


@pytest.fixture
def bridge():
    return eb.ExtensionBridge(storage=MemoryStorage(), detect_timeout=0.01, data_timeout=0.01,
                              clock=FakeClock(), rng=random.Random(7))


@pytest.mark.parametrize("domain,category", [
    ("github.com", "Productivity"),
    ("mail.google.com", "Communication"),
    ("www.youtube.com", "Entertainment"),
    ("reddit.com", "Social Media"),
    ("example.org", "Other"),
])
def test_categorize_domain(domain, category):
    assert eb.categorize_domain(domain) == category


def test_parse_duration():
    assert eb.parse_duration("2h 3m") == 123
    assert eb.parse_duration("45s") == 0.75
    assert eb.parse_duration("nothing") == 0


def test_transform_distracto_sites():
    data = eb.transform_extension_data({"distracto": {"sites": [
        {"url": "github.com", "timeSpent": 3600},
        {"url": "youtube.com", "timeSpent": 1800},
        {"url": "example.org", "timeSpent": 600},
        {"url": "idle.com", "timeSpent": 0},
    ]}}, now=NOW)
    assert data["totalToday"] == 100
    assert data["productiveToday"] == 60
    assert data["unproductiveToday"] == 30
    assert [s["url"] for s in data["topSites"]] == ["github.com", "youtube.com", "example.org"]
    assert data["weeklyData"] == []
    assert data["currentDay"] == "Mon"
    assert data["source"] == "extension"


def test_transform_distracto_summary():
    data = eb.transform_extension_data({"distracto": {"summary": {
        "productiveTime": 1200, "distractingTime": 600, "totalTime": 1800,
    }}}, now=NOW)
    assert (data["totalToday"], data["productiveToday"], data["unproductiveToday"]) == (30, 20, 10)
    assert data["topSites"] == []


def test_transform_domains_list():
    data = eb.transform_extension_data({"domains": [
        {"domain": "slack.com", "time": "1h 30m"},
        {"domain": "reddit.com", "seconds": 900},
        {"name": "twitter.com", "time": 300},
    ]}, now=NOW)
    assert data["totalToday"] == 110
    assert data["productiveToday"] == 90
    assert data["unproductiveToday"] == 20


def test_transform_scanned_objects():
    data = eb.transform_extension_data({
        "a": {"domain": "netflix.com", "time": 1200},
        "b": {"url": "notion.so", "minutes": 15},
        "junk": [1, 2, 3],
    }, now=NOW)
    assert data["totalToday"] == 35
    assert data["topSites"][0]["url"] == "netflix.com"


def test_transform_empty_object_is_all_zero():
    data = eb.transform_extension_data({}, now=NOW)
    assert data["totalToday"] == 0
    assert data["topSites"] == []
    assert data["weeklyData"] == []


@pytest.mark.parametrize("payload", [None, "text", 42, [1, 2]])
def test_transform_rejects_non_objects(payload):
    assert eb.transform_extension_data(payload) is None


def test_transform_tolerates_odd_entries():
    data = eb.transform_extension_data({"distracto": {"sites": ["x", {"url": None}, {"url": "a.com", "timeSpent": "x"}]}},
                                       now=NOW)
    assert data["totalToday"] == 0


def test_synthetic_data_is_labelled():
    data = eb.synthetic_screen_time(now=datetime(2024, 3, 4, 10), rng=random.Random(1))
    assert data["source"] == "synthetic"
    assert data["totalToday"] == 150
    assert data["productiveToday"] + data["unproductiveToday"] == 150
    assert len(data["weeklyData"]) == 7


def test_export_csv():
    text = eb.export_csv({"topSites": [{"url": "github.com", "minutes": 60, "category": "Productivity"}]}, "2024-03-04")
    assert text.splitlines() == ["date,site,time,category", "2024-03-04,github.com,60,Productivity"]


def test_install_target():
    assert eb.install_target("Mozilla/5.0 Chrome/120")[0] == "Chrome"
    assert eb.install_target("Mozilla/5.0 Firefox/121")[1] == "Web Activity Time Tracker"
    assert eb.install_target("Mozilla/5.0 Chrome/120 Edge/120")[0] == "your browser"


def test_event_bus_isolates_listener_errors():
    bus = eb.EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.add_listener("x", broken)
    bus.add_listener("x", lambda e: seen.append(e.detail))
    bus.dispatch("x", 1)
    assert seen == [1]


def test_check_installed_via_event(bridge):
    fake_extension(bridge.bus, {})
    assert bridge.check_installed() == {"installed": True, "name": "Web Activity Time Tracker"}


def test_check_installed_via_globals():
    bridge = eb.ExtensionBridge(host_globals={"distractoExtension": True}, detect_timeout=0.01)
    assert bridge.check_installed()["name"] == "Distracto"


def test_check_installed_via_stored_flags(bridge):
    bridge.storage.set_item(EXTENSION_INSTALLED, "true")
    bridge.storage.set_item(EXTENSION_NAME, "BlockSite")
    assert bridge.check_installed() == {"installed": True, "name": "BlockSite"}


def test_check_not_installed(bridge):
    assert bridge.check_installed() == {"installed": False, "name": None}


def test_install_state_survives_restart(bridge):
    fake_extension(bridge.bus, {})
    bridge.check_installed()
    again = eb.ExtensionBridge(storage=bridge.storage, detect_timeout=0.01)
    assert again.installed is True


def test_install_extension_opens_store(bridge):
    opened = []
    url = bridge.install_extension("Mozilla/5.0 Firefox/121", opener=opened.append)
    assert opened == [url] == [eb.EXTENSION_URLS["firefox_web_time_tracker"]]
    assert bridge.storage.get_item(EXTENSION_NAME) == "Web Activity Time Tracker"
    assert bridge.installed


def test_fetch_is_throttled(bridge):
    requests = fake_extension(bridge.bus, {"domains": [{"domain": "github.com", "seconds": 600}]})
    assert bridge.fetch_extension_data()["totalToday"] == 10
    assert bridge.fetch_extension_data() is None
    bridge.clock.now += eb.MIN_REQUEST_GAP
    assert bridge.fetch_extension_data() is not None
    assert len(requests) == 2
    assert requests[0]["type"] == "get-today-data"


def test_fetch_without_extension_times_out(bridge):
    assert bridge.fetch_extension_data() is None


def test_fetch_with_null_payload(bridge):
    fake_extension(bridge.bus, None)
    assert bridge.fetch_extension_data() is None


def test_fetch_announces_update(bridge):
    fake_extension(bridge.bus, {"domains": [{"domain": "github.com", "seconds": 600}]})
    updates = []
    bridge.bus.add_listener(eb.DATA_UPDATED_EVENT, lambda e: updates.append(e.detail["data"]))
    bridge.fetch_extension_data()
    assert updates[0]["source"] == "extension"


def test_screen_time_needs_installed_extension(bridge):
    assert bridge.get_screen_time_data() is None


def test_screen_time_prefers_extension_then_cache(bridge):
    fake_extension(bridge.bus, {"domains": [{"domain": "github.com", "seconds": 600}]})
    bridge.check_installed()
    fresh = bridge.get_screen_time_data()
    assert fresh["source"] == "extension"

    # throttled, so the stored copy is served
    cached = bridge.get_screen_time_data()
    assert cached["source"] == "cached"
    assert cached["totalToday"] == fresh["totalToday"]


def test_screen_time_falls_back_to_synthetic(bridge):
    bridge.install_extension("Chrome", opener=lambda url: None)
    data = bridge.get_screen_time_data()
    assert data["source"] == "synthetic"
    assert json.loads(bridge.storage.get_item(CACHED_SCREEN_TIME))["source"] == "synthetic"


def test_synchronize_stores_only_real_data(bridge):
    assert bridge.synchronize() is False
    assert bridge.storage.get_item(LAST_SYNC_TIME) is None

    fake_extension(bridge.bus, {"domains": [{"domain": "github.com", "seconds": 600}]})
    assert bridge.synchronize() is True
    assert bridge.storage.get_item(LAST_SYNC_TIME)
    assert json.loads(bridge.storage.get_item(CACHED_SCREEN_TIME))["totalToday"] == 10


def test_synchronize_rejects_empty_payload(bridge):
    fake_extension(bridge.bus, {})
    assert bridge.synchronize() is False
    assert bridge.storage.get_item(CACHED_SCREEN_TIME) is None


def test_needs_sync(bridge):
    assert bridge.needs_sync(NOW) is True
    bridge.storage.set_item(LAST_SYNC_TIME, NOW.isoformat())
    assert bridge.needs_sync(NOW + timedelta(minutes=4)) is False
    assert bridge.needs_sync(NOW + timedelta(minutes=5)) is True


def test_fetch_with_empty_payload_gives_zeros(bridge):
    fake_extension(bridge.bus, {})
    data = bridge.fetch_extension_data()
    assert data["totalToday"] == 0
    assert data["topSites"] == []
    assert data["source"] == "extension"
