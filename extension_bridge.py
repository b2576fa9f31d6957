"""
Bridge to a companion browser extension that tracks per-site usage.

The bridge and the extension talk over an `EventBus` of named events with a
`detail` payload:

    web-activity-tracker-check     -> web-activity-tracker-response {status}
    web-activity-data-request      -> web-activity-data-response   {data}

Presence is inferred from any matching response arriving before a timeout,
or from a host-global flag the extension sets. Usage payloads come in a few
shapes and are normalized by `transform_extension_data`.

Every dataset handed out carries a `source`:
- "extension": fresh data from the extension
- "cached": the last extension data kept in storage
- "synthetic": generated sample data, not real usage
"""

import csv
import io
import json
import logging
import random
import re
import threading
import time
import webbrowser
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from client_storage import (
    CACHED_SCREEN_TIME,
    EXTENSION_INSTALLED,
    EXTENSION_NAME,
    EXTENSION_STATE,
    LAST_SYNC_TIME,
    MemoryStorage,
)

logger = logging.getLogger(__name__)

CHECK_EVENT = "web-activity-tracker-check"
CHECK_RESPONSE_EVENT = "web-activity-tracker-response"
DATA_REQUEST_EVENT = "web-activity-data-request"
DATA_RESPONSE_EVENT = "web-activity-data-response"
STATUS_CHANGED_EVENT = "extension-status-changed"
DATA_UPDATED_EVENT = "screen-time-data-updated"

DETECT_TIMEOUT = 1.0
DATA_TIMEOUT = 3.0
MIN_REQUEST_GAP = 2.0
SYNC_INTERVAL = timedelta(minutes=5)

SOURCE_EXTENSION = "extension"
SOURCE_CACHED = "cached"
SOURCE_SYNTHETIC = "synthetic"

EXTENSION_URLS = {
    "chrome_distracto": "https://chromewebstore.google.com/detail/nlkcecddkejakmaipagbcemeohfomedn",
    "chrome_web_time_tracker": "https://chrome.google.com/webstore/detail/web-activity-time-tracker/hhfnghjdeddcfegfekjeihfmbjenlomm",
    "firefox_web_time_tracker": "https://addons.mozilla.org/en-US/firefox/addon/web-activity-time-tracker/",
}

CATEGORY_KEYWORDS = [
    ("Productivity", ["github", "gitlab", "bitbucket", "stackoverflow", "docs.", "jira", "notion", "trello",
                      "asana", "clickup", "figma", "miro", "dev", "code"]),
    ("Communication", ["gmail", "outlook", "mail", "slack", "teams", "zoom", "meet", "chat"]),
    ("Entertainment", ["youtube", "netflix", "hulu", "disney", "prime", "video", "tv", "movie", "game", "play"]),
    ("Social Media", ["facebook", "twitter", "instagram", "tiktok", "reddit", "linkedin", "pinterest",
                      "snapchat", "whatsapp", "social"]),
]
PRODUCTIVE_CATEGORIES = ("Productivity", "Communication")
UNPRODUCTIVE_CATEGORIES = ("Social Media", "Entertainment")

SAMPLE_WEEK = [
    {"day": "Mon", "total": 320, "productive": 210, "unproductive": 110},
    {"day": "Tue", "total": 380, "productive": 250, "unproductive": 130},
    {"day": "Wed", "total": 390, "productive": 230, "unproductive": 160},
    {"day": "Thu", "total": 410, "productive": 280, "unproductive": 130},
    {"day": "Fri", "total": 350, "productive": 220, "unproductive": 130},
    {"day": "Sat", "total": 290, "productive": 170, "unproductive": 120},
    {"day": "Sun", "total": 250, "productive": 140, "unproductive": 110},
]


class Event:
    def __init__(self, name: str, detail: Any = None):
        self.name = name
        self.detail = detail


class EventBus:
    """Synchronous publish/subscribe of named events, thread-safe."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Callable[[Event], None]]] = defaultdict(list)

    def add_listener(self, name: str, listener: Callable[[Event], None]) -> None:
        with self._lock:
            self._listeners[name].append(listener)

    def remove_listener(self, name: str, listener: Callable[[Event], None]) -> None:
        with self._lock:
            if listener in self._listeners[name]:
                self._listeners[name].remove(listener)

    def dispatch(self, name: str, detail: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners[name])
        event = Event(name, detail)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %s failed", name)


# ---------- Payload normalization ----------
def categorize_domain(domain: str) -> str:
    lowered = (domain or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return "Other"


def parse_duration(text: str) -> float:
    """Minutes in a string like "2h 3m 10s"."""
    minutes = 0.0
    hours = re.search(r"(\d+)\s*h", text)
    mins = re.search(r"(\d+)\s*m", text)
    secs = re.search(r"(\d+)\s*s", text)
    if hours:
        minutes += int(hours.group(1)) * 60
    if mins:
        minutes += int(mins.group(1))
    if secs:
        minutes += int(secs.group(1)) / 60
    return minutes


def _number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _site(name: str, minutes: float) -> dict:
    return {"url": name, "minutes": round(minutes, 2), "category": categorize_domain(name)}


def _distracto_sites(payload: dict) -> List[dict]:
    sites = []
    for site in payload.get("sites") or []:
        if not isinstance(site, dict):
            continue
        name = site.get("url") or site.get("domain") or site.get("name")
        if _number(site.get("timeSpent")):
            minutes = site["timeSpent"] / 60
        elif _number(site.get("minutes")):
            minutes = site["minutes"]
        else:
            minutes = 0
        if name and minutes > 0:
            sites.append(_site(str(name), minutes))
    return sites


def _domain_sites(domains: list) -> List[dict]:
    sites = []
    for entry in domains:
        if not isinstance(entry, dict):
            continue
        name = entry.get("domain") or entry.get("name")
        if not name:
            continue
        if isinstance(entry.get("time"), str):
            minutes = parse_duration(entry["time"])
        elif _number(entry.get("seconds")):
            minutes = entry["seconds"] / 60
        elif _number(entry.get("time")):
            minutes = entry["time"] / 60
        else:
            minutes = 0
        sites.append(_site(str(name), minutes))
    return sites


def _scanned_sites(payload: dict) -> List[dict]:
    sites = []
    for entry in payload.values():
        if not isinstance(entry, dict):
            continue
        name = entry.get("domain") or entry.get("url") or entry.get("site") or entry.get("name")
        if not name:
            continue
        if _number(entry.get("time")):
            minutes = entry["time"] / 60
        elif _number(entry.get("seconds")):
            minutes = entry["seconds"] / 60
        elif _number(entry.get("minutes")):
            minutes = entry["minutes"]
        else:
            minutes = 0
        if minutes > 0:
            sites.append(_site(str(name), minutes))
    return sites


def summarize(sites: List[dict]) -> dict:
    ranked = sorted(sites, key=lambda s: s["minutes"], reverse=True)
    return {
        "totalToday": sum(s["minutes"] for s in ranked),
        "productiveToday": sum(s["minutes"] for s in ranked if s["category"] in PRODUCTIVE_CATEGORIES),
        "unproductiveToday": sum(s["minutes"] for s in ranked if s["category"] in UNPRODUCTIVE_CATEGORIES),
        "topSites": ranked,
    }


def transform_extension_data(data: Any, now: Optional[datetime] = None) -> Optional[dict]:
    """
    Normalize an extension payload into
    {totalToday, productiveToday, unproductiveToday, topSites, weeklyData,
    currentDay, lastUpdated, source}. Returns None for anything that is not
    an object; never raises.
    """
    if not isinstance(data, dict):
        return None
    now = now or datetime.now(timezone.utc)
    try:
        result = {
            "totalToday": 0,
            "productiveToday": 0,
            "unproductiveToday": 0,
            "topSites": [],
            "weeklyData": [],
            "currentDay": now.strftime("%a"),
            "lastUpdated": now.isoformat(),
            "source": SOURCE_EXTENSION,
        }
        if data.get("distracto"):
            payload = data["distracto"] if isinstance(data["distracto"], dict) else {}
            sites = _distracto_sites(payload)
            if sites:
                result.update(summarize(sites))
            elif isinstance(payload.get("summary"), dict):
                summary = payload["summary"]
                for src, dst in (("productiveTime", "productiveToday"),
                                 ("distractingTime", "unproductiveToday"),
                                 ("totalTime", "totalToday")):
                    if _number(summary.get(src)) and summary[src]:
                        result[dst] = summary[src] / 60
        elif isinstance(data.get("domains"), list):
            result.update(summarize(_domain_sites(data["domains"])))
        else:
            sites = _scanned_sites(data)
            if sites:
                result.update(summarize(sites))
            else:
                logger.debug("No domain data found in extension payload")
        return result
    except Exception:
        logger.exception("Could not transform extension payload")
        return None


def synthetic_screen_time(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> dict:
    """Plausible sample data scaled by the hour of day. Never real usage."""
    now = now or datetime.now()
    rng = rng or random.Random()
    base = min(now.hour * 15, 240)
    productive = round(base * (0.6 + rng.random() * 0.2))
    unproductive = base - productive
    return {
        "totalToday": base,
        "productiveToday": productive,
        "unproductiveToday": unproductive,
        "topSites": [
            {"url": "work.com", "minutes": round(productive * 0.4), "category": "Productivity"},
            {"url": "gmail.com", "minutes": round(productive * 0.3), "category": "Communication"},
            {"url": "docs.google.com", "minutes": round(productive * 0.2), "category": "Productivity"},
            {"url": "youtube.com", "minutes": round(unproductive * 0.5), "category": "Entertainment"},
            {"url": "reddit.com", "minutes": round(unproductive * 0.3), "category": "Social Media"},
            {"url": "news.com", "minutes": round(unproductive * 0.2), "category": "News"},
        ],
        "weeklyData": [dict(day) for day in SAMPLE_WEEK],
        "currentDay": now.strftime("%a"),
        "lastUpdated": now.isoformat(),
        "source": SOURCE_SYNTHETIC,
    }


def export_csv(data: dict, day: Optional[str] = None) -> str:
    day = day or datetime.now().date().isoformat()
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(["date", "site", "time", "category"])
    for site in data.get("topSites", []):
        writer.writerow([day, site.get("url"), site.get("minutes"), site.get("category")])
    return out.getvalue()


def install_target(user_agent: str) -> tuple:
    """(browser, extension name, store URL) to offer for a user agent."""
    if "Chrome" in user_agent and "Edge" not in user_agent:
        return "Chrome", "Distracto", EXTENSION_URLS["chrome_distracto"]
    if "Firefox" in user_agent:
        return "Firefox", "Web Activity Time Tracker", EXTENSION_URLS["firefox_web_time_tracker"]
    return "your browser", "Distracto", EXTENSION_URLS["chrome_distracto"]


# ---------- Bridge ----------
class ExtensionBridge:
    def __init__(self, bus: Optional[EventBus] = None, storage=None, host_globals: Optional[dict] = None,
                 detect_timeout: float = DETECT_TIMEOUT, data_timeout: float = DATA_TIMEOUT,
                 clock: Callable[[], float] = time.monotonic, rng: Optional[random.Random] = None):
        self.bus = bus or EventBus()
        self.storage = storage if storage is not None else MemoryStorage()
        self.host_globals = host_globals if host_globals is not None else {}
        self.detect_timeout = detect_timeout
        self.data_timeout = data_timeout
        self.clock = clock
        self.rng = rng or random.Random()
        self.installed = False
        self.extension_name: Optional[str] = None
        self._last_request: Optional[float] = None
        self._load_state()

    def _load_state(self) -> None:
        raw = self.storage.get_item(EXTENSION_STATE)
        if not raw:
            return
        try:
            state = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable extension state")
            return
        self.installed = bool(state.get("isInstalled"))
        self.extension_name = state.get("extensionName")

    def _save_state(self) -> None:
        state = {"isInstalled": self.installed, "extensionName": self.extension_name}
        self.storage.set_item(EXTENSION_STATE, json.dumps(state))

    def _mark_installed(self, name: Optional[str]) -> None:
        self.installed = True
        self.extension_name = name
        self._save_state()
        self.bus.dispatch(STATUS_CHANGED_EVENT, {"installed": True, "name": name})

    def _wait_for(self, response_event: str, request_event: str, detail: dict,
                  timeout: float, accept: Callable[[Any], bool]) -> Any:
        """Dispatch a request and wait for the first accepted response detail."""
        received = threading.Event()
        box = {}

        def handler(event: Event):
            if not received.is_set() and accept(event.detail):
                box["detail"] = event.detail
                received.set()

        self.bus.add_listener(response_event, handler)
        try:
            self.bus.dispatch(request_event, detail)
            received.wait(timeout)
        finally:
            self.bus.remove_listener(response_event, handler)
        return box.get("detail")

    def check_installed(self) -> dict:
        """Detect the extension and return {"installed", "name"}."""
        if self.host_globals.get("distractoExtension"):
            self._mark_installed("Distracto")
        else:
            detail = self._wait_for(
                CHECK_RESPONSE_EVENT, CHECK_EVENT, {"type": "check-installed"}, self.detect_timeout,
                lambda d: isinstance(d, dict) and d.get("status") == "installed",
            )
            if detail is not None:
                self._mark_installed("Web Activity Time Tracker")
            elif self.host_globals.get("distractoExtension"):
                self._mark_installed("Distracto")
            elif self.host_globals.get("blockSiteExtension") or self.host_globals.get("blockSiteDetected"):
                self._mark_installed("BlockSite")
            elif self.storage.get_item(EXTENSION_INSTALLED) == "true":
                self._mark_installed(self.storage.get_item(EXTENSION_NAME))
        return {"installed": self.installed, "name": self.extension_name}

    def install_extension(self, user_agent: str, opener: Callable[[str], Any] = webbrowser.open) -> str:
        """Open the store page for the user's browser and remember the choice."""
        browser, name, url = install_target(user_agent)
        opener(url)
        logger.info("%s store opened for the %s extension", browser, name)
        self.storage.set_item(EXTENSION_INSTALLED, "true")
        self.storage.set_item(EXTENSION_NAME, name)
        self._mark_installed(name)
        return url

    def fetch_extension_data(self) -> Optional[dict]:
        """Ask the extension for today's usage. Resolves to None on any failure."""
        now = self.clock()
        if self._last_request is not None and now - self._last_request < MIN_REQUEST_GAP:
            logger.debug("Skipping extension request, last one was too recent")
            return None
        self._last_request = now
        try:
            detail = self._wait_for(
                DATA_RESPONSE_EVENT, DATA_REQUEST_EVENT,
                {"type": "get-today-data", "timestamp": int(time.time() * 1000)},
                self.data_timeout, lambda d: True,
            )
        except Exception:
            logger.exception("Extension data request failed")
            return None
        if not isinstance(detail, dict) or detail.get("data") is None:
            logger.debug("No usable extension response")
            return None
        data = transform_extension_data(detail["data"])
        if data is not None:
            self.bus.dispatch(DATA_UPDATED_EVENT, {"data": data})
        return data

    def cached_data(self) -> Optional[dict]:
        raw = self.storage.get_item(CACHED_SCREEN_TIME)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        if data.get("source", SOURCE_SYNTHETIC) == SOURCE_EXTENSION:
            data["source"] = SOURCE_CACHED
        data.setdefault("source", SOURCE_SYNTHETIC)
        return data

    def get_screen_time_data(self) -> Optional[dict]:
        """
        Today's usage: fresh extension data, else the cached copy, else a
        synthetic sample. None when no extension is installed.
        """
        if not self.installed:
            return None
        data = self.fetch_extension_data()
        if data and data["topSites"]:
            self.storage.set_item(CACHED_SCREEN_TIME, json.dumps(data))
            return data
        cached = self.cached_data()
        if cached:
            return cached
        data = synthetic_screen_time(rng=self.rng)
        self.storage.set_item(CACHED_SCREEN_TIME, json.dumps(data))
        return data

    def synchronize(self) -> bool:
        """Pull fresh extension data into the cache. Only real data counts."""
        if not self.installed and not self.check_installed()["installed"]:
            logger.info("Extension not detected")
            return False
        data = self.fetch_extension_data()
        if not data or not data["topSites"]:
            logger.info("Sync failed: no data received from extension")
            return False
        self.storage.set_item(CACHED_SCREEN_TIME, json.dumps(data))
        self.storage.set_item(LAST_SYNC_TIME, datetime.now(timezone.utc).isoformat())
        return True

    def needs_sync(self, now: Optional[datetime] = None) -> bool:
        last = self.storage.get_item(LAST_SYNC_TIME)
        if not last:
            return True
        try:
            last_time = datetime.fromisoformat(last)
        except ValueError:
            return True
        return (now or datetime.now(timezone.utc)) - last_time >= SYNC_INTERVAL
