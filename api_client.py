"""
HTTP client for the Distracto API.

Every request carries the stored bearer token. A 401 clears the stored
credentials and hands the login path to `on_unauthorized` before raising.
"""

import json
import logging
import os
from typing import Any, Callable, Optional

import requests

from client_storage import AUTH_TOKEN, CACHED_USER, MemoryStorage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = os.getenv("DISTRACTO_API_URL", "http://localhost:8000/api")
LOGIN_PATH = "/login"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload


class ApiClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, storage=None,
                 on_unauthorized: Optional[Callable[[str], None]] = None,
                 session=None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.storage = storage if storage is not None else MemoryStorage()
        self.on_unauthorized = on_unauthorized
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

        self.auth = AuthAPI(self)
        self.users = UserAPI(self)
        self.screen_time = ScreenTimeAPI(self)
        self.website_blocker = WebsiteBlockerAPI(self)
        self.timetable = TimetableAPI(self)
        self.social = SocialAPI(self)
        self.ai = AIAPI(self)

    def request(self, method: str, path: str, **kwargs) -> Any:
        headers = {"Content-Type": "application/json"}
        token = self.storage.get_item(AUTH_TOKEN)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        resp = self.session.request(method, self.base_url + path, headers=headers, timeout=self.timeout, **kwargs)

        if resp.status_code == 401:
            self.storage.remove_item(AUTH_TOKEN)
            self.storage.remove_item(CACHED_USER)
            if self.on_unauthorized:
                self.on_unauthorized(LOGIN_PATH)
        if resp.status_code >= 400:
            payload = _body(resp)
            message = (payload.get("detail") or payload.get("message")) if isinstance(payload, dict) else None
            logger.debug("%s %s failed with %s", method, path, resp.status_code)
            raise ApiError(resp.status_code, str(message or "Request failed"), payload)
        return _body(resp)

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)


def _body(resp) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class _Resource:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthAPI(_Resource):
    def _remember(self, data: dict) -> dict:
        self.client.storage.set_item(AUTH_TOKEN, data["token"])
        self.client.storage.set_item(CACHED_USER, json.dumps(data["user"]))
        return data

    def login(self, email: str, password: str) -> dict:
        return self._remember(self.client.post("/auth/login", json={"email": email, "password": password}))

    def register(self, email: str, password: str, display_name: str) -> dict:
        body = {"email": email, "password": password, "displayName": display_name}
        return self._remember(self.client.post("/auth/register", json=body))

    def logout(self) -> dict:
        try:
            return self.client.post("/auth/logout")
        finally:
            self.client.storage.remove_item(AUTH_TOKEN)
            self.client.storage.remove_item(CACHED_USER)


class UserAPI(_Resource):
    def get_profile(self) -> dict:
        return self.client.get("/users/profile")

    def update_profile(self, data: dict) -> dict:
        return self.client.put("/users/profile", json=data)

    def search_users(self, query: str, type: str = "all") -> list:
        return self.client.get("/users/search", params={"q": query, "type": type})

    def follow_user(self, user_id: str) -> dict:
        return self.client.post(f"/users/follow/{user_id}")

    def unfollow_user(self, user_id: str) -> dict:
        return self.client.delete(f"/users/follow/{user_id}")


class ScreenTimeAPI(_Resource):
    def get_screen_time(self, date: Optional[str] = None) -> dict:
        return self.client.get(f"/screen-time/{date}" if date else "/screen-time")

    def update_screen_time(self, data: dict, date: Optional[str] = None) -> dict:
        return self.client.put(f"/screen-time/{date}" if date else "/screen-time", json=data)

    def get_weekly_data(self, start_date: str) -> list:
        return self.client.get(f"/screen-time/weekly/{start_date}")


class WebsiteBlockerAPI(_Resource):
    def get_blocked_sites(self) -> list:
        return self.client.get("/website-blocker")

    def add_blocked_site(self, data: dict) -> dict:
        return self.client.post("/website-blocker", json=data)

    def update_blocked_site(self, site_id: str, data: dict) -> dict:
        return self.client.put(f"/website-blocker/{site_id}", json=data)

    def delete_blocked_site(self, site_id: str) -> dict:
        return self.client.delete(f"/website-blocker/{site_id}")


class TimetableAPI(_Resource):
    def get_timetables(self, date: Optional[str] = None, limit: int = 10) -> list:
        params = {"limit": limit}
        if date:
            params["date"] = date
        return self.client.get("/timetable", params=params)

    def create_timetable(self, data: dict) -> dict:
        return self.client.post("/timetable", json=data)

    def update_timetable(self, timetable_id: str, data: dict) -> dict:
        return self.client.put(f"/timetable/{timetable_id}", json=data)

    def delete_timetable(self, timetable_id: str) -> dict:
        return self.client.delete(f"/timetable/{timetable_id}")


class SocialAPI(_Resource):
    def get_chats(self) -> list:
        return self.client.get("/social/chats")

    def get_chat(self, chat_id: str) -> dict:
        return self.client.get(f"/social/chats/{chat_id}")

    def create_chat(self, participant_ids: list, is_group_chat: bool = False, group_name: Optional[str] = None) -> dict:
        body = {"participantIds": participant_ids, "isGroupChat": is_group_chat, "groupName": group_name}
        return self.client.post("/social/chats", json=body)

    def send_message(self, chat_id: str, content: str) -> dict:
        return self.client.post(f"/social/chats/{chat_id}/messages", json={"content": content})

    def mark_read(self, chat_id: str) -> dict:
        return self.client.post(f"/social/chats/{chat_id}/read")

    def get_followers(self) -> list:
        return self.client.get("/social/followers")

    def get_following(self) -> list:
        return self.client.get("/social/following")


class AIAPI(_Resource):
    def chat(self, message: str, model: str = "gemini-1.5-flash") -> dict:
        return self.client.post("/ai/chat", json={"message": message, "model": model})

    def generate_timetable(self, prompt: str, model: str = "gemini-1.5-flash") -> dict:
        return self.client.post("/ai/timetable", json={"prompt": prompt, "model": model})
