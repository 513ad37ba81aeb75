"""HTTP access to the competition server: login and telemetry upload."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import requests
from requests.cookies import get_cookie_header

_log = logging.getLogger(__name__)

_SESSION_COOKIE = "JSESSIONID"
_INTEGER = re.compile(r"[+-]?\d+")


class HttpClientError(Exception):
    """A request could not be made or did not give the expected answer."""


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login."""

    team_id: int
    session_id: str


def _json_safe(value: Any) -> Any:
    """Replace non-finite floats with None, as JSON has no NaN or infinity."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def _parse_team_id(body: bytes) -> int:
    text = body.decode("ascii", errors="replace").strip()
    return int(text) if _INTEGER.fullmatch(text) else 0


def _check_url(url: str) -> None:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise HttpClientError("Invalid URL")


class HttpClient:
    """Sends JSON requests and keeps the server's cookies between them."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session if session is not None else requests.Session()

    @property
    def session(self) -> requests.Session:
        return self._session

    def _post(self, url: str, payload: Any, headers: dict[str, str]) -> requests.Response:
        body = json.dumps(_json_safe(payload), allow_nan=False).encode("utf-8")
        try:
            response = self._session.post(
                url, data=body, headers={"Content-Type": "application/json", **headers}
            )
        except requests.RequestException as exc:
            raise HttpClientError(str(exc)) from exc
        if not response.ok:
            raise HttpClientError(f"{response.status_code} {response.reason}")
        return response

    def _session_cookie(self, url: str) -> str:
        prepared = requests.Request("GET", url).prepare()
        header = get_cookie_header(self._session.cookies, prepared) or ""
        for part in header.split(";"):
            name, _, value = part.strip().partition("=")
            if name == _SESSION_COOKIE:
                return value
        return ""

    def send_login_request(self, url: str, username: str, password: str) -> LoginResult:
        """Log in; returns the team number from the body and the session cookie."""
        _check_url(url)
        response = self._post(url, {"kadi": username, "sifre": password}, {})
        session_id = self._session_cookie(response.url or url)
        team_id = _parse_team_id(response.content)
        _log.debug("Login answered team %s", team_id)
        if team_id == -1 or not session_id:
            raise HttpClientError(
                "Login successful, but failed to retrieve team ID or session cookie."
            )
        return LoginResult(team_id=team_id, session_id=session_id)

    def send_telemetry_request(
        self, url: str, session_id: str, telemetry_data: dict[str, Any]
    ) -> bytes:
        """Post one telemetry report with the session id as cookie; returns the response body."""
        _check_url(url)
        response = self._post(url, telemetry_data, {"Cookie": session_id})
        return response.content