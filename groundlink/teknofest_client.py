"""Client for the competition server: login, telemetry upload, other teams' positions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from groundlink.http_client import HttpClient, HttpClientError, LoginResult
from groundlink.vehicle import Signal

_log = logging.getLogger(__name__)


@dataclass
class AuthProperty:
    username: str = ""
    password: str = ""


@dataclass
class QRCodeProperty:
    latitude: float = 0.0
    longitude: float = 0.0


@dataclass
class ServerProperties:
    """Server address, credentials and the session obtained at login."""

    auth: AuthProperty = field(default_factory=AuthProperty)
    qr_code: QRCodeProperty = field(default_factory=QRCodeProperty)
    url: str = ""
    team_id: str = ""
    session_id: str = ""
    plane_ids: list[int] = field(default_factory=list)


class TeknofestClient:
    """Talks to the competition server through an :class:`HttpClient`."""

    def __init__(self, http_client: HttpClient | None = None) -> None:
        self._http = http_client if http_client is not None else HttpClient()
        self.server_properties = ServerProperties()
        self.login_succeeded = Signal()
        self.login_failed = Signal()
        self.telemetry_received = Signal()

    def login(self) -> LoginResult:
        """Log in with the stored credentials and keep the session."""
        props = self.server_properties
        try:
            result = self._http.send_login_request(
                props.url + "/giris", props.auth.username, props.auth.password
            )
        except HttpClientError as exc:
            _log.warning("Teknofest login failed: %s", exc)
            self.login_failed.emit(str(exc))
            raise
        props.team_id = str(result.team_id)
        props.session_id = result.session_id
        self.login_succeeded.emit(result.team_id)
        return result

    def transmit_telemetry(self, vehicle_data: dict[str, Any]) -> list[Any]:
        """Upload one report; returns and emits the positions the server answers with."""
        body = self._http.send_telemetry_request(
            self.server_properties.url + "/telemetri_gonder",
            self.server_properties.session_id,
            vehicle_data,
        )
        return self.handle_telemetry_response(body)

    def handle_telemetry_response(self, response_data: bytes | str) -> list[Any]:
        """Extract ``konumBilgileri`` from a server reply; anything malformed gives []."""
        try:
            document = json.loads(response_data)
        except (ValueError, TypeError):
            document = None
        positions = document.get("konumBilgileri") if isinstance(document, dict) else None
        if not isinstance(positions, list):
            positions = []
        self.telemetry_received.emit(positions)
        return positions