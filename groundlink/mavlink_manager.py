"""UDP MAVLink link: listens for vehicles and sends them commands."""

from __future__ import annotations

import logging
import math
import socket
import struct
from dataclasses import dataclass

from groundlink.mavlink_codec import (
    MSG_ID_ATTITUDE,
    MSG_ID_GLOBAL_POSITION_INT,
    MSG_ID_HEARTBEAT,
    MSG_ID_SYS_STATUS,
    MSG_ID_VFR_HUD,
    MavlinkParser,
    pack_command_long,
)
from groundlink.vehicle import GeoCoordinate, Signal

_log = logging.getLogger(__name__)

_GCS_SYSTEM_ID = 255
_GCS_COMPONENT_ID = 190
_AUTOPILOT_COMPONENT_ID = 1
_MAV_TYPE_GCS = 6
_SAFETY_ARMED = 128
_CMD_COMPONENT_ARM_DISARM = 400
_CMD_NAV_TAKEOFF = 22
_CMD_NAV_RETURN_TO_LAUNCH = 20
_FORCE_MAGIC = 21196.0

_FLIGHT_MODES = {0: "Unknown", 1: "Manual", 2: "Stabilize", 3: "Guided", 4: "Auto"}


@dataclass(frozen=True)
class VehicleUpdate:
    """State carried by one message; NaN marks values the message did not contain."""

    system_id: int
    coordinate: GeoCoordinate
    altitude: float
    speed: float
    heading: float
    roll: float
    pitch: float
    battery_remaining: float
    battery_voltage: float
    battery_current: float
    is_armed: bool
    flight_mode: str


class MavlinkManager:
    """Receives MAVLink datagrams over UDP and remembers where each vehicle lives."""

    def __init__(self) -> None:
        self._socket: socket.socket | None = None
        self._parser = MavlinkParser()
        self._endpoints: dict[int, tuple[str, int]] = {}
        self._sequence = 0
        self.connection_status_string = "Disconnected"
        self.is_connected_changed = Signal()
        self.connection_failed = Signal()
        self.vehicle_updated = Signal()

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    @property
    def port(self) -> int | None:
        """The local port actually bound, or None when disconnected."""
        return self._socket.getsockname()[1] if self._socket is not None else None

    @property
    def vehicle_endpoints(self) -> dict[int, tuple[str, int]]:
        return dict(self._endpoints)

    def connect_udp(self, host: str, port: int) -> None:
        """Listen on ``port`` on every IPv4 interface; ``host`` is not used for binding."""
        self.disconnect()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("0.0.0.0", port))
        except OSError as exc:
            sock.close()
            error = f"UDP Bind Failed: {exc}"
            _log.warning(error)
            self.connection_failed.emit(error)
            raise ConnectionError(error) from exc
        sock.setblocking(False)
        self._socket = sock
        self.connection_status_string = f"Listening on UDP Port {port}"
        _log.info(self.connection_status_string)
        self.is_connected_changed.emit()

    def disconnect(self) -> None:
        if self._socket is None:
            return
        self._socket.close()
        self._socket = None
        self.connection_status_string = "Disconnected"
        self._endpoints.clear()
        _log.info("UDP socket disconnected.")
        self.is_connected_changed.emit()

    def poll(self) -> int:
        """Handle every datagram waiting on the socket; returns how many were read."""
        if self._socket is None:
            return 0
        count = 0
        while True:
            try:
                data, sender = self._socket.recvfrom(65535)
            except (BlockingIOError, InterruptedError, ConnectionResetError):
                return count
            self.handle_datagram(data, sender)
            count += 1

    def handle_datagram(self, data: bytes, sender: tuple[str, int]) -> list[VehicleUpdate]:
        """Parse a datagram, emit ``vehicle_updated`` for each relevant message."""
        updates = []
        for msg in self._parser.feed(data):
            self._endpoints[msg.system_id] = (sender[0], sender[1])
            update = self._decode(msg.system_id, msg.message_id, msg.payload)
            if update is not None:
                updates.append(update)
                self.vehicle_updated.emit(update)
        return updates

    @staticmethod
    def _decode(system_id: int, message_id: int, payload: bytes) -> VehicleUpdate | None:
        fields = dict(
            system_id=system_id,
            coordinate=GeoCoordinate(),
            altitude=math.nan,
            speed=math.nan,
            heading=math.nan,
            roll=math.nan,
            pitch=math.nan,
            battery_remaining=math.nan,
            battery_voltage=math.nan,
            battery_current=math.nan,
            is_armed=True,
            flight_mode="Unknown",
        )
        if message_id == MSG_ID_HEARTBEAT:
            custom_mode, vehicle_type, _, base_mode, _, _ = struct.unpack("<IBBBBB", payload)
            if vehicle_type == _MAV_TYPE_GCS:
                return None
            fields["is_armed"] = bool(base_mode & _SAFETY_ARMED)
            fields["flight_mode"] = _FLIGHT_MODES.get(custom_mode, f"Mode {custom_mode}")
        elif message_id == MSG_ID_GLOBAL_POSITION_INT:
            _, lat, lon, alt, _, _, _, _, hdg = struct.unpack("<IiiiihhhH", payload)
            fields["coordinate"] = GeoCoordinate(lat / 1e7, lon / 1e7)
            fields["altitude"] = float(math.trunc(alt / 1000))
            fields["heading"] = float(hdg // 100)
        elif message_id == MSG_ID_VFR_HUD:
            fields["speed"] = struct.unpack("<ffffhH", payload)[1]
        elif message_id == MSG_ID_ATTITUDE:
            _, roll, pitch, *_ = struct.unpack("<I6f", payload)
            fields["roll"] = math.degrees(roll)
            fields["pitch"] = math.degrees(pitch)
        elif message_id == MSG_ID_SYS_STATUS:
            values = struct.unpack("<IIIHHhHHHHHHb", payload)
            fields["battery_remaining"] = float(values[12])
            fields["battery_voltage"] = values[4] / 1000.0
            fields["battery_current"] = values[5] / 1000.0
        else:
            return None
        return VehicleUpdate(**fields)

    def _send_command_long(self, system_id: int, command: int, *params: float) -> bytes:
        if self._socket is None or system_id not in self._endpoints:
            raise ConnectionError(
                "Cannot send command: Not connected or vehicle endpoint unknown "
                f"for system ID {system_id}"
            )
        packet = pack_command_long(
            _GCS_SYSTEM_ID, _GCS_COMPONENT_ID, system_id, _AUTOPILOT_COMPONENT_ID,
            command, 0, params, self._sequence,
        )
        self._sequence = (self._sequence + 1) & 0xFF
        self._socket.sendto(packet, self._endpoints[system_id])
        return packet

    def send_arm_command(self, system_id: int, arm: bool, force: bool = False) -> bytes:
        _log.info("%s vehicle %s%s", "ARMING" if arm else "DISARMING", system_id,
                  " with force." if force else ".")
        return self._send_command_long(
            system_id, _CMD_COMPONENT_ARM_DISARM,
            1.0 if arm else 0.0, _FORCE_MAGIC if force else 0.0,
        )

    def send_takeoff_command(self, system_id: int, altitude: float) -> bytes:
        _log.info("Sending TAKEOFF to vehicle %s, altitude %s m", system_id, altitude)
        return self._send_command_long(
            system_id, _CMD_NAV_TAKEOFF, 0.0, 0.0, 0.0, math.nan, 0.0, 0.0, altitude
        )

    def send_return_to_launch_command(self, system_id: int) -> bytes:
        _log.info("Sending RETURN TO LAUNCH to vehicle %s", system_id)
        return self._send_command_long(system_id, _CMD_NAV_RETURN_TO_LAUNCH)