"""Registry of tracked vehicles fed by the MAVLink link and the competition server."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from groundlink.vehicle import DataSource, GeoCoordinate, Signal, Vehicle

_log = logging.getLogger(__name__)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_int(value: Any, default: int) -> int:
    """Integral JSON number within 32-bit range, otherwise ``default``."""
    if not _is_number(value):
        return default
    if isinstance(value, float):
        if not value.is_integer():
            return default
        value = int(value)
    if _INT32_MIN <= value <= _INT32_MAX:
        return value
    return default


def _to_double(value: Any) -> float:
    """JSON number as float, zero for anything else."""
    return float(value) if _is_number(value) else 0.0


class VehicleManager:
    """Owns every known vehicle and keeps the selection and telemetry feed."""

    def __init__(self) -> None:
        self._vehicle_map: dict[int, Vehicle] = {}
        self._vehicle_list: list[Vehicle] = []
        self._selected: Vehicle | None = None
        self._next_vehicle_id = 0
        self._mavlink_ids: dict[int, int] = {}
        self._teknofest_ids: dict[int, int] = {}
        self._telemetry_stop: threading.Event | None = None
        self._telemetry_thread: threading.Thread | None = None

        self.vehicles_changed = Signal()
        self.main_vehicle_changed = Signal()
        self.transmit_telemetry_request = Signal()
        self.selected_vehicle_changed = Signal()

    @property
    def vehicles(self) -> tuple[Vehicle, ...]:
        """All vehicles in the order they were first seen."""
        return tuple(self._vehicle_list)

    @property
    def selected_vehicle(self) -> Vehicle | None:
        return self._selected

    def main_vehicle(self) -> Vehicle | None:
        """The first vehicle reporting over the local MAVLink link, if any."""
        return next(
            (v for v in self._vehicle_list if v.data_source is DataSource.LOCAL_MAVLINK),
            None,
        )

    def select_vehicle(self, vehicle_id: int) -> None:
        """Select the vehicle with this internal id; an unknown id clears the selection."""
        vehicle = self._vehicle_map.get(vehicle_id)
        _log.debug("Selecting vehicle %s, found: %s", vehicle_id, vehicle is not None)
        if vehicle is self._selected:
            return
        if self._selected is not None:
            self._selected.is_selected = False
        self._selected = vehicle
        if vehicle is not None:
            vehicle.is_selected = True
        self.vehicles_changed.emit()
        self.selected_vehicle_changed.emit()

    def update_mavlink_vehicle(
        self,
        system_id: int,
        coordinate: GeoCoordinate,
        altitude: float,
        speed: float,
        heading: float,
        roll: float,
        pitch: float,
        battery_remaining: float,
        battery_voltage: float,
        battery_current: float,
        is_armed: bool,
        flight_mode: str,
    ) -> Vehicle:
        """Apply one MAVLink update; NaN values and an unknown mode leave fields untouched."""
        vehicle = self._get_or_create_mavlink_vehicle(system_id)
        if coordinate.is_valid():
            vehicle.coordinate = coordinate
        for name, value in (
            ("altitude", altitude),
            ("ground_speed", speed),
            ("heading", heading),
            ("roll", roll),
            ("pitch", pitch),
            ("battery_remaining", battery_remaining),
            ("battery_voltage", battery_voltage),
            ("battery_current", battery_current),
        ):
            if not math.isnan(value):
                setattr(vehicle, name, value)
        if flight_mode and flight_mode != "Unknown":
            vehicle.flight_mode = flight_mode
        vehicle.is_armed = is_armed
        return vehicle

    def update_teknofest_vehicles(self, vehicle_data: Iterable[Any]) -> None:
        """Apply a server position list; teams missing from it are dropped."""
        received: set[int] = set()
        for entry in vehicle_data:
            if not isinstance(entry, Mapping):
                continue
            team_id = _to_int(entry.get("takim_numarasi"), -1)
            if team_id == -1:
                continue
            received.add(team_id)
            vehicle = self._get_or_create_teknofest_vehicle(team_id)
            vehicle.coordinate = GeoCoordinate(
                _to_double(entry.get("iha_enlem")), _to_double(entry.get("iha_boylam"))
            )
            vehicle.altitude = _to_double(entry.get("iha_irtifa"))
            vehicle.ground_speed = _to_double(entry.get("iha_hiz"))
            vehicle.heading = _to_double(entry.get("iha_yonelme"))
            vehicle.roll = _to_double(entry.get("iha_yatis"))
            vehicle.pitch = _to_double(entry.get("iha_dikilme"))
            vehicle.is_armed = True

        stale = [team_id for team_id in sorted(self._teknofest_ids) if team_id not in received]
        if not stale:
            return
        for team_id in stale:
            vehicle = self._vehicle_map.pop(self._teknofest_ids.pop(team_id), None)
            if vehicle is None:
                continue
            _log.debug("Removing stale Teknofest vehicle, team %s", team_id)
            if self._selected is vehicle:
                self.select_vehicle(-1)
            self._vehicle_list = [v for v in self._vehicle_list if v is not vehicle]
        self.vehicles_changed.emit()

    def build_telemetry(self, now: datetime | None = None) -> dict[str, Any]:
        """Telemetry report for the main vehicle, stamped with ``now`` (UTC)."""
        vehicle = self.main_vehicle()
        if vehicle is None:
            raise LookupError("No MAVLink vehicle found to transmit telemetry.")
        if now is None:
            now = datetime.now(timezone.utc)
        return {
            "takim_numarasi": vehicle.team_id,
            "iha_enlem": vehicle.coordinate.latitude,
            "iha_boylam": vehicle.coordinate.longitude,
            "iha_irtifa": vehicle.altitude,
            "iha_hiz": vehicle.ground_speed,
            "iha_yonelme": vehicle.heading,
            "iha_yatis": vehicle.roll,
            "iha_dikilme": vehicle.pitch,
            "iha_batarya": vehicle.battery_remaining,
            "iha_otonom": 1,
            "iha_kilitlenme": 0,
            "gps_saati": {
                "saat": now.hour,
                "dakika": now.minute,
                "saniye": now.second,
                "milisaniye": now.microsecond // 1000,
            },
        }

    def start_transmitting_telemetry(self, team_id: int, interval: float = 1.0) -> None:
        """Tag the main vehicle with ``team_id`` and emit its telemetry every ``interval`` seconds."""
        self.stop_transmitting_telemetry()
        vehicle = self.main_vehicle()
        if vehicle is None:
            raise LookupError("No MAVLink vehicle found to transmit telemetry.")
        vehicle.team_id = team_id
        _log.debug("Starting telemetry transmission every %s s", interval)

        stop = threading.Event()

        def run() -> None:
            while not stop.wait(interval):
                self.transmit_telemetry_request.emit(self.build_telemetry())

        thread = threading.Thread(target=run, name="telemetry", daemon=True)
        self._telemetry_stop = stop
        self._telemetry_thread = thread
        thread.start()

    def stop_transmitting_telemetry(self) -> None:
        """Stop the periodic telemetry feed if it is running."""
        if self._telemetry_stop is not None:
            self._telemetry_stop.set()
        thread = self._telemetry_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._telemetry_stop = None
        self._telemetry_thread = None

    def _add_vehicle(self, source: DataSource) -> Vehicle:
        vehicle_id = self._next_vehicle_id
        self._next_vehicle_id += 1
        vehicle = Vehicle(vehicle_id, source)
        self._vehicle_map[vehicle_id] = vehicle
        self._vehicle_list.append(vehicle)
        return vehicle

    def _get_or_create_mavlink_vehicle(self, system_id: int) -> Vehicle:
        if system_id in self._mavlink_ids:
            return self._vehicle_map[self._mavlink_ids[system_id]]
        _log.debug("Creating new MAVLink vehicle, system %s", system_id)
        vehicle = self._add_vehicle(DataSource.LOCAL_MAVLINK)
        vehicle.system_id = system_id
        self._mavlink_ids[system_id] = vehicle.vehicle_id
        self.vehicles_changed.emit()
        return vehicle

    def _get_or_create_teknofest_vehicle(self, team_id: int) -> Vehicle:
        if team_id in self._teknofest_ids:
            return self._vehicle_map[self._teknofest_ids[team_id]]
        _log.debug("Creating new Teknofest vehicle, team %s", team_id)
        vehicle = self._add_vehicle(DataSource.TEKNOFEST_API)
        vehicle.team_id = team_id
        self._teknofest_ids[team_id] = vehicle.vehicle_id
        self.vehicles_changed.emit()
        return vehicle