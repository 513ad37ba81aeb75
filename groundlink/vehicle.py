"""Vehicle state with change notifications."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


def fuzzy_compare(a: float, b: float) -> bool:
    """Relative equality test: true when ``a`` and ``b`` agree to about twelve digits."""
    return abs(a - b) * 1e12 <= min(abs(a), abs(b))


class Signal:
    """A list of callables invoked together when the signal is emitted."""

    def __init__(self) -> None:
        self._slots: list[Callable[..., Any]] = []

    def connect(self, slot: Callable[..., Any]) -> None:
        self._slots.append(slot)

    def disconnect(self, slot: Callable[..., Any]) -> None:
        """Remove a connected slot; raises ValueError if it was never connected."""
        self._slots.remove(slot)

    def emit(self, *args: Any) -> None:
        for slot in list(self._slots):
            slot(*args)


class DataSource(IntEnum):
    """Where a vehicle's data comes from."""

    SOURCE_UNKNOWN = 0
    LOCAL_MAVLINK = 1
    TEKNOFEST_API = 2


@dataclass(frozen=True, eq=False)
class GeoCoordinate:
    """A geographic position in degrees; NaN marks an unset component."""

    latitude: float = math.nan
    longitude: float = math.nan
    altitude: float = math.nan

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def _key(self) -> tuple:
        return tuple(None if math.isnan(v) else v for v in (self.latitude, self.longitude, self.altitude))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeoCoordinate):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def _differs(old: Any, new: Any) -> bool:
    return old != new


def _differs_not_nan(old: float, new: float) -> bool:
    return old != new and not math.isnan(new)


def _differs_fuzzy(old: float, new: float) -> bool:
    return old != new and not fuzzy_compare(old, new)


def _battery_changes(old: float, new: float) -> bool:
    return not fuzzy_compare(old, new) and not math.isnan(new)


def _coordinate_changes(old: GeoCoordinate, new: GeoCoordinate) -> bool:
    return old != new and not (math.isnan(new.latitude) or math.isnan(new.longitude))


class _Notified:
    """Attribute that stores a value and emits signals when it is accepted."""

    def __init__(self, default: Any, accept: Callable[[Any, Any], bool], *signals: str) -> None:
        self._default = default
        self._accept = accept
        self._signals = signals
        self._attr = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self._attr = "_" + name

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return getattr(obj, self._attr, self._default)

    def __set__(self, obj: Any, value: Any) -> None:
        if not self._accept(self.__get__(obj), value):
            return
        setattr(obj, self._attr, value)
        for signal in self._signals:
            getattr(obj, signal).emit()


_SIGNAL_NAMES = (
    "system_id_changed",
    "team_id_changed",
    "is_selected_changed",
    "coordinate_changed",
    "altitude_changed",
    "ground_speed_changed",
    "heading_changed",
    "roll_changed",
    "pitch_changed",
    "battery_voltage_changed",
    "battery_remaining_changed",
    "battery_current_changed",
    "is_armed_changed",
    "flight_mode_changed",
    "display_id_changed",
)


class Vehicle:
    """One tracked aircraft; assignments that change state emit the matching signal."""

    system_id = _Notified(-1, _differs, "system_id_changed", "display_id_changed")
    team_id = _Notified(-1, _differs, "team_id_changed")
    is_selected = _Notified(False, _differs, "is_selected_changed")
    coordinate = _Notified(GeoCoordinate(), _coordinate_changes, "coordinate_changed")
    altitude = _Notified(0.0, _differs_not_nan, "altitude_changed")
    ground_speed = _Notified(0.0, _differs_fuzzy, "ground_speed_changed")
    heading = _Notified(0.0, _differs_fuzzy, "heading_changed")
    roll = _Notified(0.0, _differs_fuzzy, "roll_changed")
    pitch = _Notified(0.0, _differs_fuzzy, "pitch_changed")
    battery_voltage = _Notified(0.0, _battery_changes, "battery_voltage_changed")
    battery_remaining = _Notified(0.0, _battery_changes, "battery_remaining_changed")
    battery_current = _Notified(0.0, _battery_changes, "battery_current_changed")
    is_armed = _Notified(False, _differs, "is_armed_changed")
    flight_mode = _Notified("Unknown", _differs, "flight_mode_changed")

    def __init__(self, vehicle_id: int, data_source: DataSource) -> None:
        self._vehicle_id = vehicle_id
        self._data_source = DataSource(data_source)
        for name in _SIGNAL_NAMES:
            setattr(self, name, Signal())

    @property
    def vehicle_id(self) -> int:
        return self._vehicle_id

    @property
    def data_source(self) -> DataSource:
        return self._data_source

    @property
    def display_id(self) -> str:
        if self._data_source is DataSource.LOCAL_MAVLINK:
            return str(self.system_id)
        if self._data_source is DataSource.TEKNOFEST_API:
            return str(self.team_id)
        return str(self._vehicle_id)

    @property
    def altitude_string(self) -> str:
        return f"{self.altitude:.2f} m"

    @property
    def ground_speed_string(self) -> str:
        return f"{self.ground_speed:.2f} m/s"

    def __repr__(self) -> str:
        return f"Vehicle(vehicle_id={self._vehicle_id}, data_source={self._data_source.name})"