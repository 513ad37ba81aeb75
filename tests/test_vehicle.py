import math

import pytest

from groundlink.vehicle import DataSource, GeoCoordinate, Signal, Vehicle, fuzzy_compare


def _recorder(vehicle, *names):
    seen = []
    for name in names:
        getattr(vehicle, name).connect(lambda name=name: seen.append(name))
    return seen


def test_fuzzy_compare():
    assert fuzzy_compare(1.0, 1.0 + 1e-13)
    assert not fuzzy_compare(1.0, 1.1)
    assert fuzzy_compare(0.0, 0.0)
    assert not fuzzy_compare(0.0, 1e-300)
    assert not fuzzy_compare(math.nan, 1.0)


def test_signal_connect_emit_disconnect():
    signal = Signal()
    received = []

    def slot(*args):
        received.append(args)

    signal.connect(slot)
    signal.emit(7, "seven")
    signal.disconnect(slot)
    signal.emit(8, "eight")
    assert received == [(7, "seven")]
    with pytest.raises(ValueError):
        signal.disconnect(slot)


def test_signal_delivers_to_every_slot_in_order():
    signal = Signal()
    order = []
    signal.connect(lambda value: order.append(("first", value)))
    signal.connect(lambda value: order.append(("second", value)))
    signal.emit(3)
    assert order == [("first", 3), ("second", 3)]


def test_signal_disconnect_unknown_slot_raises():
    with pytest.raises(ValueError):
        Signal().disconnect(print)


def test_geo_coordinate_validity_and_equality():
    assert not GeoCoordinate().is_valid()
    assert GeoCoordinate(41.5, 36.1).is_valid()
    assert not GeoCoordinate(91.0, 0.0).is_valid()
    assert not GeoCoordinate(0.0, -181.0).is_valid()
    assert GeoCoordinate() == GeoCoordinate()
    assert GeoCoordinate(1.0, 2.0) == GeoCoordinate(1.0, 2.0)
    assert not GeoCoordinate(1.0, 2.0) == GeoCoordinate(1.0, 3.0)


def test_defaults():
    vehicle = Vehicle(3, DataSource.LOCAL_MAVLINK)
    assert vehicle.vehicle_id == 3
    assert vehicle.data_source is DataSource.LOCAL_MAVLINK
    assert vehicle.system_id == -1
    assert vehicle.team_id == -1
    assert vehicle.is_selected is False
    assert vehicle.is_armed is False
    assert vehicle.flight_mode == "Unknown"
    assert vehicle.altitude == 0.0
    assert not vehicle.coordinate.is_valid()


def test_display_id_depends_on_source():
    mavlink = Vehicle(0, DataSource.LOCAL_MAVLINK)
    mavlink.system_id = 42
    mavlink.team_id = 9
    assert mavlink.display_id == "42"

    api = Vehicle(1, DataSource.TEKNOFEST_API)
    api.system_id = 42
    api.team_id = 9
    assert api.display_id == "9"

    unknown = Vehicle(5, DataSource.SOURCE_UNKNOWN)
    unknown.team_id = 9
    assert unknown.display_id == "5"


def test_system_id_emits_both_signals_once():
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    seen = _recorder(vehicle, "system_id_changed", "display_id_changed")
    vehicle.system_id = 4
    vehicle.system_id = 4
    assert seen == ["system_id_changed", "display_id_changed"]


def test_unchanged_values_do_not_emit():
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    seen = _recorder(vehicle, "is_armed_changed", "flight_mode_changed", "is_selected_changed")
    vehicle.is_armed = False
    vehicle.flight_mode = "Unknown"
    vehicle.is_selected = False
    assert seen == []
    vehicle.is_armed = True
    vehicle.flight_mode = "Guided"
    vehicle.is_selected = True
    assert seen == ["is_armed_changed", "flight_mode_changed", "is_selected_changed"]
    assert vehicle.flight_mode == "Guided"


def test_altitude_ignores_nan():
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    seen = _recorder(vehicle, "altitude_changed")
    vehicle.altitude = 120.0
    vehicle.altitude = math.nan
    assert vehicle.altitude == 120.0
    assert seen == ["altitude_changed"]


def test_altitude_and_speed_strings():
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    vehicle.altitude = 12.5
    vehicle.ground_speed = 3.0
    assert vehicle.altitude_string == "12.50 m"
    assert vehicle.ground_speed_string == "3.00 m/s"


@pytest.mark.parametrize("name", ["heading", "roll", "pitch", "ground_speed"])
def test_attitude_ignores_near_equal_values(name):
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    seen = _recorder(vehicle, f"{name}_changed")
    setattr(vehicle, name, 100.0)
    setattr(vehicle, name, 100.0 + 1e-12)
    assert getattr(vehicle, name) == 100.0
    assert seen == [f"{name}_changed"]


@pytest.mark.parametrize("name", ["battery_voltage", "battery_remaining", "battery_current"])
def test_battery_ignores_nan_and_near_equal(name):
    vehicle = Vehicle(0, DataSource.LOCAL_MAVLINK)
    seen = _recorder(vehicle, f"{name}_changed")
    setattr(vehicle, name, 11.1)
    setattr(vehicle, name, math.nan)
    setattr(vehicle, name, 11.1 + 1e-13)
    assert getattr(vehicle, name) == 11.1
    assert seen == [f"{name}_changed"]


def test_coordinate_ignores_nan_components():
    vehicle = Vehicle(0, DataSource.TEKNOFEST_API)
    seen = _recorder(vehicle, "coordinate_changed")
    position = GeoCoordinate(41.5, 36.1)
    vehicle.coordinate = position
    vehicle.coordinate = GeoCoordinate(math.nan, 36.2)
    vehicle.coordinate = GeoCoordinate(41.6, math.nan)
    vehicle.coordinate = GeoCoordinate(41.5, 36.1)
    assert vehicle.coordinate == position
    assert seen == ["coordinate_changed"]


def test_team_id_does_not_emit_display_change():
    vehicle = Vehicle(0, DataSource.TEKNOFEST_API)
    seen = _recorder(vehicle, "team_id_changed", "display_id_changed")
    vehicle.team_id = 7
    assert seen == ["team_id_changed"]
    assert vehicle.display_id == "7"


def test_vehicles_keep_separate_state():
    first = Vehicle(0, DataSource.LOCAL_MAVLINK)
    second = Vehicle(1, DataSource.LOCAL_MAVLINK)
    first.altitude = 50.0
    assert second.altitude == 0.0
    assert first.altitude_changed is not second.altitude_changed