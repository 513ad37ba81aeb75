import math
import threading
import time
from datetime import datetime, timezone

import pytest

from groundlink.vehicle import DataSource, GeoCoordinate
from groundlink.vehicle_manager import VehicleManager


def _mavlink(manager, system_id, **overrides):
    values = dict(
        coordinate=GeoCoordinate(40.0, 29.0),
        altitude=100.0,
        speed=12.5,
        heading=90.0,
        roll=1.5,
        pitch=2.5,
        battery_remaining=80.0,
        battery_voltage=12.6,
        battery_current=3.0,
        is_armed=True,
        flight_mode="Auto",
    )
    values.update(overrides)
    return manager.update_mavlink_vehicle(
        system_id,
        values["coordinate"],
        values["altitude"],
        values["speed"],
        values["heading"],
        values["roll"],
        values["pitch"],
        values["battery_remaining"],
        values["battery_voltage"],
        values["battery_current"],
        values["is_armed"],
        values["flight_mode"],
    )


def _counter(signal):
    calls = []
    signal.connect(lambda *args: calls.append(args))
    return calls


def test_mavlink_update_creates_vehicle_once():
    manager = VehicleManager()
    changes = _counter(manager.vehicles_changed)
    _mavlink(manager, 1)
    _mavlink(manager, 1)
    assert len(manager.vehicles) == 1
    assert len(changes) == 1
    vehicle = manager.vehicles[0]
    assert vehicle.system_id == 1
    assert vehicle.data_source is DataSource.LOCAL_MAVLINK
    assert vehicle.coordinate == GeoCoordinate(40.0, 29.0)
    assert vehicle.altitude == 100.0
    assert vehicle.ground_speed == 12.5
    assert vehicle.battery_voltage == 12.6
    assert vehicle.flight_mode == "Auto"
    assert vehicle.is_armed is True


def test_nan_values_and_unknown_mode_keep_previous_state():
    manager = VehicleManager()
    _mavlink(manager, 1)
    vehicle = _mavlink(
        manager,
        1,
        coordinate=GeoCoordinate(),
        altitude=math.nan,
        speed=math.nan,
        heading=math.nan,
        roll=math.nan,
        pitch=math.nan,
        battery_remaining=math.nan,
        battery_voltage=math.nan,
        battery_current=math.nan,
        is_armed=False,
        flight_mode="Unknown",
    )
    assert vehicle.coordinate == GeoCoordinate(40.0, 29.0)
    assert vehicle.altitude == 100.0
    assert vehicle.heading == 90.0
    assert vehicle.battery_remaining == 80.0
    assert vehicle.flight_mode == "Auto"
    assert vehicle.is_armed is False


def test_internal_ids_are_assigned_in_order():
    manager = VehicleManager()
    first = _mavlink(manager, 5)
    second = _mavlink(manager, 7)
    assert [v.vehicle_id for v in manager.vehicles] == [first.vehicle_id, second.vehicle_id]
    assert second.vehicle_id == first.vehicle_id + 1
    assert first.display_id == "5"


def test_main_vehicle_is_first_mavlink_vehicle():
    manager = VehicleManager()
    assert manager.main_vehicle() is None
    manager.update_teknofest_vehicles([{"takim_numarasi": 3}])
    assert manager.main_vehicle() is None
    local = _mavlink(manager, 9)
    _mavlink(manager, 10)
    assert manager.main_vehicle() is local


def test_select_vehicle_moves_selection():
    manager = VehicleManager()
    first = _mavlink(manager, 1)
    second = _mavlink(manager, 2)
    selections = _counter(manager.selected_vehicle_changed)

    manager.select_vehicle(first.vehicle_id)
    assert manager.selected_vehicle is first
    assert first.is_selected is True

    manager.select_vehicle(second.vehicle_id)
    assert manager.selected_vehicle is second
    assert first.is_selected is False
    assert second.is_selected is True

    manager.select_vehicle(second.vehicle_id)
    assert len(selections) == 2

    manager.select_vehicle(-1)
    assert manager.selected_vehicle is None
    assert second.is_selected is False
    assert len(selections) == 3


def test_teknofest_update_sets_fields():
    manager = VehicleManager()
    manager.update_teknofest_vehicles(
        [
            {
                "takim_numarasi": 1,
                "iha_enlem": 41.508775,
                "iha_boylam": 36.118335,
                "iha_irtifa": 38,
                "iha_dikilme": 7,
                "iha_yonelme": 210,
                "iha_yatis": -30,
                "iha_hiz": 28,
            },
            "not an object",
            {"iha_enlem": 1.0},
            {"takim_numarasi": 2.5},
        ]
    )
    assert len(manager.vehicles) == 1
    vehicle = manager.vehicles[0]
    assert vehicle.data_source is DataSource.TEKNOFEST_API
    assert vehicle.team_id == 1
    assert vehicle.display_id == "1"
    assert vehicle.coordinate == GeoCoordinate(41.508775, 36.118335)
    assert vehicle.altitude == 38.0
    assert vehicle.pitch == 7.0
    assert vehicle.heading == 210.0
    assert vehicle.roll == -30.0
    assert vehicle.ground_speed == 28.0
    assert vehicle.is_armed is True


def test_stale_teknofest_vehicles_are_removed():
    manager = VehicleManager()
    local = _mavlink(manager, 1)
    manager.update_teknofest_vehicles([{"takim_numarasi": 3}, {"takim_numarasi": 4}])
    removed = next(v for v in manager.vehicles if v.team_id == 4)
    manager.select_vehicle(removed.vehicle_id)
    changes = _counter(manager.vehicles_changed)

    manager.update_teknofest_vehicles([{"takim_numarasi": 3}])

    assert removed not in manager.vehicles
    assert local in manager.vehicles
    assert sorted(v.team_id for v in manager.vehicles if v.data_source is DataSource.TEKNOFEST_API) == [3]
    assert manager.selected_vehicle is None
    assert removed.is_selected is False
    assert len(changes) >= 1


def test_returning_team_gets_fresh_vehicle():
    manager = VehicleManager()
    manager.update_teknofest_vehicles([{"takim_numarasi": 3}])
    old = manager.vehicles[0]
    manager.update_teknofest_vehicles([])
    assert manager.vehicles == ()
    manager.update_teknofest_vehicles([{"takim_numarasi": 3}])
    assert manager.vehicles[0].vehicle_id > old.vehicle_id


def test_build_telemetry_reports_main_vehicle():
    manager = VehicleManager()
    vehicle = _mavlink(manager, 1)
    vehicle.team_id = 12
    now = datetime(2024, 5, 1, 11, 38, 37, 654000, tzinfo=timezone.utc)
    report = manager.build_telemetry(now)
    assert report["takim_numarasi"] == 12
    assert report["iha_enlem"] == 40.0
    assert report["iha_boylam"] == 29.0
    assert report["iha_irtifa"] == 100.0
    assert report["iha_hiz"] == 12.5
    assert report["iha_batarya"] == 80.0
    assert report["iha_otonom"] == 1
    assert report["iha_kilitlenme"] == 0
    assert report["gps_saati"] == {"saat": 11, "dakika": 38, "saniye": 37, "milisaniye": 654}


def test_build_telemetry_without_mavlink_vehicle_fails():
    manager = VehicleManager()
    with pytest.raises(LookupError):
        manager.build_telemetry()


def test_start_transmitting_without_mavlink_vehicle_fails():
    manager = VehicleManager()
    with pytest.raises(LookupError):
        manager.start_transmitting_telemetry(4, 0.01)


def test_transmitting_emits_reports_until_stopped():
    manager = VehicleManager()
    vehicle = _mavlink(manager, 1)
    received = []
    arrived = threading.Event()

    def on_report(report):
        received.append(report)
        arrived.set()

    manager.transmit_telemetry_request.connect(on_report)
    manager.start_transmitting_telemetry(42, 0.01)
    try:
        assert arrived.wait(2.0)
    finally:
        manager.stop_transmitting_telemetry()
    assert vehicle.team_id == 42
    assert received[0]["takim_numarasi"] == 42
    count = len(received)
    time.sleep(0.05)
    assert len(received) == count