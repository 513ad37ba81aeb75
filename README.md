# groundlink

This is the core of a ground control station for small unmanned aircraft.
It tracks vehicles and the telemetry they report. It talks to two sources:

- **MAVLink over UDP.** `MavlinkManager` listens on a local port. It decodes
  these messages:
  - heartbeat
  - global position
  - VFR HUD
  - attitude
  - system status

  For each of them it emits one `VehicleUpdate`. It can also send arm/disarm,
  takeoff and return-to-launch commands to any vehicle it has already heard from.
- **A competition telemetry server over HTTP.** `TeknofestClient` does three things:
  - it logs in;
  - it posts the local vehicle's telemetry;
  - it turns the server's reply into the list of the other teams' positions.

`VehicleManager` merges both feeds into one ordered list of `Vehicle` objects.
It also does the following:
- It keeps track of the selected vehicle.
- It drops competition vehicles that no longer appear in the feed.
- It builds the periodic telemetry report for the first MAVLink vehicle.

Install with `pip install .`. The test dependencies are in the `test` extra.

## Modules

| Module | Contents |
| --- | --- |
| `groundlink.vehicle` | `Vehicle`, `DataSource`, `GeoCoordinate`, `Signal`, `fuzzy_compare` |
| `groundlink.vehicle_manager` | `VehicleManager` |
| `groundlink.mavlink_codec` | `MavlinkParser`, `MavlinkMessage`, `crc_x25`, `encode_message`, `pack_command_long`, `pack_heartbeat` |
| `groundlink.mavlink_manager` | `MavlinkManager`, `VehicleUpdate` |
| `groundlink.http_client` | `HttpClient`, `LoginResult`, `HttpClientError` |
| `groundlink.teknofest_client` | `TeknofestClient`, `ServerProperties`, `AuthProperty`, `QRCodeProperty` |
| `groundlink.linear_indicator` | `LinearIndicator`, `Orientation`, `ColorSegment`, `Tick`, `SegmentBand`, `IndicatorLayout` |
| `groundlink.painter_helpers` | `wraphalf` |

## Signals

Notifications use `groundlink.vehicle.Signal`, which is a list of callables:

- `connect(slot)` adds a callable.
- `disconnect(slot)` removes it, and raises `ValueError` if the callable was never connected.
- `emit(*args)` calls every connected slot in order.

## Vehicles

Every property of a `Vehicle` has its own signal, such as `altitude_changed` or
`is_armed_changed`. Assigning to a property emits the signal only when the
value really changes:

- A NaN coordinate, altitude or battery reading is ignored.
- Ground speed, heading, roll and pitch are compared with `fuzzy_compare`.
  A new value that matches the old one to about twelve significant digits is
  dropped.

`display_id` depends on where the data comes from:
- the MAVLink system id for a MAVLink vehicle;
- the team id for a competition vehicle;
- the internal id otherwise.

`altitude_string` and `ground_speed_string` format the value with two decimals
and a unit.

```python
from groundlink.vehicle_manager import VehicleManager

manager = VehicleManager()
main = manager.main_vehicle()      # first MAVLink vehicle, or None
manager.select_vehicle(0)          # select by internal vehicle id
manager.select_vehicle(-1)         # an unknown id clears the selection
```

`update_mavlink_vehicle` creates a vehicle the first time it sees a system id.
It also leaves some fields untouched:
- any field whose value is NaN;
- the coordinate, when it is invalid;
- the flight mode, when it is empty or `"Unknown"`.

`update_teknofest_vehicles` takes the list of position objects from the
server. It creates or updates one vehicle per `takim_numarasi`, and removes the
teams that are missing from the list.

## Listening for MAVLink

```python
from groundlink.mavlink_manager import MavlinkManager

mavlink = MavlinkManager()
mavlink.connect_udp("0.0.0.0", 14550)   # binds all IPv4 interfaces
mavlink.vehicle_updated.connect(
    lambda update: manager.update_mavlink_vehicle(**vars(update))
)
mavlink.poll()                          # read and decode any pending datagrams
mavlink.send_arm_command(1, True, False)
mavlink.send_takeoff_command(1, 20.0)
mavlink.send_return_to_launch_command(1)
mavlink.disconnect()
```

Several calls can raise `ConnectionError`:
- `connect_udp`, when the port cannot be bound. It also emits `connection_failed` first.
- The `send_*` commands, when the manager is not connected.
- The `send_*` commands, when no message has yet arrived from that system id.
  The endpoints are forgotten on `disconnect`.

Each command returns the packet it sent. `poll` does not block. It returns how
many datagrams it handled.

`groundlink.mavlink_codec` is usable on its own:
- `MavlinkParser.feed` accepts MAVLink 1 and 2 byte streams, including signed
  frames, and returns the checksum-valid messages.
- `encode_message`, `pack_command_long` and `pack_heartbeat` build MAVLink 2 packets.

## Competition server

`HttpClient` wraps a `requests` session.

- `send_login_request` posts `{"kadi": ..., "sifre": ...}` as JSON. It returns
  a `LoginResult` with the team number from the response body and the
  `JSESSIONID` cookie.
- `send_telemetry_request` posts a report and sends the session id as the
  `Cookie` header. Non-finite floats are sent as `null`.

Failures raise `HttpClientError`. These include:
- an invalid URL;
- a network error;
- a non-success status;
- a login reply without a team number or session cookie.

`TeknofestClient` keeps its settings in `server_properties`, a
`ServerProperties` value. It holds:
- `url`
- `auth`, an `AuthProperty`
- `qr_code`, a `QRCodeProperty`
- `team_id`
- `session_id`
- `plane_ids`

`login` posts to `<url>/giris`. It stores the team id and session, and emits
`login_succeeded` or `login_failed`. `transmit_telemetry` posts to
`<url>/telemetri_gonder`. It returns the `konumBilgileri` list from the reply
and emits it on `telemetry_received`. A malformed reply gives an empty list.

```python
from groundlink.teknofest_client import AuthProperty, TeknofestClient

password = "password"
client = TeknofestClient()
client.server_properties.url = "http://localhost:8080"
client.server_properties.auth = AuthProperty(username="team", password=password)
result = client.login()

client.telemetry_received.connect(manager.update_teknofest_vehicles)
manager.transmit_telemetry_request.connect(client.transmit_telemetry)
manager.start_transmitting_telemetry(result.team_id, 1.0)
# ...
manager.stop_transmitting_telemetry()
```

`start_transmitting_telemetry` sets the main vehicle's team id. It then emits a
report from `build_telemetry` on a background thread at each interval. It
raises `LookupError` when there is no MAVLink vehicle. The connected slots run
on that thread.

## Instrument layout

`LinearIndicator` computes the layout of a scrolling tape instrument: tick
marks, labels and coloured segments. It keeps `current` at the centre of the
tape. `layout(width, height)` returns an `IndicatorLayout`, and raises
`ValueError` in two cases:
- the step settings are not positive;
- the size is negative.

`wraphalf` wraps a value into the instrument's range:

```python
from groundlink.painter_helpers import wraphalf

wraphalf(370, 360)   # 10
wraphalf(-10, 360)   # 350
wraphalf(42, 0)      # 42, a zero range leaves the value alone
```

## What this package does not do

The package has no screens, maps, video display or command-line program.
`LinearIndicator` only computes positions and draws nothing. Nothing decodes
or shows a camera stream. You build the application, its display and its event
loop on top of the classes described here. That includes calling
`MavlinkManager.poll` regularly.