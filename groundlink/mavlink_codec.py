"""Framing, checksums and packing for the MAVLink messages the ground station uses."""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass

STX_V1 = 0xFE
STX_V2 = 0xFD
_SIGNED_FLAG = 0x01
_SIGNATURE_LEN = 13

MSG_ID_HEARTBEAT = 0
MSG_ID_SYS_STATUS = 1
MSG_ID_ATTITUDE = 30
MSG_ID_GLOBAL_POSITION_INT = 33
MSG_ID_VFR_HUD = 74
MSG_ID_COMMAND_LONG = 76

# message id -> (payload length, CRC extra byte)
_MESSAGE_SPECS = {
    MSG_ID_HEARTBEAT: (9, 50),
    MSG_ID_SYS_STATUS: (31, 124),
    MSG_ID_ATTITUDE: (28, 39),
    MSG_ID_GLOBAL_POSITION_INT: (28, 104),
    MSG_ID_VFR_HUD: (20, 20),
    MSG_ID_COMMAND_LONG: (33, 152),
}


def crc_x25(data: bytes) -> int:
    """CRC-16/MCRF4XX checksum as used by MAVLink frames."""
    crc = 0xFFFF
    for byte in data:
        tmp = (byte ^ (crc & 0xFF)) & 0xFF
        tmp = (tmp ^ (tmp << 4)) & 0xFF
        crc = ((crc >> 8) ^ (tmp << 8) ^ (tmp << 3) ^ (tmp >> 4)) & 0xFFFF
    return crc


def _crc_extra(message_id: int) -> int:
    spec = _MESSAGE_SPECS.get(message_id)
    return spec[1] if spec else 0


@dataclass(frozen=True)
class MavlinkMessage:
    """One decoded frame; known payloads are zero-padded to their full length."""

    system_id: int
    component_id: int
    message_id: int
    sequence: int
    payload: bytes


class MavlinkParser:
    """Incremental frame parser accepting MAVLink 1 and 2 byte streams."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[MavlinkMessage]:
        """Add bytes and return every complete, checksum-valid message found."""
        self._buffer.extend(data)
        messages = []
        while True:
            complete, message = self._next()
            if not complete:
                return messages
            if message is not None:
                messages.append(message)

    def _next(self) -> tuple[bool, MavlinkMessage | None]:
        buf = self._buffer
        start = next((i for i, b in enumerate(buf) if b in (STX_V1, STX_V2)), None)
        if start is None:
            buf.clear()
            return False, None
        del buf[:start]

        if buf[0] == STX_V1:
            if len(buf) < 6:
                return False, None
            length = buf[1]
            header_end = 6
            total = header_end + length + 2
            sequence, system_id, component_id, message_id = buf[2], buf[3], buf[4], buf[5]
        else:
            if len(buf) < 10:
                return False, None
            length, incompat = buf[1], buf[2]
            if incompat & ~_SIGNED_FLAG:
                del buf[0]
                return True, None
            header_end = 10
            total = header_end + length + 2 + (_SIGNATURE_LEN if incompat & _SIGNED_FLAG else 0)
            sequence, system_id, component_id = buf[4], buf[5], buf[6]
            message_id = int.from_bytes(buf[7:10], "little")

        if len(buf) < total:
            return False, None

        spec = _MESSAGE_SPECS.get(message_id)
        payload = bytes(buf[header_end:header_end + length])
        checked = bytes(buf[1:header_end + length]) + bytes([_crc_extra(message_id)])
        received = int.from_bytes(buf[header_end + length:header_end + length + 2], "little")
        valid = crc_x25(checked) == received
        if spec is not None:
            if buf[0] == STX_V1 and length != spec[0]:
                valid = False
            elif length > spec[0]:
                valid = False
        if not valid:
            del buf[0]
            return True, None

        del buf[:total]
        if spec is not None:
            payload = payload.ljust(spec[0], b"\x00")
        return True, MavlinkMessage(system_id, component_id, message_id, sequence, payload)


def encode_message(
    system_id: int, component_id: int, message_id: int, payload: bytes, sequence: int = 0
) -> bytes:
    """Frame a payload as a MAVLink 2 packet, trimming trailing zero bytes."""
    body = bytes(payload).rstrip(b"\x00") or b"\x00"
    header = bytes([len(body), 0, 0, sequence & 0xFF, system_id & 0xFF, component_id & 0xFF])
    header += (message_id & 0xFFFFFF).to_bytes(3, "little")
    crc = crc_x25(header + body + bytes([_crc_extra(message_id)]))
    return bytes([STX_V2]) + header + body + crc.to_bytes(2, "little")


def pack_command_long(
    system_id: int,
    component_id: int,
    target_system: int,
    target_component: int,
    command: int,
    confirmation: int,
    params: Sequence[float],
    sequence: int = 0,
) -> bytes:
    """COMMAND_LONG packet; up to seven parameters, missing ones are zero."""
    values = list(params)
    if len(values) > 7:
        raise ValueError("COMMAND_LONG takes at most seven parameters")
    values += [0.0] * (7 - len(values))
    payload = struct.pack(
        "<7fHBBB", *values, command, target_system, target_component, confirmation
    )
    return encode_message(system_id, component_id, MSG_ID_COMMAND_LONG, payload, sequence)


def pack_heartbeat(
    system_id: int,
    component_id: int,
    vehicle_type: int,
    base_mode: int,
    custom_mode: int,
    sequence: int = 0,
) -> bytes:
    """HEARTBEAT packet with a generic autopilot and protocol version 3."""
    payload = struct.pack("<IBBBBB", custom_mode, vehicle_type, 0, base_mode, 0, 3)
    return encode_message(system_id, component_id, MSG_ID_HEARTBEAT, payload, sequence)