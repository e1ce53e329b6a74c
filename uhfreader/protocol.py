"""Wire format of the UHFReader18-style reader protocol.

Command packet layout: ``Len(1) Adr(1) Cmd(1) Data(n) CRC_L(1) CRC_H(1)``,
where ``Len`` counts every byte after itself.
Response frames add a ``Status`` byte after ``Cmd``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

CMD_INVENTORY = 0x01
CMD_INVENTORY_SINGLE = 0x0F
CMD_GET_READER_INFO = 0x21
CMD_SET_REGION = 0x22
CMD_SET_SCAN_TIME = 0x25
CMD_SET_WORK_MODE = 0x35
CMD_GET_WORK_MODE = 0x36
CMD_ACOUSTO_OPTIC = 0x33
CMD_SET_OUTPUT_POWER = 0x2F
CMD_SET_ANTENNA_MUX = 0x3F

STATUS_SUCCESS = 0x00
STATUS_NO_TAG = 0x01
STATUS_CMD_ERROR = 0xFE
STATUS_CRC_ERROR = 0xFF
STATUS_NO_TAG_OR_TIMEOUT = 0xFB
STATUS_ANTENNA_ERROR = 0xF8

DEFAULT_READER_ADDRESS = 0x00
BROADCAST_READER_ADDRESS = 0xFF

_MIN_FRAME_SIZE = 6


class ProtocolError(ValueError):
    """Raised when a frame cannot be decoded as requested."""


@dataclass(frozen=True)
class Frame:
    """One decoded response frame."""

    command: int
    status: int
    address: int = 0
    data: bytes = b""
    length: int = 0
    raw: bytes = b""
    crc_valid: bool = False


@dataclass(frozen=True)
class SingleInventoryResult:
    """Decoded payload of a single-inventory (0x0F) response."""

    antenna: int
    tag_count: int
    epc: bytes


@dataclass(frozen=True)
class InventoryG2Tag:
    """One tag parsed from an inventory (0x01) response."""

    antenna: int
    epc: bytes
    rssi: int


def crc16_mcrf4xx(data: Iterable[int]) -> int:
    """CRC-16/MCRF4XX: poly 0x8408 (reflected), init 0xFFFF, no final xor."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte & 0xFF
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ 0x8408
            else:
                crc >>= 1
    return crc


def _with_crc(body: bytes) -> bytes:
    crc = crc16_mcrf4xx(body)
    return body + bytes((crc & 0xFF, crc >> 8))


def build_command(address: int, command: int, payload: Iterable[int] = b"") -> bytes:
    """Build one wire packet for ``command`` with ``payload``."""
    payload = bytes(payload)
    length = (len(payload) + 4) & 0xFF
    return _with_crc(bytes((length, address & 0xFF, command & 0xFF)) + payload)


def verify_packet(packet: bytes) -> bool:
    """Return True when ``packet`` is one complete frame with a valid CRC."""
    packet = bytes(packet)
    if len(packet) < _MIN_FRAME_SIZE:
        return False
    if packet[0] + 1 != len(packet):
        return False
    crc = crc16_mcrf4xx(packet[:-2])
    return packet[-2] == (crc & 0xFF) and packet[-1] == (crc >> 8)


def parse_frames(stream: bytes) -> tuple[list[Frame], bytes]:
    """Decode as many valid frames as possible from ``stream``.

    Returns the frames and the trailing bytes that do not yet form a
    complete frame. Bytes that cannot start a valid frame are skipped.
    """
    buf = bytes(stream)
    frames: list[Frame] = []
    pos = 0
    while len(buf) - pos >= _MIN_FRAME_SIZE:
        total = buf[pos] + 1
        if total < _MIN_FRAME_SIZE:
            pos += 1
            continue
        if pos + total > len(buf):
            break
        raw = buf[pos:pos + total]
        if not verify_packet(raw):
            pos += 1
            continue
        frames.append(
            Frame(
                length=raw[0],
                address=raw[1],
                command=raw[2],
                status=raw[3],
                data=raw[4:total - 2],
                raw=raw,
                crc_valid=True,
            )
        )
        pos += total
    return frames, buf[pos:]


def inventory_single_command(address: int) -> bytes:
    """One-shot inventory command (0x01) without payload."""
    return build_command(address, CMD_INVENTORY)


def inventory_command(address: int, tid_addr: int, tid_len: int) -> bytes:
    """Legacy inventory command carrying a TID address and length."""
    return build_command(address, CMD_INVENTORY, (tid_addr, tid_len))


def inventory_g2_command(
    address: int,
    q_value: int,
    session: int,
    tid_addr: int,
    tid_len: int,
    target: int,
    antenna: int,
    scan_time: int,
) -> bytes:
    """Inventory command (0x01); TID fields are included only when tid_len is non-zero."""
    if tid_len == 0:
        payload = (q_value, session, target, antenna, scan_time)
    else:
        payload = (q_value, session, tid_addr, tid_len, target, antenna, scan_time)
    return build_command(address, CMD_INVENTORY, payload)


def inventory_single_tag_command(address: int) -> bytes:
    """Single-tag inventory command (0x0F)."""
    return build_command(address, CMD_INVENTORY_SINGLE)


def get_reader_info_command(address: int) -> bytes:
    """Query module details (0x21)."""
    return build_command(address, CMD_GET_READER_INFO)


def set_scan_time_command(address: int, value: int) -> bytes:
    """Set inventory duration in 100 ms units."""
    return build_command(address, CMD_SET_SCAN_TIME, (value,))


def set_output_power_command(address: int, value: int) -> bytes:
    """Set global output power."""
    return build_command(address, CMD_SET_OUTPUT_POWER, (value,))


def set_output_power_by_ant_command(address: int, powers: Iterable[int]) -> bytes:
    """Set output power per antenna, one byte per port."""
    return build_command(address, CMD_SET_OUTPUT_POWER, bytes(powers))


def set_frequency_range_command(address: int, high: int, low: int) -> bytes:
    """Set the high/low channel bytes (0x22)."""
    return build_command(address, CMD_SET_REGION, (high, low))


def set_work_mode_command(address: int, payload: Iterable[int]) -> bytes:
    """Set work mode with a raw payload."""
    return build_command(address, CMD_SET_WORK_MODE, payload)


def set_antenna_mux_command(address: int, ant_cfg: int) -> bytes:
    """Set the active antenna bitmask."""
    return build_command(address, CMD_SET_ANTENNA_MUX, (ant_cfg,))


def inventory_tag_count(frame: Frame) -> int:
    """Tag count reported by a successful inventory response."""
    if frame.command != CMD_INVENTORY:
        raise ProtocolError("not inventory frame")
    if frame.status != STATUS_SUCCESS or not frame.data:
        return 0
    return frame.data[0]


def _antenna_id_from_mask(mask: int) -> int:
    if mask and mask & (mask - 1) == 0:
        return mask.bit_length()
    return mask + 1


def parse_inventory_g2_tags(frame: Frame) -> list[InventoryG2Tag]:
    """Parse tags from an inventory response.

    Payload: ``AntMask(1) TagNum(1)`` followed by ``[EpcLen(1) EPC(n) RSSI(1)]``
    for each tag.
    """
    if frame.command != CMD_INVENTORY:
        raise ProtocolError("not inventory frame")
    data = frame.data
    if len(data) < 2:
        return []
    tag_num = data[1]
    if tag_num <= 0:
        return []

    antenna = _antenna_id_from_mask(data[0])
    cursor = 2
    tags: list[InventoryG2Tag] = []
    for index in range(tag_num):
        if cursor >= len(data):
            raise ProtocolError(f"inventory payload truncated at tag {index}")
        epc_len = data[cursor]
        cursor += 1
        if epc_len <= 0 or cursor + epc_len > len(data):
            raise ProtocolError(f"inventory invalid epc len at tag {index}")
        epc = data[cursor:cursor + epc_len]
        cursor += epc_len
        if cursor >= len(data):
            raise ProtocolError(f"inventory missing rssi at tag {index}")
        rssi = data[cursor]
        cursor += 1
        tags.append(InventoryG2Tag(antenna=antenna, epc=bytes(epc), rssi=rssi))
    return tags


def parse_single_inventory_result(frame: Frame) -> SingleInventoryResult:
    """Decode a single-inventory response: ``Ant(1) Count(1) EpcLen(1) EPC(n)``."""
    if frame.command != CMD_INVENTORY_SINGLE:
        raise ProtocolError("not single-inventory frame")
    if frame.status not in (STATUS_NO_TAG, STATUS_SUCCESS):
        raise ProtocolError(f"single-inventory status 0x{frame.status:02X}")
    data = frame.data
    if len(data) < 3:
        raise ProtocolError("single-inventory payload too short")
    epc_len = data[2]
    if len(data) < 3 + epc_len:
        raise ProtocolError("single-inventory invalid epc len")
    return SingleInventoryResult(
        antenna=data[0],
        tag_count=data[1],
        epc=bytes(data[3:3 + epc_len]),
    )