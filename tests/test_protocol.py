import pytest

from uhfreader import protocol as p

EPC = bytes([0x30, 0x11, 0x22, 0x33, 0x44, 0x55, 0x66, 0x77, 0x88, 0x99, 0xAA, 0xBB])


def response_frame(addr, cmd, status, data=b""):
    body = bytes([(len(data) + 5) & 0xFF, addr, cmd, status]) + bytes(data)
    crc = p.crc16_mcrf4xx(body)
    return body + bytes([crc & 0xFF, crc >> 8])


@pytest.mark.parametrize(
    "packet, expected",
    [
        (p.build_command(0x00, p.CMD_INVENTORY, b""), [0x04, 0x00, 0x01, 0xDB, 0x4B]),
        (p.build_command(0x00, p.CMD_GET_READER_INFO, b""), [0x04, 0x00, 0x21, 0xD9, 0x6A]),
        (p.build_command(0xFF, p.CMD_INVENTORY, b""), [0x04, 0xFF, 0x01, 0x1B, 0xB4]),
        (p.inventory_single_tag_command(0x00), [0x04, 0x00, 0x0F, 0xA5, 0xA2]),
        (p.inventory_command(0x00, 0x00, 0x01), [0x06, 0x00, 0x01, 0x00, 0x01, 0x45, 0x40]),
        (
            p.inventory_g2_command(0x00, 0x04, 0x01, 0x00, 0x00, 0x00, 0x80, 0x0A),
            [0x09, 0x00, 0x01, 0x04, 0x01, 0x00, 0x80, 0x0A, 0x99, 0xC6],
        ),
        (
            p.inventory_g2_command(0x00, 0x04, 0x01, 0x00, 0x06, 0x00, 0x80, 0x0A),
            [0x0B, 0x00, 0x01, 0x04, 0x01, 0x00, 0x06, 0x00, 0x80, 0x0A, 0x29, 0x03],
        ),
    ],
)
def test_command_wire_bytes(packet, expected):
    assert packet == bytes(expected)


def test_helper_commands_match_build_command():
    assert p.inventory_single_command(0x00) == bytes([0x04, 0x00, 0x01, 0xDB, 0x4B])
    assert p.get_reader_info_command(0x00) == bytes([0x04, 0x00, 0x21, 0xD9, 0x6A])
    assert p.set_scan_time_command(0, 3) == p.build_command(0, p.CMD_SET_SCAN_TIME, b"\x03")
    assert p.set_output_power_command(0, 0x1E) == p.build_command(0, p.CMD_SET_OUTPUT_POWER, b"\x1e")
    assert p.set_output_power_by_ant_command(0, [1, 2]) == p.build_command(
        0, p.CMD_SET_OUTPUT_POWER, b"\x01\x02"
    )
    assert p.set_frequency_range_command(0, 0x3E, 0x28) == p.build_command(
        0, p.CMD_SET_REGION, b"\x3e\x28"
    )
    assert p.set_work_mode_command(0, b"\x00") == p.build_command(0, p.CMD_SET_WORK_MODE, b"\x00")
    assert p.set_antenna_mux_command(0, 0x05) == p.build_command(0, p.CMD_SET_ANTENNA_MUX, b"\x05")


def test_built_commands_verify_and_parse():
    for packet in (
        p.set_antenna_mux_command(0x00, 0x05),
        p.set_frequency_range_command(0x00, 0x3E, 0x28),
        p.inventory_g2_command(0x00, 4, 1, 0, 0, 0, 0x80, 1),
    ):
        assert p.verify_packet(packet)
        assert packet[0] + 1 == len(packet)


def test_verify_packet_rejects_bad_packets():
    good = p.get_reader_info_command(0x00) + b""
    frame = response_frame(0x00, p.CMD_GET_READER_INFO, p.STATUS_SUCCESS, b"\x10")
    assert p.verify_packet(frame)
    corrupted = frame[:-1] + bytes([frame[-1] ^ 0xFF])
    assert not p.verify_packet(corrupted)
    assert not p.verify_packet(frame + b"\x00")
    assert not p.verify_packet(good)  # only 5 bytes, shorter than a frame


def test_parse_frames():
    frame1 = response_frame(0x00, p.CMD_INVENTORY, p.STATUS_SUCCESS, b"\x01\xaa")
    frame2 = response_frame(0x00, p.CMD_GET_READER_INFO, p.STATUS_SUCCESS, b"\x10")
    frames, remaining = p.parse_frames(frame1 + frame2)
    assert remaining == b""
    assert len(frames) == 2
    assert frames[0].command == p.CMD_INVENTORY
    assert frames[1].command == p.CMD_GET_READER_INFO
    assert frames[0].data == b"\x01\xaa"
    assert frames[0].raw == frame1
    assert frames[0].crc_valid


def test_parse_frames_with_garbage_prefix():
    frame = response_frame(0x00, p.CMD_INVENTORY, p.STATUS_NO_TAG)
    frames, remaining = p.parse_frames(b"\x00\x00" + frame)
    assert remaining == b""
    assert len(frames) == 1
    assert frames[0].status == p.STATUS_NO_TAG


def test_parse_frames_keeps_incomplete_tail():
    frame = response_frame(0x05, p.CMD_GET_READER_INFO, p.STATUS_SUCCESS, b"\x01\x02\x03")
    frames, remaining = p.parse_frames(frame + frame[:4])
    assert len(frames) == 1
    assert frames[0].address == 0x05
    assert remaining == frame[:4]
    more, rest = p.parse_frames(remaining + frame[4:])
    assert rest == b""
    assert more[0].raw == frame


def test_parse_frames_empty():
    assert p.parse_frames(b"") == ([], b"")


def test_inventory_tag_count():
    frame = p.Frame(command=p.CMD_INVENTORY, status=p.STATUS_SUCCESS, data=b"\x03")
    assert p.inventory_tag_count(frame) == 3


def test_inventory_tag_count_non_success_and_wrong_command():
    frame = p.Frame(command=p.CMD_INVENTORY, status=p.STATUS_NO_TAG, data=b"\x03")
    assert p.inventory_tag_count(frame) == 0
    with pytest.raises(p.ProtocolError):
        p.inventory_tag_count(p.Frame(command=p.CMD_GET_READER_INFO, status=0))


def test_parse_inventory_g2_tags():
    frame = p.Frame(
        command=p.CMD_INVENTORY,
        status=p.STATUS_NO_TAG,
        data=bytes([0x01, 0x01, 0x0C]) + EPC + bytes([0x5A]),
    )
    tags = p.parse_inventory_g2_tags(frame)
    assert len(tags) == 1
    assert tags[0].antenna == 1
    assert len(tags[0].epc) == 12
    assert tags[0].epc == EPC
    assert tags[0].rssi == 0x5A


def test_parse_inventory_g2_tags_empty_payloads():
    assert p.parse_inventory_g2_tags(p.Frame(command=p.CMD_INVENTORY, status=1, data=b"\x01")) == []
    assert (
        p.parse_inventory_g2_tags(p.Frame(command=p.CMD_INVENTORY, status=1, data=b"\x01\x00")) == []
    )


@pytest.mark.parametrize(
    "data, fragment",
    [
        (bytes([0x01, 0x09]), "truncated"),
        (bytes([0x01, 0x01, 0x0C, 0x30]), "invalid"),
        (bytes([0x01, 0x01, 0x00]), "invalid"),
        (bytes([0x01, 0x01, 0x02, 0x30, 0x31]), "missing rssi"),
    ],
)
def test_parse_inventory_g2_tags_errors(data, fragment):
    frame = p.Frame(command=p.CMD_INVENTORY, status=p.STATUS_NO_TAG, data=data)
    with pytest.raises(p.ProtocolError, match=fragment):
        p.parse_inventory_g2_tags(frame)


def test_parse_inventory_g2_tags_wrong_command():
    with pytest.raises(p.ProtocolError):
        p.parse_inventory_g2_tags(p.Frame(command=p.CMD_INVENTORY_SINGLE, status=0, data=b"\x01\x01"))


def test_parse_single_inventory_result():
    frame = p.Frame(
        command=p.CMD_INVENTORY_SINGLE,
        status=p.STATUS_NO_TAG,
        data=bytes([0x01, 0x01, 0x0C]) + EPC,
    )
    result = p.parse_single_inventory_result(frame)
    assert result.antenna == 0x01
    assert result.tag_count == 1
    assert len(result.epc) == 12
    assert result.epc[0] == 0x30


def test_parse_single_inventory_result_status_success():
    frame = p.Frame(
        command=p.CMD_INVENTORY_SINGLE,
        status=p.STATUS_SUCCESS,
        data=bytes([0x01, 0x01, 0x0C]) + EPC,
    )
    assert p.parse_single_inventory_result(frame).tag_count == 1


@pytest.mark.parametrize(
    "frame",
    [
        p.Frame(command=p.CMD_INVENTORY, status=p.STATUS_SUCCESS, data=b"\x01\x01\x00"),
        p.Frame(command=p.CMD_INVENTORY_SINGLE, status=p.STATUS_NO_TAG_OR_TIMEOUT, data=b"\x01\x01\x00"),
        p.Frame(command=p.CMD_INVENTORY_SINGLE, status=p.STATUS_SUCCESS, data=b"\x01\x01"),
        p.Frame(command=p.CMD_INVENTORY_SINGLE, status=p.STATUS_SUCCESS, data=b"\x01\x01\x04\x30"),
    ],
)
def test_parse_single_inventory_result_errors(frame):
    with pytest.raises(p.ProtocolError):
        p.parse_single_inventory_result(frame)


def test_frame_round_trip_through_parser():
    data = bytes([0x01, 0x01, 0x0C]) + EPC
    wire = response_frame(0x00, p.CMD_INVENTORY_SINGLE, p.STATUS_NO_TAG, data)
    frames, _ = p.parse_frames(wire)
    result = p.parse_single_inventory_result(frames[0])
    assert result.epc == EPC