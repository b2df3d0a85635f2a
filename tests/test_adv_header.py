import struct
from datetime import timedelta

import pytest

from rubble.adv_header import (
    AddressKind,
    ConnectRequestData,
    DeviceAddress,
    Header,
    PduType,
    SleepClockAccuracy,
)
from rubble.channel_map import ChannelMap
from rubble.errors import EofError, InvalidLengthError

ADDR = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06])


def test_device_address_kind():
    assert DeviceAddress(ADDR, AddressKind.RANDOM).is_random()
    assert not DeviceAddress(ADDR).is_random()
    assert DeviceAddress(ADDR).raw == ADDR


def test_device_address_wrong_length():
    with pytest.raises(InvalidLengthError):
        DeviceAddress(b"\x01\x02")


def test_device_address_str_reverses_bytes():
    assert str(DeviceAddress(ADDR)) == "06:05:04:03:02:01"


def test_address_kind_from_flag():
    assert AddressKind.from_flag(True) is AddressKind.RANDOM
    assert AddressKind.from_flag(False) is AddressKind.PUBLIC


@pytest.mark.parametrize("ty", list(PduType))
def test_header_new_type_roundtrip(ty):
    header = Header.new(ty)
    assert header.type_() is ty
    assert header.to_u16() == int(ty)
    assert not header.tx_add()
    assert not header.rx_add()


def test_tx_rx_add_set_and_clear():
    header = Header.new(PduType.ADV_IND)
    header.set_tx_add(True)
    assert header.tx_add() and not header.rx_add()
    header.set_rx_add(True)
    assert header.tx_add() and header.rx_add()
    header.set_tx_add(False)
    assert not header.tx_add() and header.rx_add()
    header.set_rx_add(False)
    assert header.to_u16() == int(PduType.ADV_IND)


@pytest.mark.parametrize("length", [6, 12, 37])
def test_payload_length_roundtrip(length):
    header = Header.new(PduType.SCAN_RSP)
    header.set_tx_add(True)
    header.set_payload_length(length)
    assert header.payload_length() == length
    assert header.type_() is PduType.SCAN_RSP
    assert header.tx_add()


@pytest.mark.parametrize("length", [0, 5, 38, 63])
def test_payload_length_out_of_range(length):
    with pytest.raises(InvalidLengthError):
        Header.new(PduType.ADV_IND).set_payload_length(length)


def test_to_bytes_and_parse_roundtrip():
    header = Header.new(PduType.CONNECT_REQ)
    header.set_rx_add(True)
    header.set_payload_length(34)
    raw = header.to_bytes()
    assert raw == header.to_u16().to_bytes(2, "little")
    parsed = Header.parse(raw + b"\xaa")
    assert parsed == header
    assert parsed.payload_length() == 34


def test_parse_too_short():
    with pytest.raises(EofError):
        Header.parse(b"\x00")


def test_unknown_pdu_type():
    header = Header.parse(bytes([0x07, 0x06]))
    ty = header.type_()
    assert ty.is_unknown
    assert int(ty) == 7
    assert not ty.allows_adv_data()
    assert not ty.is_beacon()


def test_pdu_type_properties():
    assert PduType.ADV_NONCONN_IND.is_beacon()
    assert not PduType.ADV_IND.is_beacon()
    allowed = {t for t in PduType if t.allows_adv_data()}
    assert allowed == {
        PduType.ADV_IND,
        PduType.ADV_NONCONN_IND,
        PduType.ADV_SCAN_IND,
        PduType.SCAN_RSP,
    }
    assert not PduType.ADV_IND.is_unknown


def _lldata(hop_and_sca, chm=b"\xff\xff\xff\xff\x1f"):
    return struct.pack(
        "<I3sBHHHH5sB",
        0x12345678,
        b"\x11\x22\x33",
        2,
        4,
        24,
        3,
        100,
        chm,
        hop_and_sca,
    )


def test_connect_request_data_decodes_fields():
    data = ConnectRequestData.from_bytes(_lldata((5 << 5) | 9))
    assert data.access_address == 0x12345678
    assert data.crc_init == int.from_bytes(b"\x11\x22\x33", "little")
    assert data.win_size == 2 * timedelta(microseconds=1250)
    assert data.win_offset == 4 * timedelta(microseconds=1250)
    assert data.interval == 24 * timedelta(microseconds=1250)
    assert data.slave_latency == 3
    assert data.supervision_timeout == 100 * timedelta(microseconds=10_000)
    assert data.channel_map == ChannelMap.with_all_channels()
    assert data.hop == 9
    assert data.sca is SleepClockAccuracy.PPM_31_TO_50


def test_connect_request_end_of_tx_window():
    data = ConnectRequestData.from_bytes(_lldata(5))
    assert data.end_of_tx_window() == data.win_offset + data.win_size + timedelta(microseconds=1250)


@pytest.mark.parametrize("sca", list(SleepClockAccuracy))
def test_connect_request_sca_values(sca):
    data = ConnectRequestData.from_bytes(_lldata((int(sca) << 5) | 16))
    assert data.sca is sca
    assert data.hop == 16


def test_connect_request_ignores_trailing_bytes():
    raw = _lldata(7)
    assert ConnectRequestData.from_bytes(raw + b"\x00\x00") == ConnectRequestData.from_bytes(raw)
    assert ConnectRequestData.SIZE == len(raw)


def test_connect_request_too_short():
    with pytest.raises(EofError):
        ConnectRequestData.from_bytes(_lldata(7)[:-1])