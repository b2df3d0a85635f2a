import uuid

import pytest

from rubble.ad_structure import (
    AdType,
    CompleteLocalName,
    Flags,
    FlagsAd,
    ManufacturerSpecificData,
    ServiceData16,
    ServiceUuids,
    ServiceUuidsAd,
    ShortenedLocalName,
    UnknownAd,
    UuidKind,
    decode_ad_structure,
    iter_ad_structures,
)
from rubble.errors import EofError, InvalidLengthError, InvalidValueError


def _all_flags():
    result = Flags(0)
    for member in Flags:
        result |= member
    return result


@pytest.mark.parametrize("flags", [Flags.discoverable(), Flags.broadcast(), Flags(0)])
def test_flags_round_trip(flags):
    ad, rest = decode_ad_structure(FlagsAd(flags).to_bytes())
    assert ad == FlagsAd(flags)
    assert rest == b""


def test_flags_wire_layout():
    encoded = FlagsAd(Flags.discoverable()).to_bytes()
    assert encoded[0] == len(encoded) - 1
    assert encoded[1] == AdType.FLAGS
    assert encoded[2] == Flags.discoverable().to_u8()


def test_flags_unknown_bits_truncated():
    ad, _ = decode_ad_structure(bytes([2, AdType.FLAGS, 0xFF]))
    assert ad == FlagsAd(_all_flags())


def test_flag_queries():
    disc = Flags.discoverable()
    assert disc.le_general_discoverable()
    assert not disc.le_limited_discoverable()
    bcast = Flags.broadcast()
    assert not bcast.le_general_discoverable()
    assert bcast.supports_classic_bluetooth()
    assert not Flags(0).supports_classic_bluetooth()


def test_flags_wrong_length():
    with pytest.raises(InvalidLengthError):
        decode_ad_structure(bytes([3, AdType.FLAGS, 0x06, 0x00]))


def test_zero_length():
    with pytest.raises(InvalidLengthError):
        decode_ad_structure(bytes([0, AdType.FLAGS]))


def test_truncated_structure():
    with pytest.raises(EofError):
        decode_ad_structure(bytes([5, AdType.COMPLETE_LOCAL_NAME, 0x61]))
    with pytest.raises(EofError):
        decode_ad_structure(b"")


@pytest.mark.parametrize("complete", [True, False])
def test_service_uuids16_round_trip(complete):
    uuids = ServiceUuids.from_uuids(UuidKind.UUID16, complete, [0x180F, 0x180A])
    ad, rest = decode_ad_structure(ServiceUuidsAd(uuids).to_bytes())
    assert ad == ServiceUuidsAd(uuids)
    assert ad.uuids.is_complete() is complete
    assert list(ad.uuids) == [0x180F, 0x180A]
    assert rest == b""


def test_service_uuids16_little_endian():
    uuids = ServiceUuids.from_uuids(UuidKind.UUID16, True, [0x180F])
    assert uuids.to_bytes() == bytes([AdType.COMPLETE_LIST_OF_16BIT_SERVICE_UUIDS, 0x0F, 0x18])


def test_service_uuids128_round_trip():
    value = uuid.UUID("12345678-1234-5678-1234-567812345678")
    uuids = ServiceUuids.from_uuids(UuidKind.UUID128, False, [value])
    decoded = ServiceUuids.from_bytes(UuidKind.UUID128, uuids.to_bytes())
    assert decoded == uuids
    assert decoded.type_() == AdType.INCOMPLETE_LIST_OF_128BIT_SERVICE_UUIDS
    assert uuids.to_bytes()[1:] == value.bytes[::-1]


def test_service_uuids_type():
    uuids = ServiceUuids.from_uuids(UuidKind.UUID32, True, [0x12345678])
    assert uuids.type_() == AdType.COMPLETE_LIST_OF_32BIT_SERVICE_UUIDS


def test_service_uuids_wrong_type():
    with pytest.raises(InvalidValueError):
        ServiceUuids.from_bytes(UuidKind.UUID16, bytes([AdType.FLAGS, 0x0F, 0x18]))


def test_service_uuids_ragged_length():
    with pytest.raises(InvalidLengthError):
        ServiceUuids.from_bytes(
            UuidKind.UUID16, bytes([AdType.COMPLETE_LIST_OF_16BIT_SERVICE_UUIDS, 0x0F])
        )


def test_service_uuid_out_of_range():
    with pytest.raises(InvalidValueError):
        ServiceUuids.from_uuids(UuidKind.UUID16, True, [0x10000])


def test_32bit_list_decodes_as_unknown():
    uuids = ServiceUuids.from_uuids(UuidKind.UUID32, True, [0x12345678])
    encoded = ServiceUuidsAd(uuids).to_bytes()
    ad, _ = decode_ad_structure(encoded)
    assert ad == UnknownAd(AdType.COMPLETE_LIST_OF_32BIT_SERVICE_UUIDS, encoded[2:])


@pytest.mark.parametrize(
    ("ad", "ty"),
    [
        (CompleteLocalName("rubble"), AdType.COMPLETE_LOCAL_NAME),
        (ShortenedLocalName("rubble"), AdType.SHORTENED_LOCAL_NAME),
    ],
)
def test_local_name_layout(ad, ty):
    encoded = ad.to_bytes()
    assert encoded[0] == len(encoded) - 1
    assert encoded[1] == ty
    assert encoded[2:] == b"rubble"


def test_manufacturer_data_layout():
    encoded = ManufacturerSpecificData(0x0059, b"\x01\x02").to_bytes()
    assert encoded[0] == len(encoded) - 1
    assert encoded[1] == AdType.MANUFACTURER_SPECIFIC_DATA
    assert encoded[2:4] == (0x0059).to_bytes(2, "little")
    assert encoded[4:] == b"\x01\x02"


def test_service_data_layout():
    encoded = ServiceData16(0x180F, b"\x64").to_bytes()
    assert encoded[1] == AdType.SERVICE_DATA_16BIT_UUID
    assert encoded[2:4] == (0x180F).to_bytes(2, "little")
    assert encoded[4:] == b"\x64"


def test_unknown_round_trip():
    original = UnknownAd(AdType.TX_POWER_LEVEL, b"\x04")
    ad, rest = decode_ad_structure(original.to_bytes() + b"\xaa")
    assert ad == original
    assert rest == b"\xaa"


def test_iter_ad_structures():
    items = [
        FlagsAd(Flags.discoverable()),
        UnknownAd(AdType.COMPLETE_LOCAL_NAME, b"rubble"),
        ServiceUuidsAd(ServiceUuids.from_uuids(UuidKind.UUID16, False, [0x180D])),
    ]
    data = b"".join(item.to_bytes() for item in items)
    assert list(iter_ad_structures(data)) == items


def test_too_long_structure():
    with pytest.raises(InvalidLengthError):
        UnknownAd(AdType.URI, bytes(255)).to_bytes()