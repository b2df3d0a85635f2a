"""Advertising channel PDU header, device addresses and connection request parameters."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, IntEnum

from rubble.channel_map import ChannelMap
from rubble.errors import EofError, InvalidLengthError, InvalidValueError

CRC_PRESET = 0x00555555
"""CRC initialization value for advertising channel packets (24 bits count)."""

MAX_PAYLOAD_SIZE = 37
"""Maximum advertising PDU payload size in bytes."""

ACCESS_ADDRESS = 0x8E89BED6
"""Access Address used by all advertising channel packets."""

_TYPE_MASK = 0b00000000_00001111
_TXADD_MASK = 0b00000000_01000000
_RXADD_MASK = 0b00000000_10000000
_LENGTH_MASK = 0b00111111_00000000
_MIN_PAYLOAD_LENGTH = 6

_ADDRESS_SIZE = 6


class AddressKind(Enum):
    """Whether a device address is public or random."""

    PUBLIC = "public"
    RANDOM = "random"

    @classmethod
    def from_flag(cls, random: bool) -> AddressKind:
        """Maps a TxAdd/RxAdd header bit to an address kind."""
        return cls.RANDOM if random else cls.PUBLIC


@dataclass(frozen=True)
class DeviceAddress:
    """A 48-bit device address, stored in over-the-air (little-endian) byte order."""

    raw: bytes
    kind: AddressKind = AddressKind.PUBLIC

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) != _ADDRESS_SIZE:
            raise InvalidLengthError(f"device address needs {_ADDRESS_SIZE} bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    def is_random(self) -> bool:
        """Returns whether this is a random address."""
        return self.kind is AddressKind.RANDOM

    def __str__(self) -> str:
        return ":".join(f"{byte:02X}" for byte in reversed(self.raw))


class PduType(IntEnum):
    """4-bit advertising channel PDU type; undefined values become unknown pseudo-members."""

    ADV_IND = 0b0000
    ADV_DIRECT_IND = 0b0001
    ADV_NONCONN_IND = 0b0010
    SCAN_REQ = 0b0011
    SCAN_RSP = 0b0100
    CONNECT_REQ = 0b0101
    ADV_SCAN_IND = 0b0110

    @classmethod
    def _missing_(cls, value: object) -> PduType | None:
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 0xFF:
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value:#04x}"
            member._value_ = value
            return member
        return None

    @property
    def is_unknown(self) -> bool:
        """True for values that name no defined PDU type."""
        return self._name_ not in type(self).__members__

    def is_beacon(self) -> bool:
        """Returns whether this PDU type is a beacon advertisement."""
        return self is PduType.ADV_NONCONN_IND

    def allows_adv_data(self) -> bool:
        """Returns whether AD structures may follow the fixed data of this PDU type."""
        return not self.is_unknown and self in (
            PduType.ADV_IND,
            PduType.ADV_NONCONN_IND,
            PduType.ADV_SCAN_IND,
            PduType.SCAN_RSP,
        )


class Header:
    """16-bit advertising channel PDU header: type, TxAdd, RxAdd and payload length."""

    __slots__ = ("_raw",)

    SIZE = 2

    def __init__(self, raw: int = 0) -> None:
        if not 0 <= raw <= 0xFFFF:
            raise InvalidValueError(f"header value {raw!r} does not fit in 16 bits")
        self._raw = raw

    @classmethod
    def new(cls, ty: PduType | int) -> Header:
        """Creates a header for a payload of type `ty`, all other fields zero."""
        return cls(int(PduType(ty)) & 0xFF)

    @classmethod
    def parse(cls, raw: bytes) -> Header:
        """Reads a header from the first 2 bytes of `raw`."""
        if len(raw) < cls.SIZE:
            raise EofError("header needs 2 bytes")
        return cls(int.from_bytes(bytes(raw[: cls.SIZE]), "little"))

    def to_u16(self) -> int:
        """Returns the raw header, to be sent LSB first."""
        return self._raw

    def _set_bits(self, mask: int, value: bool) -> None:
        if value:
            self._raw |= mask
        else:
            self._raw &= ~mask & 0xFFFF

    def type_(self) -> PduType:
        return PduType(self._raw & _TYPE_MASK)

    def tx_add(self) -> bool:
        return bool(self._raw & _TXADD_MASK)

    def set_tx_add(self, value: bool) -> None:
        self._set_bits(_TXADD_MASK, value)

    def rx_add(self) -> bool:
        return bool(self._raw & _RXADD_MASK)

    def set_rx_add(self, value: bool) -> None:
        self._set_bits(_RXADD_MASK, value)

    def payload_length(self) -> int:
        """Returns the Length field; its range is not checked."""
        return (self._raw & _LENGTH_MASK) >> 8

    def set_payload_length(self, length: int) -> None:
        """Sets the Length field, which must be in 6..=37."""
        if not _MIN_PAYLOAD_LENGTH <= length <= MAX_PAYLOAD_SIZE:
            raise InvalidLengthError(f"payload length {length} outside 6..=37")
        self._raw = (self._raw & ~_LENGTH_MASK & 0xFFFF) | (length << 8)

    def to_bytes(self) -> bytes:
        return self._raw.to_bytes(self.SIZE, "little")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    def __repr__(self) -> str:
        return (
            f"Header(type={self.type_().name}, tx_add={self.tx_add()}, "
            f"rx_add={self.rx_add()}, len={self.payload_length()})"
        )


class SleepClockAccuracy(IntEnum):
    """Master sleep clock accuracy as encoded in the 3-bit SCA field."""

    PPM_251_TO_500 = 0
    PPM_151_TO_250 = 1
    PPM_101_TO_150 = 2
    PPM_76_TO_100 = 3
    PPM_51_TO_75 = 4
    PPM_31_TO_50 = 5
    PPM_21_TO_30 = 6
    PPM_0_TO_20 = 7


_LLDATA = struct.Struct("<I3sBHHHH5sB")
_UNIT_1250 = timedelta(microseconds=1250)
_UNIT_10MS = timedelta(microseconds=10_000)
_TRANSMIT_WINDOW_DELAY = timedelta(microseconds=1250)


@dataclass(frozen=True)
class ConnectRequestData:
    """Connection parameters (`LLData`) carried by a connection request."""

    SIZE = _LLDATA.size

    access_address: int
    crc_init: int
    win_size: timedelta
    win_offset: timedelta
    interval: timedelta
    slave_latency: int
    supervision_timeout: timedelta
    channel_map: ChannelMap
    hop: int
    sca: SleepClockAccuracy

    @classmethod
    def from_bytes(cls, data: bytes) -> ConnectRequestData:
        """Decodes the 22-byte `LLData` field at the start of `data`."""
        data = bytes(data)
        if len(data) < _LLDATA.size:
            raise EofError(f"LLData needs {_LLDATA.size} bytes, got {len(data)}")
        (
            access_address,
            crc_init,
            win_size,
            win_offset,
            interval,
            latency,
            timeout,
            chm,
            hop_and_sca,
        ) = _LLDATA.unpack_from(data)
        return cls(
            access_address=access_address,
            crc_init=int.from_bytes(crc_init, "little"),
            win_size=win_size * _UNIT_1250,
            win_offset=win_offset * _UNIT_1250,
            interval=interval * _UNIT_1250,
            slave_latency=latency,
            supervision_timeout=timeout * _UNIT_10MS,
            channel_map=ChannelMap.from_raw(chm),
            hop=hop_and_sca & 0b11111,
            sca=SleepClockAccuracy((hop_and_sca >> 5) & 0b111),
        )

    def end_of_tx_window(self) -> timedelta:
        """Returns the end of the transmit window, counted from reception of the request."""
        return self.win_offset + self.win_size + _TRANSMIT_WINDOW_DELAY