"""Advertising Data (AD) structures carried in advertising packets and scan responses."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag

from rubble.errors import EofError, InvalidLengthError, InvalidValueError

_MAX_AD_LENGTH = 255


class AdType(IntEnum):
    """AD data type assigned numbers."""

    FLAGS = 0x01
    INCOMPLETE_LIST_OF_16BIT_SERVICE_UUIDS = 0x02
    COMPLETE_LIST_OF_16BIT_SERVICE_UUIDS = 0x03
    INCOMPLETE_LIST_OF_32BIT_SERVICE_UUIDS = 0x04
    COMPLETE_LIST_OF_32BIT_SERVICE_UUIDS = 0x05
    INCOMPLETE_LIST_OF_128BIT_SERVICE_UUIDS = 0x06
    COMPLETE_LIST_OF_128BIT_SERVICE_UUIDS = 0x07
    SHORTENED_LOCAL_NAME = 0x08
    COMPLETE_LOCAL_NAME = 0x09
    TX_POWER_LEVEL = 0x0A
    CLASS_OF_DEVICE = 0x0D
    SIMPLE_PAIRING_HASH_C = 0x0E
    SIMPLE_PAIRING_HASH_C192 = 0x0E
    SIMPLE_PAIRING_RANDOMIZER_R = 0x0F
    SIMPLE_PAIRING_RANDOMIZER_R192 = 0x0F
    DEVICE_ID = 0x10
    SECURITY_MANAGER_TK_VALUE = 0x10
    SECURITY_MANAGER_OUT_OF_BAND_FLAGS = 0x11
    SLAVE_CONNECTION_INTERVAL_RANGE = 0x12
    LIST_OF_16BIT_SERVICE_SOLICITATION_UUIDS = 0x14
    LIST_OF_128BIT_SERVICE_SOLICITATION_UUIDS = 0x15
    SERVICE_DATA = 0x16
    SERVICE_DATA_16BIT_UUID = 0x16
    PUBLIC_TARGET_ADDRESS = 0x17
    RANDOM_TARGET_ADDRESS = 0x18
    APPEARANCE = 0x19
    ADVERTISING_INTERVAL = 0x1A
    LE_BLUETOOTH_DEVICE_ADDRESS = 0x1B
    LE_ROLE = 0x1C
    SIMPLE_PAIRING_HASH_C256 = 0x1D
    SIMPLE_PAIRING_RANDOMIZER_R256 = 0x1E
    LIST_OF_32BIT_SERVICE_SOLICITATION_UUIDS = 0x1F
    SERVICE_DATA_32BIT_UUID = 0x20
    SERVICE_DATA_128BIT_UUID = 0x21
    LE_SECURE_CONNECTIONS_CONFIRMATION_VALUE = 0x22
    LE_SECURE_CONNECTIONS_RANDOM_VALUE = 0x23
    URI = 0x24
    INDOOR_POSITIONING = 0x25
    TRANSPORT_DISCOVERY_DATA = 0x26
    LE_SUPPORTED_FEATURES = 0x27
    CHANNEL_MAP_UPDATE_INDICATION = 0x28
    PB_ADV = 0x29
    MESH_MESSAGE = 0x2A
    MESH_BEACON = 0x2B
    THREE_D_INFORMATION_DATA = 0x3D
    MANUFACTURER_SPECIFIC_DATA = 0xFF


class UuidKind(Enum):
    """UUID widths; the value is the encoded size in bytes."""

    UUID16 = 2
    UUID32 = 4
    UUID128 = 16

    @property
    def size(self) -> int:
        return self.value

    def normalize(self, value: int | uuid.UUID) -> int | uuid.UUID:
        """Checks a UUID of this width; 128-bit UUIDs become `uuid.UUID`."""
        if self is UuidKind.UUID128:
            if isinstance(value, uuid.UUID):
                return value
            if isinstance(value, int) and 0 <= value < 1 << 128:
                return uuid.UUID(int=value)
            raise InvalidValueError(f"not a 128-bit UUID: {value!r}")
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 1 << (8 * self.size):
            return value
        raise InvalidValueError(f"not a {8 * self.size}-bit UUID: {value!r}")

    def encode(self, value: int | uuid.UUID) -> bytes:
        """Encodes a UUID of this width in little endian."""
        value = self.normalize(value)
        number = value.int if isinstance(value, uuid.UUID) else value
        return number.to_bytes(self.size, "little")

    def decode(self, raw: bytes) -> int | uuid.UUID:
        """Decodes a little-endian UUID of this width."""
        number = int.from_bytes(raw, "little")
        return uuid.UUID(int=number) if self is UuidKind.UUID128 else number


_LIST_TYPES = {
    UuidKind.UUID16: (
        AdType.COMPLETE_LIST_OF_16BIT_SERVICE_UUIDS,
        AdType.INCOMPLETE_LIST_OF_16BIT_SERVICE_UUIDS,
    ),
    UuidKind.UUID32: (
        AdType.COMPLETE_LIST_OF_32BIT_SERVICE_UUIDS,
        AdType.INCOMPLETE_LIST_OF_32BIT_SERVICE_UUIDS,
    ),
    UuidKind.UUID128: (
        AdType.COMPLETE_LIST_OF_128BIT_SERVICE_UUIDS,
        AdType.INCOMPLETE_LIST_OF_128BIT_SERVICE_UUIDS,
    ),
}


class Flags(IntFlag):
    """BR/EDR and LE compatibility flags."""

    LE_LIMITED_DISCOVERABLE = 0b00000001
    LE_GENERAL_DISCOVERABLE = 0b00000010
    BR_EDR_NOT_SUPPORTED = 0b00000100
    SIMUL_LE_BR_CONTROLLER = 0b00001000
    SIMUL_LE_BR_HOST = 0b00010000

    @classmethod
    def discoverable(cls) -> Flags:
        """Flags for an LE-only device in General Discoverable mode."""
        return cls.BR_EDR_NOT_SUPPORTED | cls.LE_GENERAL_DISCOVERABLE

    @classmethod
    def broadcast(cls) -> Flags:
        """Flags for an LE-only, non-discoverable broadcaster."""
        return cls.BR_EDR_NOT_SUPPORTED

    @classmethod
    def from_bits_truncate(cls, bits: int) -> Flags:
        """Builds flags from raw bits, dropping undefined ones."""
        mask = sum(member.value for member in cls)
        return cls(bits & mask)

    def to_u8(self) -> int:
        return int(self)

    def supports_classic_bluetooth(self) -> bool:
        return bool(self & Flags.BR_EDR_NOT_SUPPORTED)

    def le_limited_discoverable(self) -> bool:
        return bool(self & Flags.LE_LIMITED_DISCOVERABLE)

    def le_general_discoverable(self) -> bool:
        return bool(self & Flags.LE_GENERAL_DISCOVERABLE)


def _chunks(data: bytes, size: int) -> Iterator[bytes]:
    for start in range(0, len(data), size):
        yield data[start : start + size]


@dataclass(frozen=True)
class ServiceUuids:
    """A complete or incomplete list of service UUIDs of one width."""

    kind: UuidKind
    complete: bool
    uuids: tuple

    def __post_init__(self) -> None:
        object.__setattr__(self, "uuids", tuple(self.kind.normalize(u) for u in self.uuids))

    @classmethod
    def from_uuids(cls, kind: UuidKind, complete: bool, uuids: Iterable) -> ServiceUuids:
        return cls(kind, complete, tuple(uuids))

    @classmethod
    def from_bytes(cls, kind: UuidKind, data: bytes) -> ServiceUuids:
        """Decodes the type byte followed by little-endian UUIDs."""
        if not data:
            raise EofError()
        complete_type, incomplete_type = _LIST_TYPES[kind]
        ty = data[0]
        if ty == complete_type:
            complete = True
        elif ty == incomplete_type:
            complete = False
        else:
            raise InvalidValueError(f"unexpected AD type {ty:#04x} for {kind.name} list")
        payload = bytes(data[1:])
        if len(payload) % kind.size:
            raise InvalidLengthError(f"UUID list length {len(payload)} not a multiple of {kind.size}")
        return cls(kind, complete, tuple(kind.decode(chunk) for chunk in _chunks(payload, kind.size)))

    def is_complete(self) -> bool:
        return self.complete

    def type_(self) -> AdType:
        complete_type, incomplete_type = _LIST_TYPES[self.kind]
        return complete_type if self.complete else incomplete_type

    def to_bytes(self) -> bytes:
        return bytes([self.type_()]) + b"".join(self.kind.encode(u) for u in self.uuids)

    def __iter__(self) -> Iterator:
        return iter(self.uuids)


class AdStructure(ABC):
    """One length-prefixed AD structure."""

    __slots__ = ()

    @abstractmethod
    def _type_and_data(self) -> bytes:
        """Returns the type byte followed by the structure's data."""

    def to_bytes(self) -> bytes:
        """Encodes the structure including its length byte."""
        body = self._type_and_data()
        if len(body) > _MAX_AD_LENGTH:
            raise InvalidLengthError(f"AD structure of {len(body)} bytes is too long")
        return bytes([len(body)]) + body


def _check_u16(value: int, what: str) -> None:
    if not 0 <= value <= 0xFFFF:
        raise InvalidValueError(f"{what} {value!r} does not fit in 16 bits")


@dataclass(frozen=True)
class FlagsAd(AdStructure):
    flags: Flags

    def _type_and_data(self) -> bytes:
        return bytes([AdType.FLAGS, Flags(self.flags).to_u8()])


@dataclass(frozen=True)
class ServiceUuidsAd(AdStructure):
    uuids: ServiceUuids

    def _type_and_data(self) -> bytes:
        return self.uuids.to_bytes()


@dataclass(frozen=True)
class ServiceData16(AdStructure):
    """Service data attached to a 16-bit service UUID."""

    uuid: int
    data: bytes = b""

    def __post_init__(self) -> None:
        _check_u16(self.uuid, "service UUID")
        object.__setattr__(self, "data", bytes(self.data))

    def _type_and_data(self) -> bytes:
        return bytes([AdType.SERVICE_DATA_16BIT_UUID]) + self.uuid.to_bytes(2, "little") + self.data


@dataclass(frozen=True)
class CompleteLocalName(AdStructure):
    name: str

    def _type_and_data(self) -> bytes:
        return bytes([AdType.COMPLETE_LOCAL_NAME]) + self.name.encode("utf-8")


@dataclass(frozen=True)
class ShortenedLocalName(AdStructure):
    name: str

    def _type_and_data(self) -> bytes:
        return bytes([AdType.SHORTENED_LOCAL_NAME]) + self.name.encode("utf-8")


@dataclass(frozen=True)
class ManufacturerSpecificData(AdStructure):
    company_identifier: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        _check_u16(self.company_identifier, "company identifier")
        object.__setattr__(self, "payload", bytes(self.payload))

    def _type_and_data(self) -> bytes:
        return (
            bytes([AdType.MANUFACTURER_SPECIFIC_DATA])
            + self.company_identifier.to_bytes(2, "little")
            + self.payload
        )


@dataclass(frozen=True)
class UnknownAd(AdStructure):
    """An AD structure kept as its raw type byte and data."""

    ty: int
    data: bytes = b""

    def __post_init__(self) -> None:
        if not 0 <= self.ty <= 0xFF:
            raise InvalidValueError(f"AD type {self.ty!r} does not fit in a byte")
        object.__setattr__(self, "data", bytes(self.data))

    def _type_and_data(self) -> bytes:
        return bytes([self.ty]) + self.data


def decode_ad_structure(data: bytes) -> tuple[AdStructure, bytes]:
    """Decodes one AD structure and returns it with the bytes that follow it."""
    data = bytes(data)
    if not data:
        raise EofError()
    length = data[0]
    if length == 0:
        raise InvalidLengthError("AD structure length must cover the type byte")
    if len(data) < 1 + length:
        raise EofError()
    type_and_data = data[1 : 1 + length]
    ty, body = type_and_data[0], type_and_data[1:]

    if ty == AdType.FLAGS:
        if len(body) != 1:
            raise InvalidLengthError("flags AD structure must hold exactly one byte")
        ad: AdStructure = FlagsAd(Flags.from_bits_truncate(body[0]))
    elif ty in _LIST_TYPES[UuidKind.UUID16]:
        ad = ServiceUuidsAd(ServiceUuids.from_bytes(UuidKind.UUID16, type_and_data))
    else:
        ad = UnknownAd(ty, body)
    return ad, data[1 + length :]


def iter_ad_structures(data: bytes) -> Iterator[AdStructure]:
    """Yields every AD structure in a buffer of concatenated structures."""
    rest = bytes(data)
    while rest:
        ad, rest = decode_ad_structure(rest)
        yield ad