"""Advertising channel PDUs: parsing received packets and building packets to send."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rubble.ad_structure import AdStructure, Flags, FlagsAd, iter_ad_structures
from rubble.adv_header import (
    MAX_PAYLOAD_SIZE,
    AddressKind,
    ConnectRequestData,
    DeviceAddress,
    Header,
    PduType,
)
from rubble.errors import EofError, InvalidLengthError, InvalidValueError

_ADDRESS_SIZE = 6

_ADV_DATA_TYPES = frozenset(
    {PduType.ADV_IND, PduType.ADV_NONCONN_IND, PduType.ADV_SCAN_IND, PduType.SCAN_RSP}
)


def _read_address(payload: bytes, offset: int, random: bool) -> DeviceAddress:
    end = offset + _ADDRESS_SIZE
    if len(payload) < end:
        raise EofError("payload too short for a device address")
    return DeviceAddress(payload[offset:end], AddressKind.from_flag(random))


@dataclass(frozen=True)
class Pdu:
    """A parsed advertising channel PDU."""

    kind: PduType
    sender_address: DeviceAddress
    receiver_address: DeviceAddress | None = None
    ad_structures: tuple[AdStructure, ...] | None = None
    connect_data: ConnectRequestData | None = None

    @classmethod
    def from_header_and_payload(cls, header: Header, payload: bytes) -> Pdu:
        """Parses `payload`, whose length must match the one given in `header`."""
        payload = bytes(payload)
        if header.payload_length() != len(payload):
            raise InvalidLengthError(
                f"header announces {header.payload_length()} bytes, payload has {len(payload)}"
            )

        ty = header.type_()
        if ty.is_unknown:
            raise InvalidValueError(f"unknown advertising PDU type {int(ty):#04x}")

        sender = _read_address(payload, 0, header.tx_add())
        if ty in _ADV_DATA_TYPES:
            ads = tuple(iter_ad_structures(payload[_ADDRESS_SIZE:]))
            return cls(ty, sender, ad_structures=ads)

        receiver = _read_address(payload, _ADDRESS_SIZE, header.rx_add())
        if ty is PduType.CONNECT_REQ:
            lldata = ConnectRequestData.from_bytes(payload[2 * _ADDRESS_SIZE :])
            return cls(ty, sender, receiver, connect_data=lldata)
        # ADV_DIRECT_IND and SCAN_REQ carry only two addresses.
        return cls(ty, sender, receiver)

    @classmethod
    def from_bytes(cls, data: bytes) -> Pdu:
        """Decodes a PDU consisting of the 2-byte header and the payload."""
        data = bytes(data)
        header = Header.parse(data)
        return cls.from_header_and_payload(header, data[Header.SIZE :])

    def sender(self) -> DeviceAddress:
        """Returns the address of the device that sent this PDU."""
        return self.sender_address

    def receiver(self) -> DeviceAddress | None:
        """Returns the intended receiver, or None if the PDU has no fixed receiver."""
        return self.receiver_address

    def ty(self) -> PduType:
        """Returns the PDU type."""
        return self.kind

    def advertising_data(self) -> tuple[AdStructure, ...] | None:
        """Returns the AD structures in the PDU, or None if its type carries none."""
        return self.ad_structures


class PduBuf:
    """An advertising channel PDU built for sending."""

    __slots__ = ("_header", "_payload")

    def __init__(self, header: Header, payload: bytes) -> None:
        self._header = Header(header.to_u16())
        self._payload = bytes(payload)

    @classmethod
    def _adv(
        cls, ty: PduType, advertiser_addr: DeviceAddress, ads: Iterable[AdStructure]
    ) -> PduBuf:
        payload = advertiser_addr.raw + b"".join(ad.to_bytes() for ad in ads)
        if len(payload) > MAX_PAYLOAD_SIZE:
            raise EofError(
                f"advertising payload of {len(payload)} bytes exceeds {MAX_PAYLOAD_SIZE}"
            )
        header = Header.new(ty)
        header.set_payload_length(len(payload))
        header.set_tx_add(advertiser_addr.is_random())
        header.set_rx_add(False)
        return cls(header, payload)

    @classmethod
    def connectable_undirected(
        cls, advertiser_addr: DeviceAddress, advertiser_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates an `ADV_IND` PDU."""
        return cls._adv(PduType.ADV_IND, advertiser_addr, advertiser_data)

    @classmethod
    def connectable_directed(
        cls, advertiser_addr: DeviceAddress, initiator_addr: DeviceAddress
    ) -> PduBuf:
        """Creates an `ADV_DIRECT_IND` PDU."""
        header = Header.new(PduType.ADV_DIRECT_IND)
        header.set_payload_length(2 * _ADDRESS_SIZE)
        header.set_tx_add(advertiser_addr.is_random())
        header.set_rx_add(initiator_addr.is_random())
        return cls(header, advertiser_addr.raw + initiator_addr.raw)

    @classmethod
    def nonconnectable_undirected(
        cls, advertiser_addr: DeviceAddress, advertiser_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates an `ADV_NONCONN_IND` PDU."""
        return cls._adv(PduType.ADV_NONCONN_IND, advertiser_addr, advertiser_data)

    @classmethod
    def scannable_undirected(
        cls, advertiser_addr: DeviceAddress, advertiser_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates an `ADV_SCAN_IND` PDU."""
        return cls._adv(PduType.ADV_SCAN_IND, advertiser_addr, advertiser_data)

    @classmethod
    def beacon(
        cls, advertiser_addr: DeviceAddress, advertiser_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates a beacon PDU; the same as `nonconnectable_undirected`."""
        return cls.nonconnectable_undirected(advertiser_addr, advertiser_data)

    @classmethod
    def discoverable(
        cls, advertiser_addr: DeviceAddress, advertiser_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates an `ADV_IND` PDU preceded by a discoverable `Flags` AD structure."""
        ads = [FlagsAd(Flags.discoverable()), *advertiser_data]
        return cls._adv(PduType.ADV_IND, advertiser_addr, ads)

    @classmethod
    def scan_response(
        cls, advertiser_addr: DeviceAddress, scan_data: Iterable[AdStructure]
    ) -> PduBuf:
        """Creates a `SCAN_RSP` PDU."""
        return cls._adv(PduType.SCAN_RSP, advertiser_addr, scan_data)

    @property
    def header(self) -> Header:
        """A copy of the PDU header."""
        return Header(self._header.to_u16())

    def payload(self) -> bytes:
        """Returns the payload, as long as the header's Length field says."""
        return self._payload[: self._header.payload_length()]

    def to_bytes(self) -> bytes:
        """Returns header and payload as sent on air."""
        return self._header.to_bytes() + self.payload()

    def __repr__(self) -> str:
        return f"PduBuf({self._header!r}, {self.payload().hex()})"