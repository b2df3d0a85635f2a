"""The LE part of the Logical Link Control and Adaptation Protocol (L2CAP)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, ClassVar, TypeVar

from rubble.errors import EofError, InvalidLengthError, InvalidValueError

_log = logging.getLogger(__name__)

MIN_DATA_PAYLOAD_BUF = 27
"""Smallest data channel PDU payload every LE link layer must support."""

LLID_DATA_START = 0b10
"""LLID of a data channel PDU that starts (or fully holds) an L2CAP message."""

_T = TypeVar("_T")


def _unknown_member(cls: type[IntEnum], value: object, bits: int) -> IntEnum | None:
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 1 << bits:
        member = int.__new__(cls, value)
        member._name_ = f"UNKNOWN_{value:#x}"
        member._value_ = value
        return member
    return None


@dataclass(frozen=True)
class Channel:
    """A 16-bit L2CAP channel identifier (CID)."""

    raw: int

    NULL: ClassVar[Channel]
    ATT: ClassVar[Channel]
    LE_SIGNALING: ClassVar[Channel]
    LE_SECURITY_MANAGER: ClassVar[Channel]

    SIZE: ClassVar[int] = 2

    def __post_init__(self) -> None:
        if not isinstance(self.raw, int) or not 0 <= self.raw <= 0xFFFF:
            raise InvalidValueError(f"channel identifier {self.raw!r} does not fit in 16 bits")

    def is_connection_oriented(self) -> bool:
        """Returns whether PDUs to this channel are B-, S- or I-frames."""
        return not self.is_connectionless()

    def is_connectionless(self) -> bool:
        """Returns whether PDUs to this channel are G-frames."""
        return self.raw in (0x0001, 0x0002, 0x0005)

    @classmethod
    def from_bytes(cls, data: bytes) -> Channel:
        """Reads a little-endian CID from the start of `data`."""
        if len(data) < cls.SIZE:
            raise EofError("channel identifier needs 2 bytes")
        return cls(int.from_bytes(bytes(data[: cls.SIZE]), "little"))

    def to_bytes(self) -> bytes:
        return self.raw.to_bytes(self.SIZE, "little")

    def __repr__(self) -> str:
        return f"0x{self.raw:04X}"


Channel.NULL = Channel(0x0000)
Channel.ATT = Channel(0x0004)
Channel.LE_SIGNALING = Channel(0x0005)
Channel.LE_SECURITY_MANAGER = Channel(0x0006)


class SignalingCode(IntEnum):
    """LE signaling channel opcodes; undefined values become unknown pseudo-members."""

    COMMAND_REJECT = 0x01
    DISCONNECTION_REQ = 0x06
    DISCONNECTION_RSP = 0x07
    CONNECTION_PARAMETER_UPDATE_REQ = 0x12
    CONNECTION_PARAMETER_UPDATE_RSP = 0x13
    CREDIT_BASED_CONNECTION_REQ = 0x14
    CREDIT_BASED_CONNECTION_RSP = 0x15
    FLOW_CONTROL_CREDIT = 0x16

    @classmethod
    def _missing_(cls, value: object) -> SignalingCode | None:
        return _unknown_member(cls, value, 8)

    @property
    def is_unknown(self) -> bool:
        return self._name_ not in type(self).__members__


class RejectReason(IntEnum):
    """Reasons given in a command reject response."""

    COMMAND_NOT_UNDERSTOOD = 0x0000
    SIGNALING_MTU_EXCEEDED = 0x0001
    INVALID_CID = 0x0002

    @classmethod
    def _missing_(cls, value: object) -> RejectReason | None:
        return _unknown_member(cls, value, 16)

    @property
    def is_unknown(self) -> bool:
        return self._name_ not in type(self).__members__


@dataclass(frozen=True)
class L2capHeader:
    """Header of every L2CAP PDU: payload length and destination channel."""

    length: int
    channel: Channel

    SIZE: ClassVar[int] = 4

    def __post_init__(self) -> None:
        if not 0 <= self.length <= 0xFFFF:
            raise InvalidLengthError(f"L2CAP length {self.length!r} does not fit in 16 bits")

    @classmethod
    def from_bytes(cls, data: bytes) -> L2capHeader:
        """Reads a header from the first 4 bytes of `data`."""
        if len(data) < cls.SIZE:
            raise EofError("L2CAP header needs 4 bytes")
        data = bytes(data)
        return cls(int.from_bytes(data[:2], "little"), Channel.from_bytes(data[2:4]))

    def to_bytes(self) -> bytes:
        return self.length.to_bytes(2, "little") + self.channel.to_bytes()


class TxBuffer:
    """A bounded queue of outgoing data channel PDUs as (LLID, payload) pairs."""

    def __init__(self, capacity: int = 4, max_payload: int = MIN_DATA_PAYLOAD_BUF) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if max_payload < 1:
            raise ValueError("max_payload must be at least 1")
        self._capacity = capacity
        self._max_payload = max_payload
        self._packets: deque[tuple[int, bytes]] = deque()

    def free_space(self) -> int:
        """Returns the largest payload that can be enqueued now (0 when full)."""
        return 0 if len(self._packets) >= self._capacity else self._max_payload

    def push(self, llid: int, payload: bytes) -> None:
        """Enqueues one PDU; raises EofError if it does not fit."""
        payload = bytes(payload)
        free = self.free_space()
        if len(payload) > free:
            raise EofError(f"{len(payload)} byte PDU does not fit in {free} free bytes")
        self._packets.append((llid, payload))

    def pop(self) -> tuple[int, bytes]:
        """Removes and returns the oldest queued PDU."""
        if not self._packets:
            raise IndexError("pop from an empty TX buffer")
        return self._packets.popleft()

    def __len__(self) -> int:
        return len(self._packets)

    def __iter__(self) -> Iterator[tuple[int, bytes]]:
        return iter(self._packets)


class Protocol(ABC):
    """A protocol listening on an L2CAP channel."""

    RSP_PDU_SIZE: ClassVar[int]
    """Minimum space the protocol needs for any PDU it sends."""

    @abstractmethod
    def process_message(self, message: bytes, responder: Sender) -> None:
        """Handles a reassembled message; `responder` has room for one response PDU."""


@dataclass
class ChannelData:
    """A connected channel: where responses go and which protocol listens."""

    response_channel: Channel
    protocol: Protocol

    def __post_init__(self) -> None:
        if self.pdu_size + L2capHeader.SIZE > MIN_DATA_PAYLOAD_BUF:
            raise ValueError(
                "protocol min PDU is larger than the data channel PDU (no L2CAP fragmentation)"
            )

    @property
    def pdu_size(self) -> int:
        """The protocol's minimum outgoing PDU size."""
        return self.protocol.RSP_PDU_SIZE


class Sender:
    """Sends L2CAP messages to one channel through a TX buffer."""

    def __init__(self, channel: Channel, pdu_size: int, tx: TxBuffer) -> None:
        self.channel = channel
        self.pdu_size = pdu_size
        self._tx = tx

    @classmethod
    def _open(cls, chdata: ChannelData, tx: TxBuffer) -> Sender | None:
        free = tx.free_space()
        needed = chdata.pdu_size + L2capHeader.SIZE
        if free < needed:
            _log.debug("%d free bytes, need %d", free, needed)
            return None
        return cls(chdata.response_channel, chdata.pdu_size, tx)

    def send(self, payload: Any) -> None:
        """Enqueues `payload` (bytes or an object with `to_bytes()`) as one message."""
        data = bytes(payload) if isinstance(payload, (bytes, bytearray, memoryview)) else payload.to_bytes()
        self.send_with(lambda buf: buf.extend(data))

    def send_with(self, write: Callable[[bytearray], _T]) -> _T:
        """Lets `write` fill the protocol PDU and enqueues it with its L2CAP header.

        Returns what `write` returns. If `write` raises, nothing is sent.
        """
        buf = bytearray()
        result = write(buf)
        if len(buf) > self.pdu_size:
            raise EofError(f"{len(buf)} byte PDU exceeds the {self.pdu_size} bytes available")
        header = L2capHeader(len(buf), self.channel)
        self._tx.push(LLID_DATA_START, header.to_bytes() + bytes(buf))
        return result


class ChannelMapper:
    """Maps fixed channels to the protocols listening on them."""

    def __init__(self, protocols: Mapping[Channel | int, Protocol] | None = None) -> None:
        self._channels: dict[Channel, ChannelData] = {}
        for key, protocol in (protocols or {}).items():
            channel = key if isinstance(key, Channel) else Channel(key)
            self._channels[channel] = ChannelData(channel, protocol)

    def lookup(self, channel: Channel) -> ChannelData | None:
        """Returns what is connected to `channel`, or None."""
        return self._channels.get(channel)


class L2capState:
    """L2CAP channel manager and responder."""

    def __init__(self, mapper: ChannelMapper) -> None:
        self.mapper = mapper

    def process_start(self, message: bytes, tx: TxBuffer) -> bool:
        """Handles a complete, unfragmented L2CAP message.

        Returns False if the message must be offered again later because the TX buffer
        lacked room for a response, True once it has been consumed.
        """
        message = bytes(message)
        header = L2capHeader.from_bytes(message)
        payload = message[L2capHeader.SIZE :]
        if header.length != len(payload):
            raise InvalidLengthError(
                f"L2CAP length {header.length} does not match {len(payload)} payload bytes "
                "(reassembly is not supported)"
            )
        return self._dispatch(header.channel, payload, tx)

    def _dispatch(self, channel: Channel, payload: bytes, tx: TxBuffer) -> bool:
        chdata = self.mapper.lookup(channel)
        if chdata is None:
            _log.warning(
                "ignoring message sent to unconnected channel %r: %s", channel, payload.hex()
            )
            return True
        sender = Sender._open(chdata, tx)
        if sender is None:
            return False
        chdata.protocol.process_message(payload, sender)
        return True