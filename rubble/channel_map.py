"""Data channel maps as carried in connection requests."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import islice

from rubble.errors import InvalidLengthError

NUM_DATA_CHANNELS = 37
_RAW_SIZE = 5
_RFU_MASK = 0b11111


def _check_channel(channel: int) -> int:
    if not 0 <= channel < NUM_DATA_CHANNELS:
        raise ValueError(f"data channel {channel} out of range 0..36")
    return channel


class ChannelMap:
    """A map marking each of the 37 data channels as used or unused."""

    __slots__ = ("_raw", "_num_used")

    def __init__(self, raw: Iterable[int]) -> None:
        data = bytes(raw)
        if len(data) != _RAW_SIZE:
            raise InvalidLengthError(f"channel map needs {_RAW_SIZE} bytes, got {len(data)}")
        # The 3 most significant bits of the last byte are reserved and ignored.
        self._raw = data[:4] + bytes([data[4] & _RFU_MASK])
        self._num_used = sum(byte.bit_count() for byte in self._raw)

    @classmethod
    def from_raw(cls, raw: Iterable[int]) -> ChannelMap:
        """Creates a map from the 5-byte `ChM` field, LSB of the first byte being channel 0."""
        return cls(raw)

    @classmethod
    def with_all_channels(cls) -> ChannelMap:
        """Creates a map that marks all data channels as used."""
        return cls(b"\xff\xff\xff\xff" + bytes([_RFU_MASK]))

    def to_raw(self) -> bytes:
        """Returns the 5 raw bytes encoding this map."""
        return self._raw

    def num_used_channels(self) -> int:
        """Returns the number of channels marked as used."""
        return self._num_used

    def is_used(self, channel: int) -> bool:
        """Returns whether the given data channel is marked as used."""
        _check_channel(channel)
        return bool(self._raw[channel // 8] >> (channel % 8) & 1)

    def iter_used(self) -> Iterator[int]:
        """Yields the used data channels in ascending order."""
        return (channel for channel in range(NUM_DATA_CHANNELS) if self.is_used(channel))

    def by_index(self, n: int) -> int:
        """Returns the `n`th used channel; raises IndexError if there is none."""
        if n < 0:
            raise IndexError("by_index: index out of bounds")
        try:
            return next(islice(self.iter_used(), n, None))
        except StopIteration:
            raise IndexError("by_index: index out of bounds") from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChannelMap):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    def __str__(self) -> str:
        return "".join("1" if self.is_used(ch) else "0" for ch in range(NUM_DATA_CHANNELS))

    def __repr__(self) -> str:
        return f"ChannelMap({self} {list(self._raw)})"