# rubble

Encoding and decoding of Bluetooth Low Energy packets for the advertising
channels and the L2CAP layer, following the Bluetooth Core Specification v4.2.

The package uses only the standard library. It turns packets into bytes and
bytes back into packets, so it can be used by simulators, sniffers, test
harnesses or any code that drives a radio of its own.

## Modules

- `rubble.errors` — `RubbleError` and its subclasses `EofError`,
  `InvalidLengthError` and `InvalidValueError`; the `VersionNumber` enum and
  `BLUETOOTH_VERSION` (`VersionNumber.V4_2`).
- `rubble.channel_map` — `ChannelMap`, the 5-byte map of the 37 data
  channels carried in connection requests: `from_raw`, `with_all_channels`,
  `to_raw`, `num_used_channels`, `is_used`, `iter_used` and `by_index`. The
  three reserved bits of the last byte are ignored.
- `rubble.ad_structure` — advertising data (AD) structures. `Flags` (an
  `IntFlag` with `discoverable()` and `broadcast()`), `ServiceUuids` for
  16-, 32- and 128-bit service UUID lists (`UuidKind`), and the structures
  `FlagsAd`, `ServiceUuidsAd`, `ServiceData16`, `CompleteLocalName`,
  `ShortenedLocalName`, `ManufacturerSpecificData` and `UnknownAd`, each with
  `to_bytes()`. `AdType` holds the assigned type numbers.
  `decode_ad_structure` and `iter_ad_structures` parse received data; they
  recognise flags and 16-bit service UUID lists and return every other type
  as an `UnknownAd` holding its type byte and raw data.
- `rubble.adv_header` — the 16-bit advertising PDU `Header`, `PduType`,
  `DeviceAddress` with `AddressKind`, `SleepClockAccuracy` and
  `ConnectRequestData` (the `LLData` of a connection request, with durations
  as `datetime.timedelta`). Also the constants `ACCESS_ADDRESS`,
  `CRC_PRESET` and `MAX_PAYLOAD_SIZE`.
- `rubble.advertising` — `Pdu`, a parsed advertising channel PDU
  (`from_bytes`, `from_header_and_payload`, `sender`, `receiver`, `ty`,
  `advertising_data`), and `PduBuf` for building outgoing PDUs:
  `connectable_undirected`, `connectable_directed`,
  `nonconnectable_undirected`, `scannable_undirected`, `beacon`,
  `discoverable` (adds a discoverable `Flags` structure first) and
  `scan_response`.
- `rubble.l2cap` — `Channel` identifiers (`NULL`, `ATT`, `LE_SIGNALING`,
  `LE_SECURITY_MANAGER`), `L2capHeader`, the `SignalingCode` and
  `RejectReason` enums, a bounded transmit queue `TxBuffer`, the `Protocol`
  base class, `ChannelData`, `Sender`, `ChannelMapper` and `L2capState`,
  which hands each incoming message to the protocol listening on its channel.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Build a beacon and serialize it for transmission:

```python
from rubble.adv_header import AddressKind, DeviceAddress
from rubble.ad_structure import CompleteLocalName
from rubble.advertising import PduBuf

addr = DeviceAddress(bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06]), AddressKind.RANDOM)
pdu = PduBuf.beacon(addr, [CompleteLocalName("demo")])
packet = pdu.to_bytes()
```

Parse a received advertising PDU and walk its AD structures:

```python
from rubble.advertising import Pdu

pdu = Pdu.from_bytes(packet)
print(pdu.ty(), pdu.sender())
for ad in pdu.advertising_data() or ():
    print(ad)
```

Inspect a channel map:

```python
from rubble.channel_map import ChannelMap

chm = ChannelMap.with_all_channels()
print(chm.num_used_channels())  # 37
print(list(chm.iter_used())[:3])  # [0, 1, 2]
```

Dispatch an L2CAP message to a protocol and collect its response:

```python
from rubble.l2cap import Channel, ChannelMapper, L2capState, Protocol, TxBuffer

class Echo(Protocol):
    RSP_PDU_SIZE = 23

    def process_message(self, message, responder):
        responder.send(message)

state = L2capState(ChannelMapper({Channel.ATT: Echo()}))
tx = TxBuffer()
state.process_start(bytes([3, 0, 4, 0, 1, 2, 3]), tx)  # True: consumed
print(tx.pop())  # (2, b'\x03\x00\x04\x00\x01\x02\x03')
```

`process_start` returns `False` when the `TxBuffer` has no room for a
response; the message should then be offered again later. Messages to
channels with no protocol are logged and dropped.

## Errors

Errors are raised as subclasses of `rubble.errors.RubbleError`: truncated
input or a packet that does not fit raises `EofError`, bad length fields
raise `InvalidLengthError`, and unknown or malformed values raise
`InvalidValueError`.

## What the package does not do

- It does not talk to radio hardware and has no timers or connection state
  machine; it only encodes and decodes packets.
- L2CAP messages are not fragmented or reassembled: a message whose length
  field does not match its payload raises `InvalidLengthError`, and a
  response must fit into one data channel PDU.
- No protocols are provided for the L2CAP channels. There is no attribute
  server, no signaling handler and no security manager; `ChannelMapper`
  connects whatever `Protocol` subclasses you give it.
- `PduBuf` does not build scan requests or connection requests.