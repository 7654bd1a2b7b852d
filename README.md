# v2xnode

A vehicle-to-everything (V2X) accident warning node. Each car runs one node.
The node:

- reads its own accident reports (WL-3 frames) and driving heading (WL-4
  frames) from a companion board over a UART link;
- builds 128-byte WL-1 accident packets, signs them and broadcasts them over
  UDP;
- receives WL-1 packets from other cars, passes them through verification, and
  drops its own loopback traffic;
- judges each received accident by distance, altitude difference and heading,
  can show a warning on an I2C character LCD and an SH1106 OLED, and relays the
  packet while its TTL lasts;
- reports the nearest active accident back to the companion board as a 6-byte
  WL-2 summary, at most every half second.

## Installing

```
pip install .
```

To run the tests, install the `test` extra and run pytest:

```
pip install .[test]
pytest
```

## Running a node

```
v2xnode 1111
```

The argument is the node's sender id, in hexadecimal (a `0x` prefix is
accepted). If you leave it out, `1111` is used. Press Ctrl+C to stop the node;
it then wakes its worker threads and waits for them to finish before it exits.

Packets go out as UDP broadcasts to `10.0.0.255` on port 5555. The node
listens on the same port on all interfaces. The companion board is reached
through `/dev/ttyAMA3` at 9600 baud, 8N1. If the UART cannot be opened, an
error is logged and the node runs on without it.

## Using the pieces

The wire formats live in `v2xnode.protocol`. Each packet class has
`to_bytes()` and `from_bytes()`:

```python
from v2xnode.protocol import Wl1Packet

packet = Wl1Packet()
packet.header.ttl = 3
packet.accident.accident_id = 0x1234
raw = packet.to_bytes()          # 128 bytes
assert Wl1Packet.from_bytes(raw).accident.accident_id == 0x1234
```

`Wl2Packet`, `Wl3Packet` and `Wl4Packet` expose their packed bit fields as
properties (`distance`, `severity`, `direction`, `timestamp` and so on).

Other modules:

- `v2xnode.msgqueue.MessageQueue` is the thread-safe FIFO that links the
  pipeline stages. It has a blocking `pop()` and a non-blocking `pop_nowait()`.
- `v2xnode.security` holds `sign`, `verify` and the two security workers.
- `v2xnode.state` holds `DrivingStatus`, the simulated `GpsSimulator` and the
  `driving_manager` worker.
- `v2xnode.valuation` holds `calc_dist`, `get_angle_diff`, `AccidentTable` and
  `Valuator`.
- `v2xnode.packets` holds `assemble_own_accident`, `stamp_sender`, `PacketTx`
  and `PacketRx`.
- `v2xnode.wireless.WirelessLink` opens the UDP broadcast link for sending
  (`open_tx`) or receiving (`open_rx`).
- `v2xnode.yocto` holds `open_uart`, `parse_wl3_frame` and `YoctoInterface`.
- `v2xnode.display` drives the displays (LCD on `/dev/i2c-4` at 0x27, OLED on
  `/dev/i2c-1` at 0x3C). `Display.open()` opens whichever panels are present;
  `lcd_lines` and `oled_message` build the display text without any hardware.
- `v2xnode.app.Node` wires every stage together. Call `start()`, `stop()` and
  `join()` on it. Pass `display=Display.open()` to have warnings shown, and
  `scenario=True` to run the built-in `AccidentScenario` test drive.

## What it does not do

- The `v2xnode` command does not open the displays; warnings are only shown
  when a `Display` is passed to `Node`.
- There is no real GPS receiver: positions come from `GpsSimulator`, which
  drives north from a fixed start point and stops at a fixed accident point.
- There is no real cryptography: `sign` fills the signature with a fixed
  pattern, and `verify` accepts every packet.