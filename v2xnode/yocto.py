"""Serial link to the on-board controller: WL-2 out, WL-3 and WL-4 in."""

from __future__ import annotations

import threading
import time
from enum import IntEnum
from typing import Protocol

from . import debug
from .msgqueue import MessageQueue
from .protocol import Wl3Packet, Wl4Packet

UART3_DEV = "/dev/ttyAMA3"
BAUD_RATE = 9600
PERIOD_YOCTO_MS = 50
PERIOD_WL4_S = 30
WL4_TRIGGER = (PERIOD_WL4_S * 1000) // PERIOD_YOCTO_MS
READ_SIZE = 256

# Frame type that some controller firmware uses for status words as well.
_ALT_WL4_TYPE = 5
# The accident id is read from offset 16 of the received frame.
_ACCIDENT_ID_OFFSET = 16
_LANE_OFFSET = 5


class FrameType(IntEnum):
    WL2 = 0x02
    WL3 = 0x03
    WL4 = 0x04


class _Port(Protocol):
    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> object: ...

    def close(self) -> None: ...


def open_uart(device: str = UART3_DEV):
    """Open the controller UART at 9600 baud, 8N1, raw and non-blocking.

    Raises ``serial.SerialException`` (an ``OSError``) if the port cannot be opened.
    """
    import serial

    return serial.Serial(
        device,
        baudrate=BAUD_RATE,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=0,
        xonxoff=False,
        rtscts=False,
    )


def parse_wl3_frame(frame: bytes) -> Wl3Packet:
    """Decode a WL-3 frame as received from the controller.

    The frame is zero-padded as needed; lane and accident id are taken
    from their on-wire offsets (5 and 16).
    """
    if not frame:
        raise ValueError("empty WL-3 frame")
    buf = bytes(frame[:READ_SIZE]).ljust(_ACCIDENT_ID_OFFSET + 8, b"\0")
    packet = Wl3Packet.from_bytes(buf[: Wl3Packet.SIZE])
    packet.accident_id = int.from_bytes(
        buf[_ACCIDENT_ID_OFFSET:_ACCIDENT_ID_OFFSET + 8], "little"
    )
    packet.lane = buf[_LANE_OFFSET]
    return packet


def _parse_wl4_frame(frame: bytes) -> Wl4Packet:
    buf = bytes(frame[: Wl4Packet.SIZE]).ljust(Wl4Packet.SIZE, b"\0")
    return Wl4Packet.from_bytes(buf)


class YoctoInterface:
    """Exchanges frames with the controller on a fixed 50 ms cycle."""

    def __init__(
        self,
        port: _Port,
        wl2_inbox: MessageQueue,
        wl3_outbox: MessageQueue,
        wl4_outbox: MessageQueue,
        period: float = PERIOD_YOCTO_MS / 1000.0,
    ) -> None:
        self.port = port
        self.wl2_inbox = wl2_inbox
        self.wl3_outbox = wl3_outbox
        self.wl4_outbox = wl4_outbox
        self.period = period
        self.loop_count = 0

    def step(self) -> Wl3Packet | Wl4Packet | None:
        """Send one pending WL-2 summary, then read and dispatch one frame.

        Returns the packet that was received and queued, if any.
        """
        summary = self.wl2_inbox.pop_nowait()
        if summary is not None:
            self.port.write(summary.to_bytes())

        received: Wl3Packet | Wl4Packet | None = None
        data = self.port.read(READ_SIZE)
        if data:
            frame_type = data[0]
            print(
                f"[T9-RX] frame from controller: {len(data)} bytes, type {frame_type}",
                flush=True,
            )
            if frame_type == FrameType.WL3:
                received = parse_wl3_frame(data)
                self.wl3_outbox.push(received)
                print(
                    "\x1b[32m[T9-RX] WL-3 received: own accident -> PKT-TX\x1b[0m",
                    flush=True,
                )
            elif frame_type in (FrameType.WL4, _ALT_WL4_TYPE):
                received = _parse_wl4_frame(data)
                self.wl4_outbox.push(received)
                debug.info("[T9-RX] WL-4 received: driving status update")

        self.loop_count += 1
        if self.loop_count >= WL4_TRIGGER:
            self.loop_count = 0
        return received

    def run(self, running: threading.Event) -> None:
        """Run the fixed-period loop until ``running`` is cleared; closes the port."""
        debug.info("Thread 9: Yocto Interface Module started (UART3 Mode).")
        next_time = time.monotonic()
        try:
            while running.is_set():
                next_time += self.period
                delay = next_time - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                self.step()
        finally:
            self.port.close()