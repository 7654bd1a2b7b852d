"""Assembly of outgoing WL-1 packets and filtering of incoming ones."""

from __future__ import annotations

import threading
import time
from typing import Callable

from . import debug
from .msgqueue import MessageQueue
from .protocol import Wl1Header, Wl1Packet, Wl3Packet
from .state import DrivingStatus

WL1_VERSION = 0x01
MSG_TYPE_ACCIDENT = 0x03
INITIAL_TTL = 3


def _now_us() -> int:
    return time.time_ns() // 1000


def _udeg(value: float) -> int:
    return int(value * 1_000_000.0)


def _mm(value: float) -> int:
    return int(value * 1000.0)


def assemble_own_accident(wl3: Wl3Packet, status: DrivingStatus) -> Wl1Packet:
    """Build a fresh WL-1 packet for the own vehicle's accident."""
    me = status.snapshot()
    packet = Wl1Packet(
        header=Wl1Header(version=WL1_VERSION, msg_type=MSG_TYPE_ACCIDENT, ttl=INITIAL_TTL)
    )
    acc = packet.accident
    acc.accident_id = wl3.accident_id
    acc.type = wl3.accident_type
    acc.lane = wl3.lane
    acc.lat_udeg = _udeg(me.lat)
    acc.lon_udeg = _udeg(me.lon)
    acc.alt_mm = _mm(me.alt)
    acc.direction = int(me.heading) & 0xFFFF
    debug.info(
        f"\x1b[32m[PKT-TX] own accident assembled (ID: 0x{wl3.accident_id:X}, "
        f"Dir: {acc.direction}, Lane: {acc.lane})\x1b[0m"
    )
    return packet


def stamp_sender(
    packet: Wl1Packet, sender_id: int, status: DrivingStatus, now_us: int
) -> Wl1Packet:
    """Fill the sender block with this vehicle's id, position and send time."""
    me = status.snapshot()
    sender = packet.sender
    sender.sender_id = sender_id
    sender.lat_udeg = _udeg(me.lat)
    sender.lon_udeg = _udeg(me.lon)
    sender.alt_mm = _mm(me.alt)
    sender.send_time = now_us
    return packet


class PacketTx:
    """Merges own accidents and relay requests into signed-ready WL-1 packets."""

    def __init__(
        self,
        own_inbox: MessageQueue,
        relay_inbox: MessageQueue,
        outbox: MessageQueue,
        status: DrivingStatus,
        sender_id: int,
        clock: Callable[[], int] = _now_us,
        period: float = 0.01,
    ) -> None:
        self.own_inbox = own_inbox
        self.relay_inbox = relay_inbox
        self.outbox = outbox
        self.status = status
        self.sender_id = sender_id
        self.clock = clock
        self.period = period

    def step(self) -> Wl1Packet | None:
        """Handle at most one packet; returns the packet forwarded, if any.

        Own accidents take priority; relayed packets lose one hop of TTL and
        are dropped when none is left.
        """
        wl3 = self.own_inbox.pop_nowait()
        if wl3 is not None:
            packet = assemble_own_accident(wl3, self.status)
        else:
            packet = self.relay_inbox.pop_nowait()
            if packet is not None and packet.header.ttl > 0:
                packet.header.ttl -= 1
        if packet is None or packet.header.ttl <= 0:
            return None
        stamp_sender(packet, self.sender_id, self.status, self.clock())
        self.outbox.push(packet)
        debug.info(
            f"[PKT-TX] WL-1 packet assembled (SenderID: 0x{packet.sender.sender_id:X}, "
            f"AccID: 0x{packet.accident.accident_id:X})"
        )
        return packet

    def run(self, running: threading.Event) -> None:
        debug.info("  - PKT-TX Sub-thread started (Dual-Path Aggregation).")
        while running.is_set():
            self.step()
            time.sleep(self.period)


class PacketRx:
    """Drops the vehicle's own looped-back packets and forwards the rest."""

    def __init__(self, inbox: MessageQueue, outbox: MessageQueue, sender_id: int) -> None:
        self.inbox = inbox
        self.outbox = outbox
        self.sender_id = sender_id

    def handle(self, packet: Wl1Packet) -> Wl1Packet | None:
        """Forward a copy of ``packet`` unless it was sent by this vehicle."""
        if packet.sender.sender_id == self.sender_id:
            debug.debug(
                f"PKT-RX: Loopback packet detected (ID: 0x{packet.sender.sender_id:X}). "
                "Self-dropping."
            )
            return None
        debug.info(
            f"PKT-RX: Incoming Packet (Sender: 0x{packet.sender.sender_id:X}, "
            f"Accident: 0x{packet.accident.accident_id:X})"
        )
        forwarded = packet.copy()
        self.outbox.push(forwarded)
        return forwarded

    def run(self, running: threading.Event) -> None:
        debug.info("  - PKT-RX Sub-thread started.")
        while running.is_set():
            packet = self.inbox.pop()
            if packet is not None:
                self.handle(packet)