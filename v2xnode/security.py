"""Signing of outgoing and verification of incoming WL-1 packets."""

from __future__ import annotations

import threading

from . import debug
from .msgqueue import MessageQueue
from .protocol import SIGNATURE_SIZE, Wl1Packet

_SIGNATURE_PATTERN = 0xAA


def sign(packet: Wl1Packet) -> None:
    """Fill the packet's signature field in place."""
    packet.signature = bytes([_SIGNATURE_PATTERN]) * SIGNATURE_SIZE
    debug.debug(f"SEC: Signed packet for Sender 0x{packet.sender.sender_id:X}")


def verify(packet: Wl1Packet | None) -> bool:
    """Check a received packet; every present packet is accepted."""
    return packet is not None


def sec_tx_worker(
    inbox: MessageQueue, outbox: MessageQueue, running: threading.Event
) -> None:
    """Sign packets from ``inbox`` and forward them to ``outbox``.

    Stops when ``running`` is cleared or a ``None`` item is received.
    """
    debug.info("Thread 7: Security TX Module started.")
    while running.is_set():
        packet = inbox.pop()
        if packet is None:
            break
        sign(packet)
        outbox.push(packet)
    debug.info("Thread 7: Security TX Module terminating.")


def sec_rx_worker(
    inbox: MessageQueue, outbox: MessageQueue, running: threading.Event
) -> None:
    """Verify packets from ``inbox``, forwarding good ones and dropping bad ones.

    Stops when ``running`` is cleared or a ``None`` item is received.
    """
    debug.info("Thread 2: Security RX Module started.")
    while running.is_set():
        packet = inbox.pop()
        if packet is None:
            break
        if verify(packet):
            debug.debug(
                f"SEC: Verification success for 0x{packet.sender.sender_id:X}"
            )
            outbox.push(packet)
        else:
            debug.warn(
                f"SEC: Verification failed for 0x{packet.sender.sender_id:X}! Dropping."
            )
    debug.info("Thread 2: Security RX Module terminating.")