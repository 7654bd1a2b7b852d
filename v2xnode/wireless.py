"""UDP broadcast link carrying WL-1 packets between vehicles."""

from __future__ import annotations

import socket
import threading

from . import debug
from .msgqueue import MessageQueue
from .protocol import Wl1Packet

WL_PORT = 5555
BROADCAST_ADDRESS = "10.0.0.255"


class WirelessLink:
    """A UDP socket either sending to a broadcast address or receiving on a port."""

    def __init__(self, sock: socket.socket, target: tuple[str, int] | None = None) -> None:
        self.sock = sock
        self.target = target

    @classmethod
    def open_tx(cls, address: str = BROADCAST_ADDRESS, port: int = WL_PORT) -> WirelessLink:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        except OSError:
            sock.close()
            raise
        return cls(sock, (address, port))

    @classmethod
    def open_rx(cls, port: int = WL_PORT, host: str = "") -> WirelessLink:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        return cls(sock)

    @property
    def local_port(self) -> int:
        return self.sock.getsockname()[1]

    @property
    def closed(self) -> bool:
        return self.sock.fileno() == -1

    def send(self, data: bytes) -> int:
        """Send one datagram to the target; raises ``OSError`` on failure."""
        if self.target is None:
            raise OSError("link has no send target")
        return self.sock.sendto(bytes(data), self.target)

    def recv(self) -> bytes:
        """Receive one datagram of at most one WL-1 packet's size."""
        return self.sock.recv(Wl1Packet.SIZE)

    def close(self) -> None:
        self.sock.close()
        debug.info("[WL] Driver context cleaned up.")

    def __enter__(self) -> WirelessLink:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def rx_worker(link: WirelessLink, outbox: MessageQueue, running: threading.Event) -> None:
    """Receive WL-1 packets and push them to ``outbox``; closes ``link`` on exit."""
    debug.info("Thread 1: Wireless RX Module started.")
    try:
        while running.is_set():
            try:
                data = link.recv()
            except OSError:
                data = b""
                if link.closed:
                    break
            if not data:
                print("\nWL-1 Packet receive failed", flush=True)
                continue
            if not running.is_set():
                break
            print("\n\033[1;32m[T1-RX] Packet Received!\033[0m", flush=True)
            outbox.push(Wl1Packet.from_bytes(data.ljust(Wl1Packet.SIZE, b"\0")))
    finally:
        if not link.closed:
            link.sock.close()


def tx_worker(link: WirelessLink, inbox: MessageQueue, running: threading.Event) -> None:
    """Broadcast every packet taken from ``inbox``."""
    debug.info("Thread 8: Wireless TX Module started.")
    while running.is_set():
        packet = inbox.pop()
        if packet is None:
            continue
        try:
            link.send(packet.to_bytes())
        except OSError as exc:
            print(f"\033[1;31m[WL-ERROR] sendto failed: {exc}\033[0m", flush=True)
            continue
        print(
            f"\n\033[1;32m[T8-TX] WL-1 Broadcast Success! "
            f"(ID: 0x{packet.sender.sender_id:X})\033[0m",
            flush=True,
        )