"""Wiring of the whole V2X node: queues, worker threads and the command entry point."""

from __future__ import annotations

import re
import signal
import sys
import threading
import time
from typing import Callable

from . import debug
from .msgqueue import MessageQueue
from .packets import PacketRx, PacketTx
from .protocol import Wl3Packet, Wl4Packet
from .security import sec_rx_worker, sec_tx_worker
from .state import (
    ACCIDENT_POINT_LAT,
    START_LAT,
    DrivingStatus,
    GpsSimulator,
    driving_manager,
)
from .valuation import Valuator
from .wireless import WirelessLink, rx_worker, tx_worker
from .yocto import YoctoInterface, open_uart

DEFAULT_SENDER_ID = 0x1111
SCENARIO_HEADING = 0
SCENARIO_ACCIDENT_TYPE = 3
SCENARIO_LANE = 2
SCENARIO_ACCIDENT_ID = 0x1234567812345678
SCENARIO_LAT_STEP = 0.0001

_HEX_NUMBER = re.compile(r"\s*([+-]?)(?:0[xX](?=[0-9a-fA-F]))?([0-9a-fA-F]*)")
_LONG_MAX = 2**63 - 1
_LONG_MIN = -(2**63)


def parse_sender_id(text: str | None) -> int:
    """Read a hexadecimal sender id the way the command line gives it.

    ``None`` selects the default id. Parsing stops at the first character
    that is not a hex digit; text without any digits yields 0. The result
    is reduced to 32 bits.
    """
    if text is None:
        return DEFAULT_SENDER_ID
    match = _HEX_NUMBER.match(text)
    sign, digits = match.group(1), match.group(2)
    value = int(digits, 16) if digits else 0
    if sign == "-":
        value = -value
    value = max(_LONG_MIN, min(_LONG_MAX, value))
    return value & 0xFFFFFFFF


class Node:
    """One vehicle: the receive, evaluation and transmit pipelines and their threads."""

    def __init__(
        self,
        sender_id: int = DEFAULT_SENDER_ID,
        tx_link: WirelessLink | None = None,
        rx_link: WirelessLink | None = None,
        uart=None,
        display=None,
        gps_period: float = 1.0,
        scenario: bool = False,
    ) -> None:
        self.sender_id = sender_id
        self.tx_link = tx_link
        self.rx_link = rx_link
        self.uart = uart
        self.display = display
        self.gps_period = gps_period
        self.scenario = scenario

        self.running = threading.Event()
        self.running.set()
        self.status = DrivingStatus()

        self.rx_sec_rx = MessageQueue()
        self.sec_rx_pkt = MessageQueue()
        self.pkt_val = MessageQueue()
        self.val_pkt_tx = MessageQueue()
        self.pkt_sec_tx = MessageQueue()
        self.sec_tx_wl_tx = MessageQueue()
        self.val_yocto = MessageQueue()
        self.yocto_to_driving = MessageQueue()
        self.yocto_if_to_pkt_tx = MessageQueue()

        self.threads: list[threading.Thread] = []

    @property
    def queues(self) -> tuple[MessageQueue, ...]:
        return (
            self.rx_sec_rx, self.sec_rx_pkt, self.pkt_val, self.val_pkt_tx,
            self.pkt_sec_tx, self.sec_tx_wl_tx, self.val_yocto,
            self.yocto_to_driving, self.yocto_if_to_pkt_tx,
        )

    def _rx(self) -> None:
        link = self.rx_link
        if link is None:
            try:
                link = self.rx_link = WirelessLink.open_rx()
            except OSError:
                return
        rx_worker(link, self.rx_sec_rx, self.running)

    def _tx(self) -> None:
        link = self.tx_link
        if link is None:
            try:
                link = self.tx_link = WirelessLink.open_tx()
            except OSError:
                print(
                    "\033[1;31m[CRITICAL] TX Thread failed to initialize socket!\033[0m",
                    flush=True,
                )
                return
        try:
            tx_worker(link, self.sec_tx_wl_tx, self.running)
        finally:
            link.close()

    def _yocto(self) -> None:
        port = self.uart
        if port is None:
            try:
                port = self.uart = open_uart()
            except OSError:
                debug.error("[T9] UART3 (/dev/ttyAMA3) Open Failed!")
                return
        YoctoInterface(
            port, self.val_yocto, self.yocto_if_to_pkt_tx, self.yocto_to_driving
        ).run(self.running)

    def _targets(self) -> list[tuple[str, Callable[[], None]]]:
        running = self.running
        packet_rx = PacketRx(self.sec_rx_pkt, self.pkt_val, self.sender_id)
        valuator = Valuator(
            self.pkt_val, self.val_pkt_tx, self.val_yocto, self.status,
            self.sender_id, display=self.display,
        )
        packet_tx = PacketTx(
            self.yocto_if_to_pkt_tx, self.val_pkt_tx, self.pkt_sec_tx,
            self.status, self.sender_id,
        )
        gps = GpsSimulator(self.status, period=self.gps_period)
        targets = [
            ("wl-rx", self._rx),
            ("sec-rx", lambda: sec_rx_worker(self.rx_sec_rx, self.sec_rx_pkt, running)),
            ("pkt-rx", lambda: packet_rx.run(running)),
            ("val", lambda: valuator.run(running)),
            ("driving", lambda: driving_manager(self.yocto_to_driving, self.status, running)),
            ("pkt-tx", lambda: packet_tx.run(running)),
            ("sec-tx", lambda: sec_tx_worker(self.pkt_sec_tx, self.sec_tx_wl_tx, running)),
            ("wl-tx", self._tx),
            ("yocto", self._yocto),
            ("gps", lambda: gps.run(running)),
        ]
        if self.scenario and self.sender_id == DEFAULT_SENDER_ID:
            scenario = AccidentScenario(
                self.status, self.val_yocto, self.yocto_if_to_pkt_tx, self.sender_id
            )
            targets.append(("scenario", lambda: scenario.run(running)))
        return targets

    def start(self) -> None:
        """Start every pipeline thread."""
        debug.info("GPS: Mock Mode Initialized.")
        print("--- Integrated V2X System Start ---", flush=True)
        for name, target in self._targets():
            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            self.threads.append(thread)

    def _wake_receiver(self) -> None:
        link = self.rx_link
        if link is None or link.closed:
            return
        try:
            host, port = link.sock.getsockname()[:2]
            if host in ("", "0.0.0.0"):
                host = "127.0.0.1"
            waker = WirelessLink.open_tx(host, port)
        except OSError:
            return
        try:
            waker.sock.sendto(b"\0", (host, port))
        except OSError:
            pass
        finally:
            waker.sock.close()

    def stop(self) -> None:
        """Ask every thread to finish and wake those blocked on a queue or socket."""
        self.running.clear()
        for queue in self.queues:
            queue.push(None)
        self._wake_receiver()

    def join(self) -> None:
        """Wait for the threads started by ``start``."""
        for thread in self.threads:
            thread.join()


class AccidentScenario:
    """Test drive: move towards a fixed point, then keep reporting an own accident."""

    def __init__(
        self,
        status: DrivingStatus,
        yocto_out: MessageQueue,
        own_out: MessageQueue,
        sender_id: int,
        accident_point: float = ACCIDENT_POINT_LAT,
        start_lat: float = START_LAT,
        heading: int = SCENARIO_HEADING,
        period: float = 1.0,
        start_delay: float = 3.0,
    ) -> None:
        self.status = status
        self.yocto_out = yocto_out
        self.own_out = own_out
        self.sender_id = sender_id
        self.accident_point = accident_point
        self.start_lat = start_lat
        self.heading = heading
        self.period = period
        self.start_delay = start_delay
        self.arrived = False

    def step(self) -> tuple[Wl4Packet, Wl3Packet | None]:
        """Advance one tick and queue its packets; returns what was queued."""
        if not self.arrived:
            now_lat = self.status.snapshot().lat + SCENARIO_LAT_STEP
            self.status.update(lat=now_lat)
        else:
            now_lat = self.status.snapshot().lat
        if not self.arrived and now_lat >= self.accident_point:
            self.arrived = True

        status_word = Wl4Packet(raw=int(FrameTypeByte.WL4))
        status_word.direction = self.heading
        self.yocto_out.push(status_word)

        accident = None
        if self.arrived:
            accident = Wl3Packet(
                accident_type=SCENARIO_ACCIDENT_TYPE,
                lane=SCENARIO_LANE,
                accident_id=SCENARIO_ACCIDENT_ID,
            )
            self.own_out.push(accident)
        return status_word, accident

    def run(self, running: threading.Event) -> None:
        running.wait(self.start_delay) if not running.is_set() else time.sleep(self.start_delay)
        if self.sender_id != DEFAULT_SENDER_ID:
            return
        self.status.update(lat=self.start_lat)
        while running.is_set():
            self.step()
            time.sleep(self.period)


class FrameTypeByte:
    """First-byte markers written into scenario frames."""

    WL3 = 0x03
    WL4 = 0x04


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    node = Node(parse_sender_id(argv[0] if argv else None))

    def _on_signal(signum, frame) -> None:
        node.stop()
        print("\n[MAIN] Shutdown signal received. Cleaning up...", flush=True)

    signal.signal(signal.SIGINT, _on_signal)
    node.start()
    while node.running.is_set():
        time.sleep(1)
    node.join()
    print("[MAIN] V2X System Gracefully Terminated.", flush=True)
    return 0