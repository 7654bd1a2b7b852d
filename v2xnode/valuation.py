"""Evaluation of received accidents: filtering, tracking, relaying and reporting."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Protocol

from . import debug
from .display import DisplayMode
from .msgqueue import MessageQueue
from .protocol import AnalysisData, Wl1Accident, Wl1Packet, Wl2Data, Wl2Packet
from .state import DrivingStatus

MAX_ACCIDENTS = 20
DIST_LIMIT = 1000.0
ALT_LIMIT = 25.0
TIMEOUT_MS = 5000
HEADING_LIMIT = 45
ALERT_DIST = 500.0
DANGER_DIST = 100.0
REPORT_PERIOD_MS = 500

_METERS_PER_DEG_LAT = 111319.9
_METERS_PER_DEG_LON = 88804.0
_NO_DISTANCE = 999999.0


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def calc_dist(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Planar distance in metres between two positions given in degrees."""
    dlat = (lat2 - lat1) * _METERS_PER_DEG_LAT
    dlon = (lon2 - lon1) * _METERS_PER_DEG_LON
    return math.sqrt(dlat * dlat + dlon * dlon)


def get_angle_diff(a: int, b: int) -> int:
    """Smallest difference between two headings in degrees (0-180)."""
    diff = abs(a - b)
    if diff > 180:
        diff = 360 - diff
    return diff


@dataclass
class ManagedAccident:
    """One slot of the accident table."""

    data: Wl2Data = field(default_factory=Wl2Data)
    last_seen_ms: int = 0
    is_active: bool = False


class AccidentTable:
    """Fixed-size table of recently seen accidents, keyed by accident id."""

    def __init__(self, capacity: int = MAX_ACCIDENTS, timeout_ms: int = TIMEOUT_MS) -> None:
        self.capacity = capacity
        self.timeout_ms = timeout_ms
        self._slots = [ManagedAccident() for _ in range(capacity)]

    def update(
        self, accident: Wl1Accident, dist: float, now_ms: int
    ) -> ManagedAccident | None:
        """Record or refresh an accident; returns its slot, or ``None`` if the table is full."""
        slot = next(
            (
                s
                for s in self._slots
                if s.is_active and s.data.accident.accident_id == accident.accident_id
            ),
            None,
        )
        if slot is None:
            index = next(
                (i for i, s in enumerate(self._slots) if not s.is_active), None
            )
            if index is None:
                return None
            slot = self._slots[index] = ManagedAccident()
        slot.is_active = True
        slot.last_seen_ms = now_ms
        slot.data.accident = replace(accident)
        slot.data.analysis = AnalysisData(
            dist_3d=dist, target_bearing=slot.data.analysis.target_bearing,
            is_danger=dist < DANGER_DIST,
        )
        return slot

    def nearest(self, now_ms: int) -> ManagedAccident | None:
        """Expire stale entries and return the closest remaining accident."""
        best = None
        min_dist = _NO_DISTANCE
        for slot in self._slots:
            if not slot.is_active:
                continue
            if now_ms - slot.last_seen_ms > self.timeout_ms:
                slot.is_active = False
                continue
            if slot.data.analysis.dist_3d < min_dist:
                min_dist = slot.data.analysis.dist_3d
                best = slot
        return best

    def __len__(self) -> int:
        return sum(1 for s in self._slots if s.is_active)


class _Shows(Protocol):
    def show(
        self, mode: int, sid: int, aid: int, dist: int, lane: int, acc_type: int
    ) -> None: ...


class Valuator:
    """Judges received WL-1 packets against the own vehicle's state."""

    def __init__(
        self,
        inbox: MessageQueue,
        relay_out: MessageQueue,
        yocto_out: MessageQueue,
        status: DrivingStatus,
        sender_id: int,
        display: _Shows | None = None,
        clock: Callable[[], int] = _now_ms,
        period: float = 0.01,
    ) -> None:
        self.inbox = inbox
        self.relay_out = relay_out
        self.yocto_out = yocto_out
        self.status = status
        self.sender_id = sender_id
        self.display = display
        self.clock = clock
        self.period = period
        self.table = AccidentTable()
        self.last_report_ms = 0

    def process(self, packet: Wl1Packet) -> Wl1Packet | None:
        """Evaluate one packet; returns the relay packet queued, if any."""
        me = self.status.snapshot()
        my_heading = int(me.heading)
        acc = packet.accident
        target_lat = acc.lat_udeg / 1_000_000.0
        target_lon = acc.lon_udeg / 1_000_000.0
        target_alt = acc.alt_mm / 1000.0

        dist_2d = calc_dist(me.lat, me.lon, target_lat, target_lon)
        alt_diff = abs(me.alt - target_alt)
        head_diff = get_angle_diff(my_heading, acc.direction)

        print(
            f"[CHECK-VAL] From 0x{packet.sender.sender_id:X}, dist:{dist_2d:.2f}m, "
            f"alt diff:{alt_diff:.1f}m, heading diff:{head_diff}",
            flush=True,
        )

        if (
            packet.sender.sender_id == self.sender_id
            or dist_2d >= DIST_LIMIT
            or alt_diff >= ALT_LIMIT
        ):
            return None

        if head_diff <= HEADING_LIMIT:
            mode = DisplayMode.ALERT if dist_2d > ALERT_DIST else DisplayMode.RELAY
            if self.display is not None:
                self.display.show(
                    mode, self.sender_id, acc.accident_id,
                    int(dist_2d) & 0xFFFF, acc.lane, acc.type,
                )
            self.table.update(acc, dist_2d, self.clock())
        else:
            print(
                f"\x1b[1;33m[VAL-SKIP] opposite direction ignored (diff: {head_diff})\x1b[0m",
                flush=True,
            )

        if packet.header.ttl <= 0:
            return None
        relay = packet.copy()
        relay.header.ttl -= 1
        relay.sender.sender_id = self.sender_id
        self.relay_out.push(relay)
        print(f"[RELAY-ACT] accident 0x{acc.accident_id:X} queued for relay", flush=True)
        return relay

    def report(self, now_ms: int) -> Wl2Packet | None:
        """Every report period, queue a WL-2 summary of the nearest accident."""
        if now_ms - self.last_report_ms < REPORT_PERIOD_MS:
            return None
        self.last_report_ms = now_ms
        best = self.table.nearest(now_ms)
        if best is None:
            return None
        min_dist = best.data.analysis.dist_3d
        summary = Wl2Packet(
            dist_rsv=((int(min_dist) & 0xFFFF) << 4) & 0xFFFF,
            lane=best.data.accident.lane,
            sev_rsv=0x10 if best.data.analysis.is_danger else 0x00,
        )
        self.yocto_out.push(summary)
        debug.info(
            f"VAL: Reporting Nearest -> ID: 0x{best.data.accident.accident_id:X}, "
            f"Dist: {min_dist:.1f}m"
        )
        return summary

    def run(self, running: threading.Event) -> None:
        debug.info("Thread 4: VAL Controller started.")
        while running.is_set():
            packet = self.inbox.pop()
            if packet is not None:
                self.process(packet)
            self.report(self.clock())
            time.sleep(self.period)