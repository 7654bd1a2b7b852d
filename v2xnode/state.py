"""Shared driving state, the simulated GPS source and the driving manager."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, fields

from . import debug
from .msgqueue import MessageQueue
from .protocol import Wl4Packet

ACCIDENT_POINT_LAT = 37.5690
START_LAT = 37.5675
START_LON = 126.9780
START_ALT = 15.0
LAT_STEP = 0.0001


@dataclass
class GpsData:
    """One GPS fix."""

    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0
    speed: float = 0.0
    course: float = 0.0


@dataclass
class DrivingStatus:
    """Position and heading of the own vehicle, shared between threads."""

    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0
    heading: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def snapshot(self) -> DrivingStatus:
        """Return a consistent, independent copy of the current state."""
        with self._lock:
            return DrivingStatus(self.lat, self.lon, self.alt, self.heading)

    def update(self, **kwargs) -> None:
        """Set several fields at once, atomically."""
        allowed = {f.name for f in fields(self) if not f.name.startswith("_")}
        unknown = set(kwargs) - allowed
        if unknown:
            raise TypeError(f"unknown driving status field(s): {', '.join(sorted(unknown))}")
        with self._lock:
            for name, value in kwargs.items():
                setattr(self, name, value)


def gps_latest(status: DrivingStatus) -> GpsData:
    """Return the most recent position held in ``status``."""
    snap = status.snapshot()
    return GpsData(lat=snap.lat, lon=snap.lon, alt=float(snap.alt))


class GpsSimulator:
    """Drives the vehicle north towards a fixed accident point and stops there."""

    def __init__(
        self,
        status: DrivingStatus,
        start_lat: float = START_LAT,
        lon: float = START_LON,
        alt: float = START_ALT,
        accident_point: float = ACCIDENT_POINT_LAT,
        lat_step: float = LAT_STEP,
        period: float = 1.0,
    ) -> None:
        self.status = status
        self.current_lat = start_lat
        self.lon = lon
        self.alt = alt
        self.accident_point = accident_point
        self.lat_step = lat_step
        self.period = period

    @property
    def arrived(self) -> bool:
        return self.current_lat >= self.accident_point

    def step(self) -> float:
        """Advance one tick, publish the position and return the new latitude."""
        if self.current_lat < self.accident_point:
            self.current_lat += self.lat_step
            if self.current_lat >= self.accident_point:
                self.current_lat = self.accident_point
        self.status.update(lat=self.current_lat, lon=self.lon, alt=self.alt)
        return self.current_lat

    def run(self, running: threading.Event) -> None:
        debug.info("Thread 7: GPS Client Module started.")
        while running.is_set():
            self.step()
            time.sleep(self.period)
        debug.info("Thread 7: GPS Client Module terminating.")


def heading_from_wl4(data: bytes | Wl4Packet) -> int:
    """Extract the heading from the first two bytes of a WL-4 frame."""
    raw = data.to_bytes() if isinstance(data, Wl4Packet) else bytes(data)
    if len(raw) < 2:
        raise ValueError(f"WL-4 frame needs at least 2 bytes, got {len(raw)}")
    return raw[1] + (raw[0] & 0x01) * 256


def driving_manager(
    inbox: MessageQueue, status: DrivingStatus, running: threading.Event
) -> None:
    """Merge WL-4 heading updates with the latest GPS fix into ``status``."""
    while running.is_set():
        item = inbox.pop()
        if item is None:
            continue
        gps = gps_latest(status)
        heading = heading_from_wl4(item)
        status.update(lat=gps.lat, lon=gps.lon, alt=gps.alt, heading=heading)
        print(f"\x1b[32m[T5-DRIVING] LAT:{gps.lat:.6f}, HDG:{heading}\x1b[0m", flush=True)