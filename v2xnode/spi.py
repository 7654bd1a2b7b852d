"""Simulated controller link: shows reports and produces a rotating heading."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from . import debug
from .msgqueue import MessageQueue
from .protocol import Wl2Data
from .state import DrivingStatus

HEADING_STEP = 5
FULL_TURN = 360


@dataclass
class SpiSimMessage:
    """Minimal message exchanged with the controller."""

    accident_id: int = 0
    relative_dist: int = 0
    heading: int = 0


class SpiSimulator:
    """Consumes accident reports and rotates the vehicle heading 5 degrees per tick."""

    def __init__(
        self, inbox: MessageQueue, status: DrivingStatus, period: float = 0.1
    ) -> None:
        self.inbox = inbox
        self.status = status
        self.period = period
        self.heading = 0

    def step(self) -> Wl2Data | None:
        """Show one pending report, advance the heading; return the report taken."""
        report = self.inbox.pop_nowait()
        if report is not None:
            print(
                f"\n>>> [YOCTO DISPLAY] ALERT! Accident ID: 0x{report.accident.accident_id:X}, "
                f"Distance: {report.analysis.dist_3d:.1f} m",
                flush=True,
            )
        self.heading = (self.heading + HEADING_STEP) % FULL_TURN
        self.status.update(heading=self.heading)
        return report

    def run(self, running: threading.Event) -> None:
        debug.info("Thread 9: [SIMULATION] SPI-Yocto Module started.")
        while running.is_set():
            self.step()
            time.sleep(self.period)
        debug.info("Thread 9: SPI Simulation Module terminating.")