"""Binary wire formats used between vehicles and with the on-board controller.

All layouts are packed, little-endian structures:

* WL-1: 128-byte vehicle-to-vehicle accident broadcast.
* WL-2: 6-byte nearest-accident summary sent to the controller.
* WL-3: 23-byte own-accident report received from the controller.
* WL-4: 4-byte vehicle status word received from the controller.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from typing import ClassVar

SIGNATURE_SIZE = 64


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    data = bytes(data)
    if len(data) != layout.size:
        raise ValueError(f"{name} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack(data)


def _pack(layout: struct.Struct, name: str, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(f"cannot encode {name}: {exc}") from exc


@dataclass
class Wl1Header:
    """WL-1 header: protocol version, message type and hop budget."""

    version: int = 0
    msg_type: int = 0
    ttl: int = 0
    reserved: int = 0


@dataclass
class Wl1Sender:
    """WL-1 sender block: who sent the packet, where and when."""

    sender_id: int = 0
    lat_udeg: int = 0
    lon_udeg: int = 0
    alt_mm: int = 0
    send_time: int = 0


@dataclass
class Wl1Accident:
    """WL-1 accident block: what happened, where and in which direction."""

    direction: int = 0
    reserved_a: int = 0
    accident_time: int = 0
    accident_id: int = 0
    type: int = 0
    sev_action: int = 0
    lane: int = 0
    reserved_b: int = 0
    lat_udeg: int = 0
    lon_udeg: int = 0
    alt_mm: int = 0


@dataclass
class Wl1Packet:
    """A complete 128-byte WL-1 broadcast packet."""

    SIZE: ClassVar[int] = 128
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct(
        "<4B" "I3iQ" "2H2Q4B3i" f"{SIGNATURE_SIZE}s"
    )

    header: Wl1Header = field(default_factory=Wl1Header)
    sender: Wl1Sender = field(default_factory=Wl1Sender)
    accident: Wl1Accident = field(default_factory=Wl1Accident)
    signature: bytes = bytes(SIGNATURE_SIZE)

    def to_bytes(self) -> bytes:
        if len(self.signature) != SIGNATURE_SIZE:
            raise ValueError(
                f"signature must be {SIGNATURE_SIZE} bytes, got {len(self.signature)}"
            )
        h, s, a = self.header, self.sender, self.accident
        return _pack(
            self._LAYOUT,
            "WL-1 packet",
            h.version, h.msg_type, h.ttl, h.reserved,
            s.sender_id, s.lat_udeg, s.lon_udeg, s.alt_mm, s.send_time,
            a.direction, a.reserved_a, a.accident_time, a.accident_id,
            a.type, a.sev_action, a.lane, a.reserved_b,
            a.lat_udeg, a.lon_udeg, a.alt_mm,
            bytes(self.signature),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Wl1Packet:
        v = _unpack(cls._LAYOUT, data, "WL-1 packet")
        return cls(
            header=Wl1Header(*v[0:4]),
            sender=Wl1Sender(*v[4:9]),
            accident=Wl1Accident(*v[9:20]),
            signature=v[20],
        )

    def copy(self) -> Wl1Packet:
        """Return an independent copy of this packet."""
        return Wl1Packet(
            header=replace(self.header),
            sender=replace(self.sender),
            accident=replace(self.accident),
            signature=bytes(self.signature),
        )


@dataclass
class Wl2Packet:
    """WL-2 summary: 12-bit distance, lane, severity nibble and a 10 ms tick."""

    SIZE: ClassVar[int] = 6
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<HBBH")

    dist_rsv: int = 0
    lane: int = 0
    sev_rsv: int = 0
    timestamp: int = 0

    @property
    def distance(self) -> int:
        return (self.dist_rsv >> 4) & 0x0FFF

    @distance.setter
    def distance(self, value: int) -> None:
        self.dist_rsv = (self.dist_rsv & 0x000F) | ((value & 0x0FFF) << 4)

    @property
    def severity(self) -> int:
        return (self.sev_rsv >> 4) & 0x0F

    @severity.setter
    def severity(self, value: int) -> None:
        self.sev_rsv = (self.sev_rsv & 0x0F) | ((value & 0x0F) << 4)

    @property
    def reserved_low4(self) -> int:
        return self.sev_rsv & 0x0F

    @reserved_low4.setter
    def reserved_low4(self, value: int) -> None:
        self.sev_rsv = (self.sev_rsv & 0xF0) | (value & 0x0F)

    def to_bytes(self) -> bytes:
        return _pack(
            self._LAYOUT, "WL-2 packet",
            self.dist_rsv, self.lane, self.sev_rsv, self.timestamp,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Wl2Packet:
        return cls(*_unpack(cls._LAYOUT, data, "WL-2 packet"))


@dataclass
class Wl3Packet:
    """WL-3 own-accident report produced by the on-board controller."""

    SIZE: ClassVar[int] = 23
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<BHBBHQQ")

    accident_type: int = 0
    debug_time: int = 0
    sev_action: int = 0
    lane: int = 0
    dir_rsv: int = 0
    accident_time: int = 0
    accident_id: int = 0

    @property
    def severity(self) -> int:
        return (self.sev_action >> 4) & 0x0F

    @severity.setter
    def severity(self, value: int) -> None:
        self.sev_action = (self.sev_action & 0x0F) | ((value & 0x0F) << 4)

    @property
    def action(self) -> int:
        return self.sev_action & 0x0F

    @action.setter
    def action(self, value: int) -> None:
        self.sev_action = (self.sev_action & 0xF0) | (value & 0x0F)

    @property
    def direction(self) -> int:
        return (self.dir_rsv >> 7) & 0x01FF

    @direction.setter
    def direction(self, value: int) -> None:
        self.dir_rsv = (self.dir_rsv & 0x007F) | ((value & 0x01FF) << 7)

    @property
    def reserved7(self) -> int:
        return self.dir_rsv & 0x7F

    @reserved7.setter
    def reserved7(self, value: int) -> None:
        self.dir_rsv = (self.dir_rsv & 0xFF80) | (value & 0x7F)

    def to_bytes(self) -> bytes:
        return _pack(
            self._LAYOUT, "WL-3 packet",
            self.accident_type, self.debug_time, self.sev_action, self.lane,
            self.dir_rsv, self.accident_time, self.accident_id,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Wl3Packet:
        return cls(*_unpack(cls._LAYOUT, data, "WL-3 packet"))


@dataclass
class Wl4Packet:
    """WL-4 status word: reserved (31-25), direction (24-16), timestamp (15-0)."""

    SIZE: ClassVar[int] = 4
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<I")

    raw: int = 0

    @property
    def direction(self) -> int:
        return (self.raw >> 16) & 0x01FF

    @direction.setter
    def direction(self, value: int) -> None:
        self.raw = (self.raw & ~(0x01FF << 16) & 0xFFFFFFFF) | ((value & 0x01FF) << 16)

    @property
    def timestamp(self) -> int:
        return self.raw & 0xFFFF

    @timestamp.setter
    def timestamp(self, value: int) -> None:
        self.raw = (self.raw & 0xFFFF0000) | (value & 0xFFFF)

    @property
    def reserved7(self) -> int:
        return (self.raw >> 25) & 0x7F

    def to_bytes(self) -> bytes:
        return _pack(self._LAYOUT, "WL-4 packet", self.raw)

    @classmethod
    def from_bytes(cls, data: bytes) -> Wl4Packet:
        return cls(*_unpack(cls._LAYOUT, data, "WL-4 packet"))


@dataclass
class AnalysisData:
    """Result of evaluating a received accident against the own vehicle."""

    dist_3d: float = 0.0
    target_bearing: int = 0
    is_danger: bool = False


@dataclass
class Wl2Data:
    """An accident together with its analysis."""

    accident: Wl1Accident = field(default_factory=Wl1Accident)
    analysis: AnalysisData = field(default_factory=AnalysisData)