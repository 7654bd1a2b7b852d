import threading
import time

import pytest

from v2xnode.msgqueue import MessageQueue
from v2xnode.packets import (
    PacketRx,
    PacketTx,
    assemble_own_accident,
    stamp_sender,
)
from v2xnode.protocol import Wl1Accident, Wl1Header, Wl1Packet, Wl1Sender, Wl3Packet
from v2xnode.state import DrivingStatus

OWN_ID = 0x1111


@pytest.fixture
def status():
    return DrivingStatus(lat=37.5675, lon=126.978, alt=15.0, heading=270)


def relay_packet(ttl, accident_id=0x55):
    return Wl1Packet(
        header=Wl1Header(version=1, msg_type=3, ttl=ttl),
        sender=Wl1Sender(sender_id=0x2222),
        accident=Wl1Accident(accident_id=accident_id),
    )


def make_tx(status):
    return PacketTx(MessageQueue(), MessageQueue(), MessageQueue(), status, OWN_ID,
                    clock=lambda: 123456789)


def test_assemble_own_accident(status):
    wl3 = Wl3Packet(accident_type=3, lane=2, accident_id=0x1234567812345678)
    packet = assemble_own_accident(wl3, status)
    assert (packet.header.version, packet.header.msg_type, packet.header.ttl) == (1, 3, 3)
    assert packet.accident.accident_id == 0x1234567812345678
    assert packet.accident.type == 3
    assert packet.accident.lane == 2
    assert packet.accident.direction == 270
    assert packet.accident.lat_udeg / 1e6 == pytest.approx(status.lat, abs=1e-6)
    assert packet.accident.lon_udeg / 1e6 == pytest.approx(status.lon, abs=1e-6)
    assert packet.accident.alt_mm / 1000 == pytest.approx(status.alt, abs=1e-3)


def test_assembled_packet_round_trips(status):
    packet = assemble_own_accident(Wl3Packet(lane=1, accident_id=9), status)
    assert Wl1Packet.from_bytes(packet.to_bytes()) == packet


def test_stamp_sender(status):
    packet = stamp_sender(Wl1Packet(), OWN_ID, status, 42)
    assert packet.sender.sender_id == OWN_ID
    assert packet.sender.send_time == 42
    assert packet.sender.lat_udeg / 1e6 == pytest.approx(status.lat, abs=1e-6)
    assert packet.sender.alt_mm / 1000 == pytest.approx(status.alt, abs=1e-3)


def test_tx_own_accident(status):
    tx = make_tx(status)
    tx.own_inbox.push(Wl3Packet(accident_id=0xAB, lane=2))
    sent = tx.step()
    assert sent.header.ttl == 3
    assert sent.sender.sender_id == OWN_ID
    assert sent.sender.send_time == 123456789
    assert tx.outbox.pop_nowait() is sent


def test_tx_own_has_priority(status):
    tx = make_tx(status)
    tx.relay_inbox.push(relay_packet(3))
    tx.own_inbox.push(Wl3Packet(accident_id=0xAB))
    assert tx.step().accident.accident_id == 0xAB
    assert len(tx.relay_inbox) == 1
    assert tx.step().accident.accident_id == 0x55


def test_tx_relay_decrements_ttl(status):
    tx = make_tx(status)
    tx.relay_inbox.push(relay_packet(2))
    sent = tx.step()
    assert sent.header.ttl == 1
    assert sent.sender.sender_id == OWN_ID


@pytest.mark.parametrize("ttl", [0, 1])
def test_tx_drops_exhausted_relay(status, ttl):
    tx = make_tx(status)
    tx.relay_inbox.push(relay_packet(ttl))
    assert tx.step() is None
    assert len(tx.outbox) == 0
    assert len(tx.relay_inbox) == 0


def test_tx_empty(status):
    tx = make_tx(status)
    assert tx.step() is None
    assert len(tx.outbox) == 0


def test_rx_drops_loopback():
    rx = PacketRx(MessageQueue(), MessageQueue(), OWN_ID)
    packet = relay_packet(3)
    packet.sender.sender_id = OWN_ID
    assert rx.handle(packet) is None
    assert len(rx.outbox) == 0


def test_rx_forwards_copy():
    rx = PacketRx(MessageQueue(), MessageQueue(), OWN_ID)
    packet = relay_packet(3)
    forwarded = rx.handle(packet)
    assert forwarded == packet
    assert forwarded is not packet
    assert rx.outbox.pop_nowait() is forwarded


def test_rx_run_thread():
    rx = PacketRx(MessageQueue(), MessageQueue(), OWN_ID)
    running = threading.Event()
    running.set()
    worker = threading.Thread(target=rx.run, args=(running,))
    worker.start()
    rx.inbox.push(relay_packet(3))
    deadline = time.monotonic() + 5
    while len(rx.outbox) == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    running.clear()
    rx.inbox.push(None)
    worker.join(timeout=5)
    assert not worker.is_alive()
    assert rx.outbox.pop_nowait().accident.accident_id == 0x55