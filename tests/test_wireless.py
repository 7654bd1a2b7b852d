import socket
import threading
import time

import pytest

from v2xnode.msgqueue import MessageQueue
from v2xnode.protocol import Wl1Packet
from v2xnode.wireless import WirelessLink, rx_worker, tx_worker


def make_packet(sender_id=0x1111, accident_id=0xAB):
    packet = Wl1Packet()
    packet.header.ttl = 3
    packet.sender.sender_id = sender_id
    packet.accident.accident_id = accident_id
    return packet


def wait_pop(queue, seconds=5.0):
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        item = queue.pop_nowait()
        if item is not None:
            return item
        time.sleep(0.01)
    return None


def timed_rx_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    return sock


def test_send_and_receive_round_trip():
    with WirelessLink.open_rx(0, "127.0.0.1") as rx:
        with WirelessLink.open_tx("127.0.0.1", rx.local_port) as tx:
            data = make_packet().to_bytes()
            assert tx.send(data) == len(data)
            assert rx.recv() == data


def test_recv_limits_to_packet_size():
    rx = WirelessLink(timed_rx_socket())
    with rx, WirelessLink.open_tx("127.0.0.1", rx.local_port) as tx:
        tx.send(bytes(200))
        assert len(rx.recv()) == Wl1Packet.SIZE


def test_send_without_target_raises():
    with WirelessLink.open_rx(0, "127.0.0.1") as rx:
        with pytest.raises(OSError):
            rx.send(b"x")


def test_closed_link_cannot_send():
    tx = WirelessLink.open_tx("127.0.0.1", 9)
    with tx:
        pass
    assert tx.closed
    with pytest.raises(OSError):
        tx.send(b"x")


def test_rx_worker_delivers_packets():
    rx = WirelessLink.open_rx(0, "127.0.0.1")
    outbox = MessageQueue()
    running = threading.Event()
    running.set()
    worker = threading.Thread(target=rx_worker, args=(rx, outbox, running))
    worker.start()
    with WirelessLink.open_tx("127.0.0.1", rx.local_port) as tx:
        tx.send(make_packet(sender_id=0x2222).to_bytes())
        got = wait_pop(outbox)
        running.clear()
        tx.send(b"\x00")
    worker.join(5)
    assert not worker.is_alive()
    assert got is not None
    assert got.sender.sender_id == 0x2222
    assert rx.closed


def test_rx_worker_pads_short_datagram():
    rx = WirelessLink.open_rx(0, "127.0.0.1")
    outbox = MessageQueue()
    running = threading.Event()
    running.set()
    worker = threading.Thread(target=rx_worker, args=(rx, outbox, running))
    worker.start()
    with WirelessLink.open_tx("127.0.0.1", rx.local_port) as tx:
        tx.send(bytes([7, 2, 3, 0]))
        got = wait_pop(outbox)
        running.clear()
        tx.send(b"\x00")
    worker.join(5)
    assert got.header.version == 7
    assert got.header.ttl == 3
    assert got.signature == bytes(64)


def test_tx_worker_broadcasts_queue():
    rx = WirelessLink(timed_rx_socket())
    inbox = MessageQueue()
    running = threading.Event()
    running.set()
    with rx, WirelessLink.open_tx("127.0.0.1", rx.local_port) as tx:
        worker = threading.Thread(target=tx_worker, args=(tx, inbox, running))
        worker.start()
        packet = make_packet(sender_id=0x3333, accident_id=0x77)
        inbox.push(packet)
        received = Wl1Packet.from_bytes(rx.recv())
        running.clear()
        inbox.push(None)
        worker.join(5)
    assert not worker.is_alive()
    assert received == packet