import threading

from v2xnode import security
from v2xnode.msgqueue import MessageQueue
from v2xnode.protocol import Wl1Packet, Wl1Sender


def _running():
    event = threading.Event()
    event.set()
    return event


def test_sign_fills_signature_with_pattern():
    pkt = Wl1Packet(sender=Wl1Sender(sender_id=0x1111))
    security.sign(pkt)
    assert pkt.signature == bytes([0xAA]) * 64
    assert pkt.to_bytes()[-64:] == bytes([0xAA]) * 64


def test_sign_leaves_other_fields():
    pkt = Wl1Packet(sender=Wl1Sender(sender_id=0x2222, lat_udeg=5))
    before = pkt.copy()
    security.sign(pkt)
    assert pkt.sender == before.sender
    assert pkt.header == before.header
    assert pkt.accident == before.accident


def test_verify_accepts_packet_rejects_none():
    assert security.verify(Wl1Packet()) is True
    assert security.verify(None) is False


def test_tx_worker_signs_and_forwards_until_none():
    inbox, outbox = MessageQueue(), MessageQueue()
    packets = [Wl1Packet(sender=Wl1Sender(sender_id=n)) for n in (1, 2)]
    for pkt in packets:
        inbox.push(pkt)
    inbox.push(None)
    security.sec_tx_worker(inbox, outbox, _running())
    forwarded = [outbox.pop_nowait(), outbox.pop_nowait()]
    assert [p.sender.sender_id for p in forwarded] == [1, 2]
    assert all(p.signature == bytes([0xAA]) * 64 for p in forwarded)
    assert len(outbox) == 0


def test_rx_worker_forwards_verified_until_none():
    inbox, outbox = MessageQueue(), MessageQueue()
    pkt = Wl1Packet(sender=Wl1Sender(sender_id=7))
    inbox.push(pkt)
    inbox.push(None)
    inbox.push(Wl1Packet())
    security.sec_rx_worker(inbox, outbox, _running())
    assert outbox.pop_nowait() is pkt
    assert len(outbox) == 0
    assert len(inbox) == 1


def test_workers_do_nothing_when_not_running():
    inbox, outbox = MessageQueue(), MessageQueue()
    inbox.push(Wl1Packet())
    stopped = threading.Event()
    security.sec_tx_worker(inbox, outbox, stopped)
    security.sec_rx_worker(inbox, outbox, stopped)
    assert len(inbox) == 1
    assert len(outbox) == 0


def test_tx_worker_in_thread_woken_by_none():
    inbox, outbox = MessageQueue(), MessageQueue()
    worker = threading.Thread(
        target=security.sec_tx_worker, args=(inbox, outbox, _running())
    )
    worker.start()
    inbox.push(Wl1Packet())
    inbox.push(None)
    worker.join(timeout=5)
    assert not worker.is_alive()
    assert len(outbox) == 1