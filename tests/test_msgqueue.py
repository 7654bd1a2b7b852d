import threading

from v2xnode.msgqueue import MessageQueue


def test_fifo_order():
    q = MessageQueue()
    for item in ("a", "b", "c"):
        q.push(item)
    assert [q.pop(), q.pop(), q.pop()] == ["a", "b", "c"]


def test_len_tracks_contents():
    q = MessageQueue()
    assert len(q) == 0
    q.push(1)
    q.push(2)
    assert len(q) == 2
    q.pop()
    assert len(q) == 1


def test_pop_nowait_on_empty_returns_none():
    q = MessageQueue()
    assert q.pop_nowait() is None
    assert len(q) == 0


def test_pop_nowait_returns_oldest():
    q = MessageQueue()
    q.push("first")
    q.push("second")
    assert q.pop_nowait() == "first"
    assert q.pop_nowait() == "second"
    assert q.pop_nowait() is None


def test_none_is_a_real_item_for_pop():
    q = MessageQueue()
    q.push(None)
    q.push("after")
    assert q.pop() is None
    assert q.pop() == "after"


def test_pop_blocks_until_push():
    q = MessageQueue()
    results = []
    consumer = threading.Thread(target=lambda: results.append(q.pop()))
    consumer.start()
    q.push("x")
    consumer.join(timeout=5)
    assert not consumer.is_alive()
    assert results == ["x"]


def test_many_producers_deliver_everything():
    q = MessageQueue()

    def produce(base):
        for n in range(100):
            q.push(base + n)

    producers = [threading.Thread(target=produce, args=(k * 1000,)) for k in range(4)]
    for t in producers:
        t.start()
    for t in producers:
        t.join()
    received = [q.pop() for _ in range(400)]
    assert sorted(received) == sorted(k * 1000 + n for k in range(4) for n in range(100))
    assert len(q) == 0