import queue
import threading
import time

import pytest

from eventnorm.core.exceptions import Interrupted
from eventnorm.pipeline.event import EOS, Event
from eventnorm.pipeline.queue import EventQueue


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventQueue(0)


def test_third_put_blocks_until_take():
    q = EventQueue(2)
    e1, e2, e3 = Event({"n": 1}), Event({"n": 2}), Event({"n": 3})
    q.put(e1)
    q.put(e2)

    done = threading.Event()

    def producer():
        q.put(e3)
        done.set()

    t = threading.Thread(target=producer, daemon=True)
    t.start()

    time.sleep(0.2)
    assert not done.is_set()
    assert len(q) == 2

    assert q.take() is e1
    assert done.wait(2)
    assert q.take() is e2
    assert q.take() is e3
    t.join(2)


def test_cancelled_take_raises():
    q = EventQueue(1, poll_interval=0.01)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Interrupted):
        q.take(cancel)


def test_cancel_wakes_blocked_put():
    q = EventQueue(1, poll_interval=0.01)
    q.put(Event({"n": 1}))
    cancel = threading.Event()
    errors = []

    def producer():
        try:
            q.put(Event({"n": 2}), cancel)
        except Interrupted as exc:
            errors.append(exc)

    t = threading.Thread(target=producer, daemon=True)
    t.start()
    time.sleep(0.05)
    cancel.set()
    t.join(2)

    assert not t.is_alive()
    assert len(errors) == 1
    assert len(q) == 1


def test_timeouts():
    q = EventQueue(1, poll_interval=0.01)
    with pytest.raises(queue.Empty):
        q.take(threading.Event(), timeout=0.05)

    q.put(EOS)
    with pytest.raises(queue.Full):
        q.put(Event(), timeout=0.05)


def test_offer_and_poll():
    q = EventQueue(1)
    assert q.poll() is None
    assert q.offer(EOS)
    assert not q.offer(Event())
    assert q.poll() is EOS


def test_event_is_read_only():
    event = Event({"a": {"b": 1}})
    with pytest.raises(TypeError):
        event.data["a"] = 2

    copy = event.to_dict()
    copy["a"]["b"] = 2
    assert event.get("a") == {"b": 1}
    assert not event.is_eos
    assert Event.eos() is EOS and EOS.is_eos
