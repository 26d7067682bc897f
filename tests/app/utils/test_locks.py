"""Tests for KeyedLock."""

import threading
import time

from app.utils.locks import KeyedLock


def test_same_key_is_exclusive():
    locks = KeyedLock()
    inside = []
    overlaps = []

    def work():
        with locks.hold("s1"):
            if inside:
                overlaps.append(True)
            inside.append(1)
            time.sleep(0.005)
            inside.pop()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []


def test_different_keys_do_not_block():
    locks = KeyedLock()
    with locks.hold("a"):
        done = threading.Event()

        def other():
            with locks.hold("b"):
                done.set()

        t = threading.Thread(target=other)
        t.start()
        assert done.wait(timeout=1)
        t.join()


def test_locks_are_dropped_when_released():
    locks = KeyedLock()
    with locks.hold("a"):
        with locks.hold("b"):
            assert len(locks) == 2
    assert len(locks) == 0
