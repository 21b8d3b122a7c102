"""Tests for KeyedLock."""

import threading
import time

from app.core.locks import KeyedLock


def test_same_key_is_mutually_exclusive():
    locks = KeyedLock()
    inside = []
    overlaps = []

    def worker():
        with locks.hold("chat-1:+5511999999999"):
            inside.append(1)
            if len(inside) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []


def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()
    acquired_b = threading.Event()

    def hold_b():
        with locks.hold("b"):
            acquired_b.set()

    with locks.hold("a"):
        t = threading.Thread(target=hold_b)
        t.start()
        assert acquired_b.wait(timeout=2)
        t.join()


def test_registry_is_emptied_after_release():
    locks = KeyedLock()
    with locks.hold("a"):
        assert len(locks) == 1
    assert len(locks) == 0
