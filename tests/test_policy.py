"""Overflow policies: who gets told, and how often."""

from __future__ import annotations

import logging
import threading

import pytest

from morefixed import (
    FixedPointError,
    FixedPointOverflowError,
    OverflowCounter,
    OverflowFlag,
    assert_on_overflow,
    fixed16_safe,
    fixed_type,
    ignore_overflow,
    log_overflow,
)
from morefixed.config import REPR_MIN


def test_ignore_does_nothing():
    q = fixed_type(16, ignore_overflow)
    assert (q.max() + 1).repr == REPR_MIN + 65536 - 1
    assert q(1e12) == q.max()


@pytest.mark.skipif(not __debug__, reason="assert policy is disabled under -O")
def test_assert_raises_overflow_error():
    with pytest.raises(FixedPointOverflowError) as info:
        assert_on_overflow()
    assert isinstance(info.value, OverflowError)
    assert isinstance(info.value, FixedPointError)
    assert isinstance(info.value, ArithmeticError)


def test_log_overflow_warns_and_continues(caplog):
    q = fixed_type(16, log_overflow)
    with caplog.at_level(logging.WARNING, logger="morefixed.policy"):
        result = q.max() + q.epsilon()
    assert result.repr == REPR_MIN
    assert [r.levelno for r in caplog.records] == [logging.WARNING]
    assert "overflow" in caplog.records[0].getMessage()


def test_abort_policy_terminates(monkeypatch, caplog):
    calls = []
    monkeypatch.setattr("morefixed.policy.os.abort", lambda: calls.append(True))
    with caplog.at_level(logging.CRITICAL, logger="morefixed.policy"):
        fixed16_safe.max() + 1
    assert calls == [True]
    assert caplog.records[-1].levelno == logging.CRITICAL


def test_abort_policy_quiet_without_overflow(monkeypatch):
    calls = []
    monkeypatch.setattr("morefixed.policy.os.abort", lambda: calls.append(True))
    fixed16_safe.max() - 1
    fixed16_safe.min() + 1
    assert calls == []


# -----------------------------------------------------------------------------
# Flag
# -----------------------------------------------------------------------------


def test_flag_get_and_clear():
    flag = OverflowFlag()
    q = fixed_type(16, flag)
    assert not flag.is_set
    q.min() - 1
    assert flag.is_set
    assert flag.get_and_clear() is True
    assert flag.get_and_clear() is False
    flag()
    flag.clear()
    assert not flag.is_set


def test_flag_is_thread_local():
    flag = OverflowFlag()
    q = fixed_type(16, flag)
    seen = {}

    def worker():
        q.max() + 1
        seen["worker"] = flag.is_set

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert seen["worker"] is True
    assert flag.is_set is False


# -----------------------------------------------------------------------------
# Counter
# -----------------------------------------------------------------------------


def test_counter_counts_each_event_once():
    counter = OverflowCounter()
    q = fixed_type(16, counter)
    q(float("nan"))  # several checks fail for NaN, one event
    assert counter.count == 1
    -q.min()
    assert counter.count == 2
    counter.reset()
    assert counter.count == 0


def test_counter_is_shared_across_threads():
    counter = OverflowCounter()
    q = fixed_type(16, counter)

    def worker():
        for _ in range(500):
            q.max() + 1

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter.count == 2000
