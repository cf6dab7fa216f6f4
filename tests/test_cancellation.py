import threading

import pytest

from caddyshack.cancellation import CancelToken, CancelledError


def test_callbacks_run_once_on_cancel():
    token = CancelToken()
    calls = []
    token.on_cancel(lambda: calls.append("a"))
    token.cancel()
    token.cancel()
    assert calls == ["a"]
    assert token.cancelled


def test_late_registration_runs_immediately():
    token = CancelToken()
    token.cancel()
    calls = []
    token.on_cancel(lambda: calls.append("late"))
    assert calls == ["late"]


def test_unregistered_callback_is_not_run():
    token = CancelToken()
    calls = []
    unregister = token.on_cancel(lambda: calls.append("x"))
    unregister()
    token.cancel()
    assert calls == []


def test_raise_if_cancelled():
    token = CancelToken()
    token.raise_if_cancelled()
    token.cancel()
    with pytest.raises(CancelledError):
        token.raise_if_cancelled()


def test_cancel_from_another_thread_wakes_waiter():
    token = CancelToken()
    timer = threading.Timer(0.01, token.cancel)
    timer.start()
    try:
        assert token.wait(timeout=5)
    finally:
        timer.cancel()
