import time

import pytest

from catalog.utils.cancellation import CancellationRequested, CancelToken


@pytest.mark.unit
def test_cancel_sets_reason_and_raises():
    token = CancelToken()
    assert not token.cancelled
    token.cancel("stop")
    assert token.cancelled
    with pytest.raises(CancellationRequested, match="stop"):
        token.raise_if_cancelled()


@pytest.mark.unit
def test_wait_returns_after_interval_when_not_cancelled():
    token = CancelToken()
    token.wait(0.01)
    assert token.remaining() is None


@pytest.mark.unit
def test_wait_is_interrupted_by_cancel():
    token = CancelToken()
    token.cancel()
    started = time.monotonic()
    with pytest.raises(CancellationRequested):
        token.wait(5)
    assert time.monotonic() - started < 1


@pytest.mark.unit
def test_with_timeout_cancels_after_deadline():
    token = CancelToken.with_timeout(0.05)
    try:
        with pytest.raises(CancellationRequested):
            token.wait(2)
        assert token.remaining() == 0.0
    finally:
        token.dispose()
