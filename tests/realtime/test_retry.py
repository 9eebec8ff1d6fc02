"""Tests for ppoker/realtime/retry.py — reconnect backoff schedule."""

import pytest

from ppoker.realtime.retry import RetryPolicy


class TestRetryPolicy:
    def test_default_schedule(self):
        assert list(RetryPolicy().delays()) == [0.5, 1.0, 2.0, 4.0, 8.0]

    def test_delays_are_capped(self):
        policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=5.0)
        assert list(policy.delays()) == [1.0, 2.0, 4.0, 5.0, 5.0, 5.0]

    def test_constant_backoff(self):
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, multiplier=1.0)
        assert list(policy.delays()) == [2.0, 2.0, 2.0]

    def test_no_retries(self):
        assert list(RetryPolicy(max_attempts=0).delays()) == []

    def test_each_call_restarts_the_schedule(self):
        policy = RetryPolicy(max_attempts=2)
        assert list(policy.delays()) == list(policy.delays())

    @pytest.mark.parametrize("kwargs,match", [
        ({"max_attempts": -1}, "max_attempts"),
        ({"base_delay": -0.1}, "negative"),
        ({"max_delay": -1.0}, "negative"),
        ({"multiplier": 0.5}, "multiplier"),
    ])
    def test_invalid_schedule(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            RetryPolicy(**kwargs)
