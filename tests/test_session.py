# Tests for session.py

from unittest.mock import AsyncMock

import pytest

from twitchplays.session import SessionConnector


class FakeSession:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.attempts = 0

    async def connect(self):
        self.attempts += 1
        outcome = self.outcomes.pop(0) if self.outcomes else False
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def process(self):
        return []


@pytest.fixture
def sleep():
    return AsyncMock()


class TestConnect:
    async def test_first_attempt_succeeds(self, sleep):
        session = FakeSession([True])
        assert await SessionConnector(sleep=sleep).connect(session) is True
        assert session.attempts == 1
        sleep.assert_not_awaited()

    async def test_always_failing_stops_at_limit(self, sleep):
        session = FakeSession([])
        connector = SessionConnector(retry_limit=10, sleep=sleep)

        assert await connector.connect(session) is False
        assert session.attempts == 10
        # No wait after the final attempt.
        assert sleep.await_count == 9

    async def test_backoff_doubles_and_caps(self, sleep):
        connector = SessionConnector(retry_limit=10, initial_delay=1, max_delay=30, sleep=sleep)
        await connector.connect(FakeSession([]))

        waited = [call.args[0] for call in sleep.await_args_list]
        assert waited == [1, 2, 4, 8, 16, 30, 30, 30, 30]

    async def test_succeeds_after_failures(self, sleep):
        session = FakeSession([False, False, True])
        assert await SessionConnector(sleep=sleep).connect(session) is True
        assert session.attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]

    async def test_exception_counts_as_failed_attempt(self, sleep):
        session = FakeSession([OSError("refused"), True])
        assert await SessionConnector(sleep=sleep).connect(session) is True
        assert session.attempts == 2

    async def test_custom_limit(self, sleep):
        session = FakeSession([])
        assert await SessionConnector(retry_limit=3, sleep=sleep).connect(session) is False
        assert session.attempts == 3


def test_retry_limit_must_be_positive():
    with pytest.raises(ValueError):
        SessionConnector(retry_limit=0)


def test_delays_without_cap():
    connector = SessionConnector(retry_limit=5, initial_delay=1, max_delay=1000)
    assert list(connector.delays()) == [1, 2, 4, 8]
