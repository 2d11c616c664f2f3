"""Unit tests for anti-ban send pacing."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.services.rate_limit_service import SendRateLimiter


def make_limiter(clock: Mock, **overrides) -> SendRateLimiter:
    options = {
        "enabled": True,
        "message_delay_ms": 30000,
        "max_messages_per_hour": 50,
        "clock": clock,
    }
    options.update(overrides)
    return SendRateLimiter(**options)


class TestCanSend:
    def test_disabled_always_allows(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock, enabled=False)

        for _ in range(100):
            assert limiter.can_send("s1").allowed is True
            limiter.record_send("s1")

    def test_first_message_allowed(self) -> None:
        limiter = make_limiter(Mock(return_value=1000.0))

        check = limiter.can_send("s1")

        assert check.allowed is True
        assert check.reason is None

    def test_minimum_delay_enforced(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.can_send("s1")
        limiter.record_send("s1")

        clock.return_value = 1010.0
        check = limiter.can_send("s1")

        assert check.allowed is False
        assert check.delay_ms == 20000
        assert check.retry_after_seconds == 20
        assert check.reason == "Minimum delay between messages not met (20s remaining)"

    def test_delay_elapsed_allows(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.record_send("s1")

        clock.return_value = 1030.0

        assert limiter.can_send("s1").allowed is True

    def test_delay_is_per_session(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.record_send("s1")

        assert limiter.can_send("s1").allowed is False
        assert limiter.can_send("s2").allowed is True

    def test_session_hourly_cap_is_half_of_global(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock, message_delay_ms=0, max_messages_per_hour=5)

        limiter.record_send("s1")
        limiter.record_send("s1")
        check = limiter.can_send("s1")

        assert limiter.session_hourly_limit == 2
        assert check.allowed is False
        assert check.reason == "Session hourly limit reached (2 messages)"
        assert check.retry_after_seconds == 3600

    def test_global_cap_checked_first(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock, max_messages_per_hour=4)
        for sid in ("a", "b", "c", "d"):
            limiter.record_send(sid)

        check = limiter.can_send("fresh")

        assert check.allowed is False
        assert check.reason == "Global hourly limit reached (4 messages)"
        # Denied before the session entry is created
        assert "fresh" not in limiter.all_session_limits()

    def test_session_window_rolls_forward(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock, message_delay_ms=0, max_messages_per_hour=4)
        limiter.record_send("s1")
        limiter.record_send("s1")
        assert limiter.can_send("s1").allowed is False

        clock.return_value = 1000.0 + 3601
        check = limiter.can_send("s1")

        assert check.allowed is True
        assert limiter.all_session_limits()["s1"].hourly_count == 0

    def test_global_window_resets_lazily(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock, message_delay_ms=0, max_messages_per_hour=2)
        limiter.record_send("a")
        limiter.record_send("b")
        assert limiter.can_send("c").allowed is False

        clock.return_value = 1000.0 + 3600
        assert limiter.can_send("c").allowed is True
        assert limiter.global_stats()["global_hourly_count"] == 0


class TestMonitoring:
    def test_session_status_has_no_side_effects(self) -> None:
        limiter = make_limiter(Mock(return_value=1000.0))

        status = limiter.session_status("unknown")

        assert status == {
            "can_send": True,
            "time_until_next_message_ms": 0,
            "hourly_count": 0,
            "hourly_limit": 25,
            "global_count": 0,
            "global_limit": 50,
        }
        assert limiter.all_session_limits() == {}

    def test_session_status_reports_pending_delay(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.record_send("s1")
        clock.return_value = 1005.0

        status = limiter.session_status("s1")

        assert status["can_send"] is False
        assert status["time_until_next_message_ms"] == 25000
        assert status["hourly_count"] == 1
        assert status["global_count"] == 1

    def test_global_stats(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.record_send("s1")
        limiter.record_send("s2")
        clock.return_value = 1600.0

        stats = limiter.global_stats()

        assert stats == {
            "global_hourly_count": 2,
            "global_hourly_limit": 50,
            "active_sessions": 2,
            "time_until_reset_ms": 3000000,
        }

    def test_reset_session_forgets_state(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = make_limiter(clock)
        limiter.record_send("s1")
        assert limiter.can_send("s1").allowed is False

        limiter.reset_session("s1")

        assert limiter.can_send("s1").allowed is True
        # The global counter is untouched
        assert limiter.global_stats()["global_hourly_count"] == 1

    def test_all_session_limits_is_a_copy(self) -> None:
        limiter = make_limiter(Mock(return_value=1000.0))
        limiter.record_send("s1")

        snapshot = limiter.all_session_limits()
        snapshot["s1"].hourly_count = 99

        assert limiter.all_session_limits()["s1"].hourly_count == 1


class TestRandomDelay:
    @pytest.mark.asyncio
    async def test_sleeps_within_bounds(self) -> None:
        limiter = make_limiter(
            Mock(return_value=0.0), random_delay_min_ms=1000, random_delay_max_ms=5000
        )

        with patch("app.services.rate_limit_service.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.random_delay()

        seconds = sleep.await_args.args[0]
        assert 1.0 <= seconds <= 5.0

    @pytest.mark.asyncio
    async def test_skipped_when_disabled(self) -> None:
        limiter = make_limiter(Mock(return_value=0.0), enabled=False)

        with patch("app.services.rate_limit_service.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.random_delay()

        sleep.assert_not_awaited()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"message_delay_ms": -1},
        {"max_messages_per_hour": 0},
        {"random_delay_min_ms": 10, "random_delay_max_ms": 5},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        make_limiter(Mock(return_value=0.0), **kwargs)
