"""
RateLimiter 单元测试
"""

from ensemble.services.rate_limit.limiter import RateLimiter


def test_unknown_profile_is_not_limited(rate_limiter: RateLimiter) -> None:
    status = rate_limiter.check("never-seen")

    assert status.limited is False
    assert status.retry_in_ms is None
    # check 不应创建记录
    assert rate_limiter.snapshot() == {}


def test_backoff_doubles_per_consecutive_error(rate_limiter: RateLimiter) -> None:
    first = rate_limiter.record_rate_limit("p1")
    second = rate_limiter.record_rate_limit("p1")
    third = rate_limiter.record_rate_limit("p1")

    assert first.retry_in_ms == 10_000
    assert second.retry_in_ms == 20_000
    assert third.retry_in_ms == 40_000
    assert rate_limiter.snapshot()["p1"].consecutive_errors == 3


def test_backoff_is_capped_at_max_delay(fake_clock) -> None:
    limiter = RateLimiter(base_delay_ms=5_000, max_delay_ms=30_000, clock=fake_clock)
    for _ in range(10):
        decision = limiter.record_rate_limit("p1")

    assert decision.retry_in_ms == 30_000
    assert limiter.check("p1").retry_in_ms == 30_000


def test_retry_after_overrides_backoff(rate_limiter: RateLimiter) -> None:
    decision = rate_limiter.record_rate_limit("P1", 10)
    status = rate_limiter.check("P1")

    assert decision.retry_in_ms == 10_000
    assert status.limited is True
    assert status.retry_in_ms == 10_000


def test_retry_after_is_capped_at_max_delay(rate_limiter: RateLimiter) -> None:
    decision = rate_limiter.record_rate_limit("p1", "100000")

    assert decision.retry_in_ms == 300_000


def test_invalid_retry_after_falls_back_to_backoff(rate_limiter: RateLimiter) -> None:
    assert rate_limiter.record_rate_limit("a", "soon").retry_in_ms == 10_000
    assert rate_limiter.record_rate_limit("b", 0).retry_in_ms == 10_000
    assert rate_limiter.record_rate_limit("c", -5).retry_in_ms == 10_000


def test_expiry_is_lazy_and_keeps_error_count(rate_limiter: RateLimiter, fake_clock) -> None:
    rate_limiter.record_rate_limit("p1")
    fake_clock.advance(9.999)
    assert rate_limiter.check("p1").limited is True

    fake_clock.advance(0.001)
    assert rate_limiter.check("p1").limited is False

    record = rate_limiter.snapshot()["p1"]
    assert record.limited is False
    assert record.consecutive_errors == 1

    # 未经成功重置，下一次 429 延续指数退避
    assert rate_limiter.record_rate_limit("p1").retry_in_ms == 20_000


def test_success_resets_state(rate_limiter: RateLimiter) -> None:
    rate_limiter.record_rate_limit("p1")
    rate_limiter.record_rate_limit("p1")
    rate_limiter.record_success("p1")

    assert rate_limiter.check("p1").limited is False
    assert rate_limiter.snapshot()["p1"].consecutive_errors == 0
    assert rate_limiter.record_rate_limit("p1").retry_in_ms == 10_000


def test_profiles_are_tracked_independently(rate_limiter: RateLimiter) -> None:
    rate_limiter.record_rate_limit("a")

    assert rate_limiter.check("a").limited is True
    assert rate_limiter.check("b").limited is False


def test_reason_mentions_wait_and_error_count(rate_limiter: RateLimiter) -> None:
    rate_limiter.record_rate_limit("p1", 10)
    rate_limiter.record_rate_limit("p1", 10)

    reason = rate_limiter.check("p1").reason
    assert reason == "Rate limited. Retry in 10 seconds (2 consecutive errors)"


def test_all_limited(rate_limiter: RateLimiter) -> None:
    assert rate_limiter.all_limited([]) is False

    rate_limiter.record_rate_limit("a")
    assert rate_limiter.all_limited(["a"]) is True
    assert rate_limiter.all_limited(["a", "b"]) is False

    rate_limiter.record_rate_limit("b")
    assert rate_limiter.all_limited(["a", "b"]) is True


def test_snapshot_returns_copies(rate_limiter: RateLimiter) -> None:
    rate_limiter.record_rate_limit("p1")
    snapshot = rate_limiter.snapshot()
    snapshot["p1"].limited = False
    snapshot["p1"].consecutive_errors = 99

    assert rate_limiter.check("p1").limited is True
    assert rate_limiter.snapshot()["p1"].consecutive_errors == 1


def test_clear_and_clear_all(rate_limiter: RateLimiter) -> None:
    rate_limiter.record_rate_limit("a")
    rate_limiter.record_rate_limit("b")

    rate_limiter.clear("a")
    assert rate_limiter.check("a").limited is False
    assert rate_limiter.check("b").limited is True

    rate_limiter.clear_all()
    assert rate_limiter.snapshot() == {}


def test_http_date_retry_after_uses_injected_clock(rate_limiter: RateLimiter) -> None:
    # FakeClock 从 Unix 时间 1000s 开始，这个日期正好晚 120s
    decision = rate_limiter.record_rate_limit("p1", "Thu, 01 Jan 1970 00:18:40 GMT")

    assert decision.retry_in_ms == 120_000
    assert rate_limiter.check("p1").retry_in_ms == 120_000
