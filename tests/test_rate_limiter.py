import pytest

from school_intake.app.rate_limit import InMemoryRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


DAY = 24 * 60 * 60


@pytest.fixture
def clock():
    return FakeClock()


def test_first_attempt_is_allowed(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)

    decision = limiter.hit("203.0.113.7")

    assert decision.allowed is True
    assert decision.remaining == 0
    assert decision.reset_after == pytest.approx(DAY)


def test_second_attempt_in_window_is_denied(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)
    limiter.hit("203.0.113.7")
    clock.advance(DAY - 1)

    decision = limiter.hit("203.0.113.7")

    assert decision.allowed is False
    assert decision.reset_after == pytest.approx(1)


def test_window_rolls_over(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)
    limiter.hit("203.0.113.7")
    clock.advance(DAY)

    assert limiter.hit("203.0.113.7").allowed is True


def test_denied_attempts_do_not_extend_the_window(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)
    limiter.hit("203.0.113.7")
    clock.advance(DAY / 2)
    assert limiter.hit("203.0.113.7").allowed is False

    clock.advance(DAY / 2)

    assert limiter.hit("203.0.113.7").allowed is True


def test_clients_are_tracked_separately(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)
    limiter.hit("203.0.113.7")

    assert limiter.hit("198.51.100.4").allowed is True


def test_limit_above_one(clock):
    limiter = InMemoryRateLimiter(limit=3, window_seconds=60, clock=clock)

    results = [limiter.hit("client").allowed for _ in range(4)]

    assert results == [True, True, True, False]


def test_prune_drops_expired_clients(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.hit("old")
    clock.advance(30)
    limiter.hit("recent")
    clock.advance(45)

    assert limiter.prune() == 1
    assert limiter.hit("recent").allowed is False
    assert limiter.hit("old").allowed is True


def test_headers_for_denied_decision(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=DAY, clock=clock)
    limiter.hit("client")
    clock.advance(0.5)

    headers = limiter.hit("client").headers()

    assert headers["RateLimit-Limit"] == "1"
    assert headers["RateLimit-Remaining"] == "0"
    assert headers["RateLimit-Reset"] == str(DAY)
    assert headers["Retry-After"] == str(DAY)


@pytest.mark.parametrize("limit, window", [(0, 60), (1, 0)])
def test_rejects_invalid_configuration(limit, window):
    with pytest.raises(ValueError):
        InMemoryRateLimiter(limit=limit, window_seconds=window)


def test_expired_clients_are_swept_while_serving(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
    for index in range(1000):
        limiter.hit(f"198.51.100.{index}")
    assert len(limiter._attempts) == 1000

    clock.advance(10_000)
    limiter.hit("203.0.113.7")

    assert len(limiter._attempts) == 1


def test_sweep_keeps_clients_inside_their_window(clock):
    limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.hit("early")
    clock.advance(50)
    limiter.hit("late")
    clock.advance(20)

    limiter.hit("new")

    assert set(limiter._attempts) == {"late", "new"}
    assert limiter.hit("late").allowed is False
