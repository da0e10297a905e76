from utils.rate_limiter import RateLimiter

def test_rate_limiter_admits_max_ops_per_window(scheduler):
    limiter = RateLimiter(max_ops=60, window_ms=60_000, clock=scheduler.clock)
    for _ in range(60):
        assert limiter.try_acquire() is True
    assert limiter.try_acquire() is False      # 61st refused
    assert limiter.remaining() == 0

    scheduler.advance(60_001)
    assert limiter.try_acquire() is True

def test_refusal_does_not_extend_window(scheduler):
    limiter = RateLimiter(max_ops=2, window_ms=1000, clock=scheduler.clock)
    assert limiter.try_acquire() and limiter.try_acquire()
    scheduler.advance(500)
    assert limiter.try_acquire() is False
    scheduler.advance(501)
    # both original attempts are now older than the window
    assert limiter.remaining() == 2

def test_sliding_window_frees_oldest_first(scheduler):
    limiter = RateLimiter(max_ops=2, window_ms=1000, clock=scheduler.clock)
    assert limiter.try_acquire()
    scheduler.advance(600)
    assert limiter.try_acquire()
    scheduler.advance(401)
    assert limiter.try_acquire() is True
    assert limiter.try_acquire() is False

def test_reset_empties_window(scheduler):
    limiter = RateLimiter(max_ops=1, window_ms=1000, clock=scheduler.clock)
    assert limiter.try_acquire()
    limiter.reset()
    assert limiter.try_acquire() is True
