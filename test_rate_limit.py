from starlette.requests import Request

from rate_limit import FixedWindowLimiter, SlidingWindowLimiter, client_ip


def _request(headers=None, client=("198.51.100.4", 5000)):
    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_fixed_window_rejects_extra_request_until_reset(clock):
    limiter = FixedWindowLimiter(max_requests=3, window_seconds=60, clock=clock)

    assert [limiter.allow("ip") for _ in range(3)] == [True, True, True]
    assert limiter.allow("ip") is False
    assert limiter.allow("other") is True

    clock.advance(59)
    assert limiter.allow("ip") is False
    clock.advance(1)
    assert limiter.allow("ip") is True


def test_sliding_window_only_counts_recorded_events(clock):
    limiter = SlidingWindowLimiter(max_events=2, window_seconds=100, clock=clock)

    assert limiter.is_limited("ip") is False
    limiter.record("ip")
    clock.advance(50)
    limiter.record("ip")
    assert limiter.is_limited("ip") is True

    # first event ages out
    clock.advance(50)
    assert limiter.is_limited("ip") is False
    limiter.record("ip")
    assert limiter.is_limited("ip") is True


def test_reset_clears_state(clock):
    limiter = FixedWindowLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.allow("ip")
    assert limiter.allow("ip") is False
    limiter.reset()
    assert limiter.allow("ip") is True


def test_client_ip_precedence():
    assert client_ip(_request({"X-Forwarded-For": "1.2.3.4, 5.6.7.8", "X-Real-IP": "9.9.9.9"})) == "1.2.3.4"
    assert client_ip(_request({"X-Real-IP": "9.9.9.9"})) == "9.9.9.9"
    assert client_ip(_request()) == "198.51.100.4"
    assert client_ip(_request(client=None)) == "unknown"
