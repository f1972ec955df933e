import pytest

from credpool import PoolExhaustedError


def test_all_keys_failing_raises_exhausted(make_pool, api_error):
    pool = make_pool("aaa,bbb")
    calls = []

    def op(client):
        calls.append(client)
        raise api_error(f"bad response from {client}")

    with pytest.raises(PoolExhaustedError) as ei:
        pool.execute(op, "list.tweets(123)")
    err = ei.value
    assert calls == ["aaa", "bbb"]
    assert err.operation == "list.tweets(123)"
    assert err.pool_size == 2  # noqa: PLR2004
    assert err.attempts == 2  # noqa: PLR2004
    assert isinstance(err.__cause__, api_error)
    assert "list.tweets(123)" in str(err)
    assert "bad response from bbb" in str(err)


def test_all_cooling_waits_and_retries_same_operation(make_pool, clock, api_error):
    pool = make_pool("aaa,bbb")

    def limited(client):
        raise api_error("Too Many Requests", code=429)

    with pytest.raises(PoolExhaustedError):
        pool.execute(limited, "warmup")
    start = clock.t

    calls = []

    def op(client):
        calls.append(client)
        return client

    assert pool.execute(op, "list.members") == "aaa"
    assert calls == ["aaa"]
    assert clock.t == start + 900
    assert clock.sleeps == [30.0] * 30
    # diagnostics counter resets on success
    assert pool._state.consecutive_exhausted == 0


def test_exhaustion_wait_is_bounded_by_soonest_cooldown(make_pool, clock, api_error):
    pool = make_pool("aaa,bbb", error_cooldown=10)

    def broken(client):
        raise api_error("boom")

    with pytest.raises(PoolExhaustedError):
        pool.execute(broken)
    assert pool.execute(lambda c: c) == "aaa"
    assert clock.sleeps == [10.0]


def test_exhaustion_counter_grows_across_waits(make_pool, clock, api_error):
    pool = make_pool("aaa", max_exhaustion_waits=2)

    def limited(client):
        raise api_error("rate limit reached")

    with pytest.raises(PoolExhaustedError):
        pool.execute(limited)

    with pytest.raises(PoolExhaustedError) as ei:
        pool.execute(lambda c: c, "stuck")
    assert ei.value.attempts == 0
    assert ei.value.last_error is None
    assert clock.sleeps == [30.0, 30.0]
    assert pool._state.consecutive_exhausted == 2  # noqa: PLR2004

    pool.reset_all()
    assert pool._state.consecutive_exhausted == 0
    assert pool.execute(lambda c: c) == "aaa"


def test_all_unhealthy_and_nothing_cooling_fails_without_waiting(
    make_pool, clock, api_error
):
    pool = make_pool("aaa", max_consecutive_failures=1)

    def broken(client):
        raise api_error("boom")

    with pytest.raises(PoolExhaustedError):
        pool.execute(broken)
    clock.advance(121)

    with pytest.raises(PoolExhaustedError) as ei:
        pool.execute(lambda c: c)
    assert ei.value.attempts == 0
    assert clock.sleeps == []


def test_recovery_after_wait_uses_newly_eligible_key(make_pool, clock, api_error):
    pool = make_pool("aaa,bbb,ccc", error_cooldown=60)

    def broken(client):
        raise api_error("boom")

    with pytest.raises(PoolExhaustedError):
        pool.execute(broken)
    # bbb comes back first
    pool._state.records[1].cooldown_until = clock.t + 5
    assert pool.execute(lambda c: c) == "bbb"
    assert clock.sleeps == [5.0]
