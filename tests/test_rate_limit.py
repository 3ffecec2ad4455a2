import pytest

from bookswap.security import rate_limit


@pytest.fixture(autouse=True)
def _clean_buckets():
    rate_limit.reset()
    yield
    rate_limit.reset()


def test_hit_allows_up_to_limit():
    assert all(rate_limit.hit("k", limit=3, window_sec=60) for _ in range(3))
    assert rate_limit.hit("k", limit=3, window_sec=60) is False
    assert rate_limit.hit("other", limit=3, window_sec=60) is True


def test_window_expiry(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_limit.time, "time", lambda: now[0])

    assert rate_limit.hit("k", limit=1, window_sec=10)
    assert not rate_limit.hit("k", limit=1, window_sec=10)

    now[0] += 11
    assert rate_limit.hit("k", limit=1, window_sec=10)


def test_auth_endpoints_are_rate_limited_outside_tests(app, client):
    app.config["TESTING"] = False
    limit, _ = rate_limit.limits_for("auth.login")

    codes = [
        client.post("/auth/login", json={"email": "a@b.c", "password": "x"}).status_code
        for _ in range(limit + 1)
    ]

    assert codes[:limit] == [401] * limit
    assert codes[-1] == 429
