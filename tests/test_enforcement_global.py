from tests.conftest import login_session


def test_enforcement_requires_login_for_private_endpoints(client):
    res = client.get("/books/", follow_redirects=False)
    assert res.status_code == 401

    res = client.get("/requests/stats")
    assert res.status_code == 401
    assert res.get_json()["error"] == "unauthorized"


def test_enforcement_allows_public_endpoints_without_login(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert client.get("/auth/me").status_code == 200


def test_enforcement_rejects_unverified_session(client):
    login_session(client, user_id=4, is_verified=False)
    res = client.get("/books/", follow_redirects=False)
    assert res.status_code == 401


def test_enforcement_rejects_session_of_missing_user(client):
    with client.session_transaction() as sess:
        sess["user_id"] = 404
    res = client.get("/books/", follow_redirects=False)
    assert res.status_code == 401


def test_unknown_route_is_json_404(client):
    login_session(client)
    res = client.get("/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "not_found"
