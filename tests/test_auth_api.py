from urllib.parse import parse_qs, urlparse

from storefront.data.models.session import SessionModel
from storefront.data.models.user import UserModel
from storefront.services.oauth_client import code_challenge_s256

REGISTER = {
    "first_name": "Jan",
    "last_name": "Kowalski",
    "email": "Jan@Example.com",
    "password": "CorrectHorse9",
}


def test_register_creates_user_and_session(client, notifications):
    resp = client.post("/auth/register", json=REGISTER)

    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "jan@example.com"
    assert body["email_verified"] is False
    assert "auth-session" in resp.cookies
    assert notifications.verification_codes[0][0] == "jan@example.com"

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]


def test_register_duplicate_email(client, make_user):
    make_user(email="jan@example.com")

    resp = client.post("/auth/register", json=REGISTER)

    assert resp.status_code == 400
    assert resp.json() == {"errors": {"email": "already registered"}}


def test_register_breached_password(client, pwned):
    resp = client.post("/auth/register", json={**REGISTER, "password": "password123"})

    assert resp.status_code == 400
    assert resp.json() == {"errors": {"password": "weak password"}}
    assert pwned.checked == ["password123"]


def test_register_invalid_input(client):
    resp = client.post("/auth/register", json={**REGISTER, "email": "not-an-email", "password": "short"})

    assert resp.status_code == 400
    errors = resp.json()["errors"]
    assert errors["email"] == "invalid email"
    assert errors["password"] == "must be at least 8 characters"


def test_me_requires_session(client):
    assert client.get("/auth/me").status_code == 401


def test_login_and_logout(client, make_user):
    make_user()

    resp = client.post("/auth/login", json={"email": "jan@example.com", "password": "CorrectHorse9"})
    assert resp.status_code == 200
    assert client.get("/auth/me").status_code == 200

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_login_wrong_password(client, make_user):
    make_user()

    resp = client.post("/auth/login", json={"email": "jan@example.com", "password": "WrongHorse9"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid email or password"
    assert "auth-session" not in resp.cookies


def test_login_inactive_user(client, make_user):
    make_user(status="suspended")

    resp = client.post("/auth/login", json={"email": "jan@example.com", "password": "CorrectHorse9"})

    assert resp.status_code == 400


def test_login_rate_limited(client, make_user, fake_redis):
    make_user()
    payload = {"email": "jan@example.com", "password": "WrongHorse9"}

    for _ in range(5):
        assert client.post("/auth/login", json=payload).status_code == 400
    resp = client.post("/auth/login", json=payload)

    assert resp.status_code == 429
    assert resp.headers["retry-after"] == "900"
    assert all(expiry == 900 for expiry in fake_redis.expiry.values())


def test_invalid_session_cookie_is_cleared(client):
    client.cookies.set("auth-session", "forged")

    resp = client.get("/auth/me")

    assert resp.status_code == 401
    assert any(h.startswith("auth-session=") for h in resp.headers.get_list("set-cookie"))


def test_verify_email(client, notifications):
    client.post("/auth/register", json=REGISTER)
    code = notifications.verification_codes[-1][1]

    resp = client.post("/auth/verify-email", json={"code": code.lower()})

    assert resp.status_code == 200
    assert resp.json()["email_verified"] is True


def test_verify_email_wrong_code(client):
    client.post("/auth/register", json=REGISTER)

    resp = client.post("/auth/verify-email", json={"code": "AAAAAAAA"})

    assert resp.status_code == 400


def test_password_reset_flow(client, make_user, notifications):
    make_user()

    assert client.post("/auth/forgot-password", json={"email": "jan@example.com"}).status_code == 200
    code = notifications.reset_codes[-1][1]

    # najpierw kod z maila
    assert client.post("/auth/reset-password", json={"password": "NewPassword9"}).status_code == 403
    assert client.post("/auth/reset-password/verify-email", json={"code": code}).status_code == 200

    resp = client.post("/auth/reset-password", json={"password": "NewPassword9"})
    assert resp.status_code == 200
    assert resp.json()["email_verified"] is True

    client.cookies.clear()
    login = client.post("/auth/login", json={"email": "jan@example.com", "password": "NewPassword9"})
    assert login.status_code == 200


def test_reset_password_without_session(client):
    resp = client.post("/auth/reset-password", json={"password": "NewPassword9"})
    assert resp.status_code == 401


def test_forgot_password_unknown_email(client):
    resp = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert resp.status_code == 400


def test_change_password(client, make_user):
    make_user()
    client.post("/auth/login", json={"email": "jan@example.com", "password": "CorrectHorse9"})

    wrong = client.put("/auth/password", json={"current_password": "nope", "new_password": "NewPassword9"})
    assert wrong.status_code == 400
    assert wrong.json() == {"errors": {"current_password": "incorrect password"}}

    resp = client.put("/auth/password", json={"current_password": "CorrectHorse9", "new_password": "NewPassword9"})
    assert resp.status_code == 200
    assert client.get("/auth/me").status_code == 200


def _start_oauth(client):
    resp = client.get("/auth/login/github", params={"redirect": "/account"}, follow_redirects=False)
    assert resp.status_code == 302
    state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]
    return state


def test_oauth_login_creates_user(client, db, oauth_clients):
    state = _start_oauth(client)

    resp = client.get("/auth/callback/github", params={"code": "abc", "state": state}, follow_redirects=False)

    assert resp.status_code == 303
    assert resp.headers["location"] == "/account"
    assert oauth_clients["github"].exchanged == ["abc"]
    me = client.get("/auth/me").json()
    assert me["email"] == "octo@example.com"
    assert me["provider"] == "github"


def test_oauth_state_mismatch(client, db):
    _start_oauth(client)

    resp = client.get("/auth/callback/github", params={"code": "abc", "state": "forged"}, follow_redirects=False)

    assert resp.status_code == 400
    assert db.query(UserModel).count() == 0
    assert db.query(SessionModel).count() == 0


def test_oauth_missing_state_cookie(client):
    resp = client.get("/auth/callback/github", params={"code": "abc", "state": "x"}, follow_redirects=False)
    assert resp.status_code == 400


def test_oauth_unknown_provider(client):
    assert client.get("/auth/login/myspace", follow_redirects=False).status_code == 404


def test_oauth_email_conflict_redirects_to_error(client, make_user):
    make_user(email="octo@example.com")
    state = _start_oauth(client)

    resp = client.get("/auth/callback/github", params={"code": "abc", "state": state}, follow_redirects=False)

    assert resp.status_code == 302
    location = urlparse(resp.headers["location"])
    assert location.path == "/auth/error"
    query = parse_qs(location.query)
    assert query["error"] == ["email_exists"]
    assert query["provider"] == ["email"]
    assert query["attempted_provider"] == ["github"]


def test_oauth_token_exchange_failure(client, oauth_clients):
    oauth_clients["github"].fail = True
    state = _start_oauth(client)

    resp = client.get("/auth/callback/github", params={"code": "abc", "state": state}, follow_redirects=False)

    assert resp.status_code == 400


def test_google_login_sends_s256_challenge(client):
    resp = client.get("/auth/login/google", follow_redirects=False)

    assert resp.status_code == 302
    verifier = resp.cookies["google_code_verifier"]
    query = parse_qs(urlparse(resp.headers["location"]).query)
    assert query["code_challenge_method"] == ["S256"]
    assert query["code_challenge"] == [code_challenge_s256(verifier)]


def test_google_callback_passes_verifier(client, oauth_clients):
    google = oauth_clients["google"]
    resp = client.get("/auth/login/google", follow_redirects=False)
    verifier = resp.cookies["google_code_verifier"]
    state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]

    resp = client.get("/auth/callback/google", params={"code": "xyz", "state": state}, follow_redirects=False)

    assert resp.status_code == 303
    assert google.verifiers == [verifier]
    assert client.get("/auth/me").json()["provider"] == "google"


def test_google_callback_without_verifier_cookie(client, db, oauth_clients):
    google = oauth_clients["google"]
    resp = client.get("/auth/login/google", follow_redirects=False)
    state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]
    client.cookies.delete("google_code_verifier")

    resp = client.get("/auth/callback/google", params={"code": "xyz", "state": state}, follow_redirects=False)

    assert resp.status_code == 400
    assert google.exchanged == []
    assert db.query(UserModel).count() == 0
