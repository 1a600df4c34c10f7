import jwt
import pytest

from arena_auth.models import User

from .conftest import TEST_SECRET


def decode(token):
    return jwt.decode(token, TEST_SECRET, algorithms=["HS256"])


def test_register_success(client, app, test_user):
    resp = client.post("/register", json=test_user)
    assert resp.status_code == 201

    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    user = body["data"]["user"]
    assert isinstance(user["id"], int)
    assert user["username"] == test_user["username"]
    assert user["email"] == test_user["email"]
    assert "createdAt" in user
    assert "password" not in user
    assert "password_hash" not in user
    assert body["data"]["token"].count(".") == 2

    # Row really is in the store, with a hash instead of the password
    db = app.state.session_factory()
    try:
        rows = db.query(User).filter(User.email == test_user["email"]).all()
        assert len(rows) == 1
        assert rows[0].username == test_user["username"]
        assert rows[0].password_hash != test_user["password"]
    finally:
        db.close()


def test_register_duplicate_email(client, registered_user, test_user):
    resp = client.post("/register", json={**test_user, "username": "differentuser"})
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Username or email already exists"}


def test_register_duplicate_username(client, registered_user, test_user):
    resp = client.post("/register", json={**test_user, "email": "different@example.com"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Username or email already exists"


def test_register_conflict_with_row_inserted_directly(client, app, test_user):
    db = app.state.session_factory()
    try:
        db.add(User(username=test_user["username"], email=test_user["email"], password_hash="hashed_password"))
        db.commit()
    finally:
        db.close()

    resp = client.post("/register", json=test_user)
    assert resp.status_code == 409
    assert resp.json()["success"] is False


def test_register_stores_normalized_email(client, test_user):
    resp = client.post("/register", json={**test_user, "email": "Test.User+arena@GoogleMail.com"})
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["email"] == "testuser@gmail.com"

    login = client.post("/login", json={"email": "testuser@gmail.com", "password": test_user["password"]})
    assert login.status_code == 200


@pytest.mark.parametrize("override", [
    {"username": "ab"},
    {"username": "bad name!"},
    {"email": "invalid-email"},
    {"password": "weak"},
    {"password": "alllowercase1"},
])
def test_register_validation_failures(client, test_user, override):
    resp = client.post("/register", json={**test_user, **override})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Input validation failed"
    assert len(body["errors"]) > 0
    assert {e["field"] for e in body["errors"]} == set(override)


def test_register_missing_fields(client):
    resp = client.post("/register", json={"username": "testuser123"})
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json()["errors"]}
    assert fields == {"email", "password"}


def test_register_collects_all_errors(client):
    resp = client.post("/register", json={"username": "ab", "email": "invalid-email", "password": "weak"})
    assert resp.status_code == 400
    errors = resp.json()["errors"]
    assert isinstance(errors, list)
    assert [e["field"] for e in errors] == ["username", "email", "password", "password"]
    assert all(set(e) == {"field", "message"} for e in errors)


def test_register_wrong_type_is_validation_error(client, test_user):
    resp = client.post("/register", json={**test_user, "username": 12345})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Input validation failed"
    assert resp.json()["errors"][0]["field"] == "username"


def test_login_success(client, registered_user, test_user):
    resp = client.post("/login", json={"email": test_user["email"], "password": test_user["password"]})
    assert resp.status_code == 200

    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    user = body["data"]["user"]
    assert user == {
        "id": registered_user["user"]["id"],
        "username": test_user["username"],
        "email": test_user["email"],
    }

    claims = decode(body["data"]["token"])
    assert claims["userId"] == user["id"]
    assert claims["username"] == test_user["username"]
    assert claims["exp"] - claims["iat"] == 24 * 60 * 60


def test_login_failures_are_indistinguishable(client, registered_user, test_user):
    wrong_password = client.post("/login", json={"email": test_user["email"], "password": "WrongPass123"})
    unknown_email = client.post("/login", json={"email": "nonexistent@example.com", "password": test_user["password"]})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["message"] == "Email or password is incorrect"


@pytest.mark.parametrize("payload", [
    {"email": "invalid-email", "password": "TestPass123"},
    {"email": "testuser123@example.com", "password": ""},
    {"email": "testuser123@example.com"},
])
def test_login_validation_failures(client, registered_user, payload):
    resp = client.post("/login", json=payload)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Input validation failed"


def test_login_does_not_check_password_complexity(client, app):
    # Accounts created before the complexity rules still log in
    db = app.state.session_factory()
    try:
        db.add(User(username="legacy", email="legacy@example.com",
                    password_hash=app.state.password_hasher.hash("simple")))
        db.commit()
    finally:
        db.close()

    resp = client.post("/login", json={"email": "legacy@example.com", "password": "simple"})
    assert resp.status_code == 200


def test_repeated_logins_each_return_a_token(client, registered_user, test_user):
    creds = {"email": test_user["email"], "password": test_user["password"]}
    first = client.post("/login", json=creds).json()["data"]["token"]
    second = client.post("/login", json=creds).json()["data"]["token"]

    assert first and second
    assert first != second
    assert decode(first)["userId"] == decode(second)["userId"]


def test_test_posture_skips_rate_limits(client):
    for i in range(6):
        resp = client.post("/register", json={
            "username": f"burst_user_{i}",
            "email": f"burst{i}@example.com",
            "password": "BurstPass1",
        })
        assert resp.status_code == 201
        assert "RateLimit-Limit" not in resp.headers


def test_register_rejects_username_with_trailing_newline(client, test_user):
    resp = client.post("/register", json={**test_user, "username": "newline_user\n"})
    assert resp.status_code == 400
    assert resp.json()["errors"] == [
        {"field": "username", "message": "Username may only contain letters, numbers and underscores"},
    ]


def test_register_rejects_null_byte_password(client, test_user):
    resp = client.post("/register", json={**test_user, "password": "Abc123\x00x"})
    assert resp.status_code == 400
    assert resp.json()["errors"] == [
        {"field": "password", "message": "Password must not contain null characters"},
    ]


def test_login_with_null_byte_password_is_plain_401(client, registered_user, test_user):
    resp = client.post("/login", json={"email": test_user["email"], "password": "Abc\x00"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Email or password is incorrect"


def test_register_rejects_gmail_tag_only_address(client, test_user):
    resp = client.post("/register", json={**test_user, "email": "+tag@gmail.com"})
    assert resp.status_code == 400
    assert resp.json()["errors"] == [{"field": "email", "message": "Please provide a valid email address"}]
