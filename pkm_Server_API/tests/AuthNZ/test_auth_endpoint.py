# test_auth_endpoint.py
#
# Imports
import pytest
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.Users_DB import ensure_user_exists
#
########################################################################################################################
#
# Tests:

AUTH_URL = "/api/v1/auth"


def _register(client, username="erin", password="pass123", **extra):
    return client.post(f"{AUTH_URL}/register", json={"username": username, "password": password, **extra})


def _login(client, username="erin", password="pass123"):
    return client.post(f"{AUTH_URL}/login", data={"username": username, "password": password})


def test_register_login_and_me(anonymous_client):
    registered = _register(anonymous_client, email="erin@example.com")
    assert registered.status_code == 201
    body = registered.json()
    assert body["username"] == "erin"
    assert body["is_active"] is True
    assert "password_hash" not in body

    login = _login(anonymous_client)
    assert login.status_code == 200
    token = login.json()
    assert token["token_type"] == "bearer"

    me = anonymous_client.get(f"{AUTH_URL}/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]
    assert me.json()["email"] == "erin@example.com"


def test_duplicate_username_is_409(anonymous_client):
    assert _register(anonymous_client).status_code == 201
    assert _register(anonymous_client, password="different").status_code == 409


@pytest.mark.parametrize("body", [
    {"password": "pass123"},
    {"username": "erin"},
    {"username": "   ", "password": "pass123"},
    {"username": "erin", "password": ""},
])
def test_register_requires_username_and_password(anonymous_client, body):
    response = anonymous_client.post(f"{AUTH_URL}/register", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == "Username and password are required."


def test_register_rejects_short_password(anonymous_client):
    response = _register(anonymous_client, password="ab")
    assert response.status_code == 400
    assert response.json()["detail"] == "Password must be at least 3 characters."


@pytest.mark.parametrize("username,password", [("erin", "wrong"), ("nobody", "pass123")])
def test_bad_credentials_are_401(anonymous_client, username, password):
    _register(anonymous_client)
    response = _login(anonymous_client, username, password)
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_password_less_account_cannot_log_in(anonymous_client, db):
    ensure_user_exists(db, 77, "single_user")
    assert _login(anonymous_client, "single_user", "!").status_code == 401


def test_inactive_user_cannot_log_in(anonymous_client, db):
    user = _register(anonymous_client).json()
    db.execute_query("UPDATE users SET is_active = 0 WHERE id = ?", (user["id"],))
    assert _login(anonymous_client).status_code == 401

#
# End of test_auth_endpoint.py
########################################################################################################################
