# test_request_user.py
#
# Imports
import pytest
#
# Local Imports
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.Users_DB import create_user, ensure_user_exists
from pkm_Server_API.app.core.Security.Security import create_access_token
#
########################################################################################################################
#
# Fixtures:

ME_URL = "/api/v1/auth/me"
NOTES_URL = "/api/v1/notes/"


@pytest.fixture
def single_user_mode(monkeypatch, db):
    monkeypatch.setitem(settings, "SINGLE_USER_MODE", True)
    monkeypatch.setitem(settings, "SINGLE_USER_API_KEY", "single-user-test-key")
    monkeypatch.setitem(settings, "SINGLE_USER_FIXED_ID", 99)
    return ensure_user_exists(db, 99, "single_user")


def _bearer(user_id):
    return {"Authorization": f"Bearer {create_access_token(data={'user_id': user_id})}"}

#
# Tests:


def test_multi_user_requires_token(anonymous_client):
    response = anonymous_client.get(ME_URL)
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_multi_user_rejects_bad_token(anonymous_client):
    response = anonymous_client.get(ME_URL, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"


def test_token_for_missing_user_is_401(anonymous_client):
    assert anonymous_client.get(ME_URL, headers=_bearer(123456)).status_code == 401


def test_token_for_inactive_user_is_401(anonymous_client, db, user_a):
    db.execute_query("UPDATE users SET is_active = 0 WHERE id = ?", (user_a["id"],))
    assert anonymous_client.get(ME_URL, headers=_bearer(user_a["id"])).status_code == 401


def test_valid_token_scopes_requests_to_its_user(anonymous_client, db, user_a, user_b):
    note = anonymous_client.post(NOTES_URL, json={"content": "alice's"}, headers=_bearer(user_a["id"])).json()
    assert anonymous_client.get(f"{NOTES_URL}{note['id']}", headers=_bearer(user_a["id"])).status_code == 200
    assert anonymous_client.get(f"{NOTES_URL}{note['id']}", headers=_bearer(user_b["id"])).status_code == 404


def test_single_user_mode_with_api_key(anonymous_client, single_user_mode):
    response = anonymous_client.get(ME_URL, headers={"X-API-KEY": "single-user-test-key"})
    assert response.status_code == 200
    assert response.json()["id"] == 99
    assert response.json()["username"] == "single_user"


@pytest.mark.parametrize("headers,detail", [
    ({}, "X-API-KEY header required for single-user mode"),
    ({"X-API-KEY": "wrong"}, "Invalid X-API-KEY"),
])
def test_single_user_mode_rejects_missing_or_wrong_key(anonymous_client, single_user_mode, headers, detail):
    response = anonymous_client.get(ME_URL, headers=headers)
    assert response.status_code == 401
    assert response.json()["detail"] == detail


def test_single_user_mode_ignores_bearer_tokens(anonymous_client, db, single_user_mode):
    other = create_user(db, "frank", "not-a-real-hash")
    assert anonymous_client.get(ME_URL, headers=_bearer(other["id"])).status_code == 401

#
# End of test_request_user.py
########################################################################################################################
