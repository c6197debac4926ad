from datetime import timedelta

from conftest import register_and_login
from app.core.security import create_access_token


async def test_register_does_not_log_in(client):
    resp = await client.post("/api/users/register", json={"username": "teamA", "password": "pw", "role": "participant"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert "token" not in resp.json()


async def test_register_duplicate_username_is_case_insensitive(client):
    await client.post("/api/users/register", json={"username": "TeamA", "password": "pw"})
    resp = await client.post("/api/users/register", json={"username": "  teama ", "password": "other"})
    assert resp.status_code == 409
    assert resp.json()["success"] is False
    assert resp.json()["error"] == "DuplicateUser"


async def test_register_rejects_unknown_role(client):
    resp = await client.post("/api/users/register", json={"username": "x", "password": "pw", "role": "owner"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationError"


async def test_login_returns_token_and_role(client):
    await client.post("/api/users/register", json={"username": "teamA", "password": "pw"})
    resp = await client.post("/api/users/login", json={"username": "TEAMA", "password": "pw", "deviceId": "d1"})
    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["role"] == "participant"
    assert body["user"]["username"] == "teama"
    assert body["deviceId"] == "d1"
    assert body["previousSessionInvalidated"] is False


async def test_login_generates_device_id_when_missing(client):
    await client.post("/api/users/register", json={"username": "teamA", "password": "pw"})
    resp = await client.post("/api/users/login", json={"username": "teamA", "password": "pw"})
    assert resp.status_code == 200
    assert resp.json()["deviceId"]


async def test_login_wrong_password(client):
    await client.post("/api/users/register", json={"username": "teamA", "password": "pw"})
    resp = await client.post("/api/users/login", json={"username": "teamA", "password": "nope", "deviceId": "d1"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "InvalidCredentials"


async def test_login_unknown_user(client):
    resp = await client.post("/api/users/login", json={"username": "ghost", "password": "pw", "deviceId": "d1"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "InvalidCredentials"


async def test_second_device_supersedes_first(client):
    first = await register_and_login(client, "teamA", device="d1")
    assert (await client.get("/api/users/me", headers=first)).status_code == 200

    resp = await client.post("/api/users/login", json={"username": "teamA", "password": "pw", "deviceId": "d2"})
    assert resp.json()["previousSessionInvalidated"] is True
    second = {"Authorization": f"Bearer {resp.json()['token']}"}

    stale = await client.get("/api/current-question", headers=first)
    assert stale.status_code == 401
    assert stale.json()["error"] == "SessionExpired"

    assert (await client.get("/api/users/me", headers=second)).status_code == 200


async def test_relogin_on_same_device_keeps_session(client):
    first = await register_and_login(client, "teamA", device="d1")
    resp = await client.post("/api/users/login", json={"username": "teamA", "password": "pw", "deviceId": "d1"})
    assert resp.json()["previousSessionInvalidated"] is False
    assert (await client.get("/api/users/me", headers=first)).status_code == 200


async def test_logout_clears_device_and_is_idempotent(client):
    headers = await register_and_login(client, "teamA", device="d1")

    assert (await client.post("/api/users/logout", headers=headers)).json() == {"success": True}
    assert (await client.post("/api/users/logout", headers=headers)).json() == {"success": True}

    after = await client.get("/api/users/me", headers=headers)
    assert after.json()["error"] == "SessionExpired"


async def test_logout_with_superseded_token_keeps_new_session(client):
    old = await register_and_login(client, "teamA", device="d1")
    new = await register_and_login(client, "teamA", device="d2")

    assert (await client.post("/api/users/logout", headers=old)).status_code == 200
    assert (await client.get("/api/users/me", headers=new)).status_code == 200


async def test_missing_and_garbage_tokens(client):
    resp = await client.get("/api/current-question")
    assert resp.status_code == 401
    assert resp.json()["error"] == "AuthenticationError"

    resp = await client.get("/api/current-question", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "InvalidCredentials"


async def test_participant_cannot_use_admin_endpoints(client, team_headers):
    resp = await client.get("/api/questions", headers=team_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"


async def test_anonymous_admin_registration_is_refused(client):
    resp = await client.post("/api/users/register", json={"username": "mallory", "password": "pw", "role": "admin"})
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"

    login = await client.post("/api/users/login", json={"username": "mallory", "password": "pw", "deviceId": "d1"})
    assert login.json()["error"] == "InvalidCredentials"


async def test_admin_registration_with_wrong_key_is_refused(client):
    resp = await client.post(
        "/api/users/register",
        json={"username": "mallory", "password": "pw", "role": "admin", "adminKey": "guess"},
    )
    assert resp.status_code == 403


async def test_participant_cannot_register_admin(client, team_headers):
    resp = await client.post(
        "/api/users/register",
        json={"username": "mallory", "password": "pw", "role": "admin"},
        headers=team_headers,
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"


async def test_admin_can_register_admin(client, admin_headers):
    resp = await client.post(
        "/api/users/register",
        json={"username": "helper", "password": "pw", "role": "admin"},
        headers=admin_headers,
    )
    assert resp.json() == {"success": True}

    login = await client.post("/api/users/login", json={"username": "helper", "password": "pw", "deviceId": "d1"})
    assert login.json()["user"]["role"] == "admin"


async def test_logout_with_expired_token(client):
    headers = await register_and_login(client, "teamA", device="d1")
    user_id = (await client.get("/api/users/me", headers=headers)).json()["user"]["id"]
    expired = create_access_token(
        {"sub": str(user_id), "device": "d1", "role": "participant"},
        expires_delta=timedelta(minutes=-5),
    )
    stale = {"Authorization": f"Bearer {expired}"}

    assert (await client.get("/api/users/me", headers=stale)).json()["error"] == "SessionExpired"
    resp = await client.post("/api/users/logout", headers=stale)
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    after = await client.get("/api/users/me", headers=headers)
    assert after.json()["error"] == "SessionExpired"
