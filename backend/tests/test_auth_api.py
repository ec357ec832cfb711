import pytest
from app.core.security import create_access_token, create_refresh_token

@pytest.mark.asyncio
async def test_register_returns_tokens_and_user(client, register_user):
    data = await register_user(email="New@Example.com")

    assert data["token"]
    assert data["refreshToken"]
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["name"] == "Martin"

@pytest.mark.asyncio
async def test_register_duplicate_email(client, register_user):
    await register_user()
    response = await client.post("/api/v1/auth/register", json={
        "email": "martin@example.com", "password": "anotherpass", "name": "Other"
    })

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "USER_EXISTS"
    assert body["meta"]["version"] == "v1"

@pytest.mark.asyncio
async def test_register_short_password_is_validation_error(client):
    response = await client.post("/api/v1/auth/register", json={
        "email": "a@example.com", "password": "short", "name": "A"
    })
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

@pytest.mark.asyncio
async def test_register_blank_name_is_validation_error(client):
    response = await client.post("/api/v1/auth/register", json={
        "email": "a@example.com", "password": "longenough", "name": "   "
    })
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

@pytest.mark.asyncio
async def test_login(client, register_user):
    await register_user()

    ok = await client.post("/api/v1/auth/login", json={"email": "martin@example.com", "password": "supersecret"})
    assert ok.status_code == 200
    assert ok.json()["data"]["token"]

    bad = await client.post("/api/v1/auth/login", json={"email": "martin@example.com", "password": "wrongpass"})
    assert bad.status_code == 401
    assert bad.json()["error"] == {"code": "INVALID_CREDENTIALS", "message": "Invalid credentials"}

    unknown = await client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "supersecret"})
    assert unknown.status_code == 401

@pytest.mark.asyncio
async def test_refresh(client, auth):
    response = await client.post("/api/v1/auth/refresh", json={"refreshToken": auth["refresh_token"]})
    assert response.status_code == 200
    token = response.json()["data"]["token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200

@pytest.mark.asyncio
async def test_refresh_errors(client, auth):
    missing = await client.post("/api/v1/auth/refresh", json={})
    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "NO_REFRESH_TOKEN"

    garbage = await client.post("/api/v1/auth/refresh", json={"refreshToken": "not-a-jwt"})
    assert garbage.status_code == 401
    assert garbage.json()["error"]["code"] == "INVALID_REFRESH_TOKEN"

    # validly signed but never stored as a session
    unknown = create_refresh_token(auth["user"]["id"])
    response = await client.post("/api/v1/auth/refresh", json={"refreshToken": unknown})
    assert response.status_code == 401

    # an access token is not a refresh token
    access = create_access_token(auth["user"]["id"], auth["user"]["email"])
    response = await client.post("/api/v1/auth/refresh", json={"refreshToken": access})
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_me_requires_token(client, auth):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == {"code": "UNAUTHORIZED", "message": "No token provided"}

    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_TOKEN"

    # a refresh token cannot be used as a bearer token
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {auth['refresh_token']}"})
    assert response.status_code == 401

    response = await client.get("/api/v1/auth/me", headers=auth["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["id"] == auth["user"]["id"]

@pytest.mark.asyncio
async def test_token_for_deleted_user_is_invalid(client):
    token = create_access_token("no-such-user", "ghost@example.com")
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_TOKEN"

@pytest.mark.asyncio
async def test_logout_revokes_refresh_tokens(client, auth):
    response = await client.delete("/api/v1/auth/logout", headers=auth["headers"])
    assert response.status_code == 200

    response = await client.post("/api/v1/auth/refresh", json={"refreshToken": auth["refresh_token"]})
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_store_google_tokens(client, auth, db_session):
    from app.services.google_accounts import GoogleAccountService

    response = await client.put("/api/v1/auth/google/tokens", headers=auth["headers"], json={
        "accessToken": "ya29.token", "refreshToken": "1//refresh", "expiresIn": 3600, "email": "martin@gmail.com"
    })
    assert response.status_code == 200
    assert response.json()["data"] == {"connected": True, "email": "martin@gmail.com"}

    token = await GoogleAccountService(db_session, auth["user"]["id"]).get_access_token()
    assert token == "ya29.token"

@pytest.mark.asyncio
async def test_unknown_route_and_health(client):
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json()["error"] == {"code": "NOT_FOUND", "message": "Route not found"}

    health = await client.get("/health")
    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "ok"
    assert body["environment"] == "test"
    assert body["uptime"] >= 0
