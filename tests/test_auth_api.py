"""Tests for registration, login, token refresh and logout."""
from fastapi import status

from conftest import bearer, register_and_login


async def test_root_and_health(client):
    assert (await client.get("/")).json()["message"] == "Notes API"
    assert (await client.get("/health")).json() == {"status": "healthy"}


async def test_register_rejects_duplicate_username(client):
    payload = {"username": "carol", "password": "secret123"}
    assert (await client.post("/api/v1/auth/register", json=payload)).status_code == status.HTTP_201_CREATED

    response = await client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_login_with_wrong_password(client):
    await register_and_login(client, "carol")

    response = await client.post("/api/v1/auth/login", data={"username": "carol", "password": "wrong-pass"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_me_returns_current_user(client):
    tokens = await register_and_login(client, "carol")

    response = await client.get("/api/v1/users/me", headers=bearer(tokens))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["username"] == "carol"
    assert "hashed_password" not in response.json()


async def test_refresh_token_issues_usable_access_token(client):
    tokens = await register_and_login(client, "carol")

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == status.HTTP_200_OK

    response = await client.get("/api/v1/users/me", headers=bearer(response.json()))
    assert response.status_code == status.HTTP_200_OK


async def test_access_token_cannot_be_used_to_refresh(client):
    tokens = await register_and_login(client, "carol")

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_logout_revokes_tokens(client, fake_redis):
    tokens = await register_and_login(client, "carol")

    response = await client.post("/api/v1/auth/logout", headers=bearer(tokens))
    assert response.status_code == status.HTTP_200_OK
    assert fake_redis.data == {}

    response = await client.get("/api/v1/notes/", headers=bearer(tokens))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_garbage_token_is_rejected(client):
    response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
