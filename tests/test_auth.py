import pytest

from app.core.config import settings
from app.core.redis import redis_client

API = settings.API_PREFIX


@pytest.mark.asyncio
async def test_login_returns_token_and_hospital(client, seed):
    response = await client.post(f"{API}/login", json={"email": "ADMIN@citycare.in", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "admin"
    assert body["user"]["hospital_name"] == "City Care"
    assert await redis_client.get_token(body["access_token"]) is not None


@pytest.mark.asyncio
async def test_login_with_wrong_password(client, seed):
    response = await client.post(f"{API}/login", json={"email": "admin@citycare.in", "password": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_email(client, seed):
    response = await client.post(f"{API}/login", json={"email": "ghost@citycare.in", "password": "secret123"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_cannot_login(client, seed, db):
    seed.nurse.is_active = False
    db.add(seed.nurse)
    await db.commit()

    response = await client.post(f"{API}/login", json={"email": "nila@citycare.in", "password": "secret123"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_deactivated_user_token_is_refused(client, seed, db):
    seed.nurse.is_active = False
    db.add(seed.nurse)
    await db.commit()

    response = await client.get(f"{API}/users/me", headers=seed.headers["nurse"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_logout_revokes_token(client, seed):
    login = await client.post(f"{API}/login", json={"email": "ravi@citycare.in", "password": "secret123"})
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.post(f"{API}/logout", headers=headers)
    assert response.status_code == 200

    response = await client.get(f"{API}/users/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_or_garbage_token(client, seed):
    assert (await client.get(f"{API}/users/me")).status_code == 401
    response = await client.get(f"{API}/users/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_includes_hospital_name(client, seed):
    response = await client.get(f"{API}/users/me", headers=seed.headers["doctor"])
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "ravi@citycare.in"
    assert body["hospital_name"] == "City Care"
    assert "password_hash" not in body
