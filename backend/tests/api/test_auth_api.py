import pytest
from httpx import AsyncClient

TEST_PASSWORD = "testpassword123"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_login_with_username(client: AsyncClient, engineer_user):
    """Test successful login"""
    response = await client.post(
        "/api/v1/auth/login",
        json={"username": engineer_user.username, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == engineer_user.id
    assert data["user"]["role"] == "L1Engineer"


@pytest.mark.asyncio
async def test_login_with_email_is_case_insensitive(client: AsyncClient, engineer_user):
    response = await client.post(
        "/api/v1/auth/login",
        json={"username": engineer_user.email.upper(), "password": TEST_PASSWORD}
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_invalid_credentials(client: AsyncClient, engineer_user):
    """Test login with invalid credentials"""
    response = await client.post(
        "/api/v1/auth/login",
        json={"username": engineer_user.username, "password": "wrongpassword"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_inactive_account(client: AsyncClient, make_user):
    user = await make_user(is_active=False)

    response = await client.post(
        "/api/v1/auth/login",
        json={"username": user.username, "password": TEST_PASSWORD}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Account is deactivated"


@pytest.mark.asyncio
async def test_login_writes_worklog(client: AsyncClient, engineer_user, engineer_headers):
    await client.post(
        "/api/v1/auth/login",
        json={"username": engineer_user.username, "password": TEST_PASSWORD}
    )

    response = await client.get("/api/v1/worklogs/my/today", headers=engineer_headers)

    assert response.status_code == 200
    assert [e["category"] for e in response.json()["entries"]] == ["Login"]


@pytest.mark.asyncio
async def test_get_current_user(client: AsyncClient, engineer_user, engineer_headers):
    """Test getting current user info"""
    response = await client.get("/api/v1/auth/me", headers=engineer_headers)

    assert response.status_code == 200
    assert response.json()["username"] == engineer_user.username


@pytest.mark.asyncio
async def test_unauthorized_access(client: AsyncClient):
    """Test accessing protected route without auth"""
    response = await client.get("/api/v1/auth/me")

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_garbage_token_rejected(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_user_token_rejected(client: AsyncClient, db_session, engineer_user, engineer_headers):
    engineer_user.is_active = False
    await db_session.commit()

    response = await client.get("/api/v1/auth/me", headers=engineer_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, engineer_user, engineer_headers):
    response = await client.put(
        "/api/v1/auth/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "n3w-passw0rd"},
        headers=engineer_headers,
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login",
        json={"username": engineer_user.username, "password": "n3w-passw0rd"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client: AsyncClient, engineer_headers):
    response = await client.put(
        "/api/v1/auth/change-password",
        json={"current_password": "nope", "new_password": "n3w-passw0rd"},
        headers=engineer_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_preferences_merge(client: AsyncClient, engineer_headers):
    await client.put("/api/v1/auth/preferences", json={"preferences": {"theme": "dark"}}, headers=engineer_headers)
    response = await client.put(
        "/api/v1/auth/preferences", json={"preferences": {"page_size": 50}}, headers=engineer_headers
    )

    assert response.json()["preferences"] == {"theme": "dark", "page_size": 50}
