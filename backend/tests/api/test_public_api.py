"""
Client sign-up, client accounts and asset update links
"""
import pytest
from httpx import AsyncClient


REGISTRATION = {
    "full_name": "Meena Iyer",
    "email": "meena.iyer@ticketops.in",
    "phone": "9845012345",
    "site_name": "Silk Board",
    "designation": "Inspector",
}


@pytest.mark.asyncio
async def test_registration_then_approval(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/client-registrations", json=REGISTRATION)
    assert response.status_code == 201
    registration_id = response.json()["id"]

    assert (await client.get(
        "/api/v1/client-registrations/pending-count", headers=admin_headers
    )).json() == {"count": 1}

    response = await client.post(
        f"/api/v1/client-registrations/{registration_id}/approve", headers=admin_headers
    )
    assert response.status_code == 200
    approval = response.json()
    assert approval["registration"]["status"] == "Approved"
    assert approval["username"].startswith("meena.iyer.")

    login = await client.post(
        "/api/v1/auth/login", json={"username": approval["username"], "password": approval["temp_password"]}
    )
    assert login.status_code == 200
    assert login.json()["user"]["role"] == "SiteClient"


@pytest.mark.asyncio
async def test_duplicate_registration_conflicts(client: AsyncClient):
    await client.post("/api/v1/client-registrations", json=REGISTRATION)

    response = await client.post("/api/v1/client-registrations", json=REGISTRATION)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_registration_list_is_admin_only(client: AsyncClient, dispatcher_headers):
    response = await client.get("/api/v1/client-registrations", headers=dispatcher_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_asset_update_link(client: AsyncClient, engineer_headers, admin_headers, asset):
    response = await client.post(
        "/api/v1/asset-update-requests", json={"asset_id": asset.id}, headers=engineer_headers
    )
    assert response.status_code == 201
    link = response.json()
    token = link["token"]

    response = await client.get(f"/api/v1/asset-update-requests/token/{token}")
    assert response.status_code == 200
    assert response.json()["asset"]["asset_code"] == asset.asset_code
    assert 0 < response.json()["seconds_remaining"] <= 1800

    response = await client.post(
        f"/api/v1/asset-update-requests/token/{token}/submit",
        json={"changes": {"serial_number": "SN-2024-77", "asset_code": "ignored"}},
    )
    assert response.status_code == 200
    assert response.json()["submitted_fields"] == ["serial_number"]

    response = await client.post(
        f"/api/v1/asset-update-requests/token/{token}/submit",
        json={"changes": {"serial_number": "SN-AGAIN"}},
    )
    assert response.status_code == 403
    assert response.json()["expired"] is True
    assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    pending = (await client.get("/api/v1/asset-update-requests/pending", headers=admin_headers)).json()
    assert [p["id"] for p in pending] == [link["id"]]

    response = await client.post(f"/api/v1/asset-update-requests/{link['id']}/approve", headers=admin_headers)
    assert response.json()["status"] == "Approved"

    refreshed = (await client.get(f"/api/v1/assets/{asset.id}", headers=admin_headers)).json()
    assert refreshed["serial_number"] == "SN-2024-77"


@pytest.mark.asyncio
async def test_bad_date_is_rejected_before_review(client: AsyncClient, engineer_headers, admin_headers, asset):
    link = (await client.post(
        "/api/v1/asset-update-requests", json={"asset_id": asset.id}, headers=engineer_headers
    )).json()
    submit_url = f"/api/v1/asset-update-requests/token/{link['token']}/submit"

    response = await client.post(submit_url, json={"changes": {"installation_date": "15/01/2025"}})
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"field": "installation_date"}

    response = await client.post(submit_url, json={"changes": {"installation_date": "2025-01-15"}})
    assert response.status_code == 200

    response = await client.post(f"/api/v1/asset-update-requests/{link['id']}/approve", headers=admin_headers)
    assert response.status_code == 200

    refreshed = (await client.get(f"/api/v1/assets/{asset.id}", headers=admin_headers)).json()
    assert refreshed["installation_date"].startswith("2025-01-15")


@pytest.mark.asyncio
async def test_unknown_token_is_404(client: AsyncClient):
    response = await client.get("/api/v1/asset-update-requests/token/" + "f" * 64)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_clients_cannot_issue_links(client: AsyncClient, client_headers, asset):
    response = await client.post(
        "/api/v1/asset-update-requests", json={"asset_id": asset.id}, headers=client_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_manages_client_accounts(client: AsyncClient, admin_headers, site):
    response = await client.post(
        "/api/v1/clients",
        json={"full_name": "Ravi Kumar", "email": "Ravi.Kumar@ticketops.in", "site_id": site.id},
        headers=admin_headers,
    )

    assert response.status_code == 201
    credentials = response.json()
    assert credentials["temp_password"]
    assert credentials["email_sent"] is False

    listed = await client.get("/api/v1/clients", params={"search": "ravi"}, headers=admin_headers)
    assert [c["id"] for c in listed.json()["items"]] == [credentials["user_id"]]
    assert listed.json()["items"][0]["email"] == "ravi.kumar@ticketops.in"

    duplicate = await client.post(
        "/api/v1/clients",
        json={"full_name": "Ravi K", "email": "ravi.kumar@ticketops.in"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    removed = await client.delete(f"/api/v1/clients/{credentials['user_id']}", headers=admin_headers)
    assert removed.json() == {"message": "Client deactivated successfully"}

    inactive = await client.get("/api/v1/clients", params={"is_active": False}, headers=admin_headers)
    assert inactive.json()["total"] == 1
