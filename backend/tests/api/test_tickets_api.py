import pytest
from httpx import AsyncClient

from ticketops.models.user import UserRole
from ticketops.models.user_right import Right


async def _create_ticket(client, headers, **overrides):
    payload = {"category": "Hardware", "title": "Camera offline", "impact": 3, "urgency": 3, **overrides}
    response = await client.post("/api/v1/tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_ticket_for_asset(client: AsyncClient, dispatcher_headers, asset, sla_policies):
    ticket = await _create_ticket(client, dispatcher_headers, asset_id=asset.id)

    assert ticket["status"] == "Open"
    assert ticket["priority"] == "P2"
    assert ticket["site_id"] == asset.site_id
    assert ticket["asset"]["asset_code"] == asset.asset_code
    assert ticket["sla_restore_due"] is not None


@pytest.mark.asyncio
async def test_client_cannot_create_ticket(client: AsyncClient, client_headers):
    response = await client.post(
        "/api/v1/tickets", json={"category": "Hardware", "title": "x"}, headers=client_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_engineer_with_create_right(client: AsyncClient, make_user, grant_rights, auth_for):
    engineer = await make_user(UserRole.L2_ENGINEER)
    await grant_rights(engineer, global_rights=[Right.CREATE_TICKET])

    ticket = await _create_ticket(client, auth_for(engineer))

    assert ticket["created_by"] == engineer.id


@pytest.mark.asyncio
async def test_lifecycle_over_http(client: AsyncClient, dispatcher_headers, engineer_user, engineer_headers):
    ticket = await _create_ticket(client, dispatcher_headers)
    base = f"/api/v1/tickets/{ticket['id']}"

    response = await client.post(f"{base}/assign", json={"assigned_to": engineer_user.id}, headers=dispatcher_headers)
    assert response.json()["status"] == "Assigned"
    assert response.json()["assignee"]["id"] == engineer_user.id

    assert (await client.post(f"{base}/acknowledge", headers=engineer_headers)).json()["status"] == "Acknowledged"
    assert (await client.post(f"{base}/start", headers=engineer_headers)).json()["status"] == "InProgress"

    response = await client.post(
        f"{base}/hold", json={"reason": "Waiting for spare"}, headers=engineer_headers
    )
    assert response.json()["hold_reason"] == "Waiting for spare"

    await client.post(f"{base}/start", headers=engineer_headers)
    response = await client.post(
        f"{base}/resolve", json={"resolution_summary": "Replaced PoE injector"}, headers=engineer_headers
    )
    assert response.json()["status"] == "Resolved"

    response = await client.get(f"{base}/actions", headers=dispatcher_headers)
    assert "verify" in response.json()

    assert (await client.post(f"{base}/close", headers=dispatcher_headers)).json()["status"] == "Closed"


@pytest.mark.asyncio
async def test_invalid_transition_is_400(client: AsyncClient, dispatcher_headers):
    ticket = await _create_ticket(client, dispatcher_headers)

    response = await client.post(f"/api/v1/tickets/{ticket['id']}/verify", headers=dispatcher_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_unauthorized_action_is_403(client: AsyncClient, dispatcher_headers, engineer_user, make_user, auth_for):
    ticket = await _create_ticket(client, dispatcher_headers, assigned_to=engineer_user.id)
    other = await make_user(UserRole.L1_ENGINEER)

    response = await client.post(f"/api/v1/tickets/{ticket['id']}/acknowledge", headers=auth_for(other))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_ticket_is_404(client: AsyncClient, dispatcher_headers):
    response = await client.get("/api/v1/tickets/00000000-0000-0000-0000-000000000000", headers=dispatcher_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_engineer_list_is_scoped(client: AsyncClient, dispatcher_headers, engineer_user, engineer_headers):
    mine = await _create_ticket(client, dispatcher_headers, title="Mine", assigned_to=engineer_user.id)
    await _create_ticket(client, dispatcher_headers, title="Not mine")

    response = await client.get("/api/v1/tickets", headers=engineer_headers)

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["items"]] == [mine["id"]]


@pytest.mark.asyncio
async def test_list_filters_and_pagination(client: AsyncClient, dispatcher_headers):
    for i in range(3):
        await _create_ticket(client, dispatcher_headers, title=f"Fiber cut {i}", category="Network")
    await _create_ticket(client, dispatcher_headers, title="Power trip", category="Power")

    response = await client.get(
        "/api/v1/tickets", params={"category": "Network", "page_size": 2}, headers=dispatcher_headers
    )
    data = response.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2
    assert data["has_next"] is True

    response = await client.get("/api/v1/tickets", params={"search": "Power"}, headers=dispatcher_headers)
    assert response.json()["total"] == 1

    response = await client.get("/api/v1/tickets", params={"status": "Open,Bogus"}, headers=dispatcher_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_dashboard_stats(client: AsyncClient, dispatcher_headers, asset):
    await _create_ticket(client, dispatcher_headers, asset_id=asset.id)

    response = await client.get("/api/v1/tickets/dashboard/stats", headers=dispatcher_headers)

    data = response.json()
    assert data["open_tickets"] == 1
    assert data["total_assets"] == 1
    assert data["by_category"] == {"Hardware": 1}
    assert data["sla_compliance_percent"] == 100.0


@pytest.mark.asyncio
async def test_client_cannot_see_internal_notes(
    client: AsyncClient, dispatcher_headers, client_headers, asset
):
    ticket = await _create_ticket(client, dispatcher_headers, asset_id=asset.id)
    base = f"/api/v1/tickets/{ticket['id']}/activities"

    await client.post(base, json={"content": "Vendor contacted", "activity_type": "Note", "is_internal": True},
                      headers=dispatcher_headers)
    response = await client.post(base, json={"content": "Any update?"}, headers=client_headers)
    assert response.status_code == 201

    contents = [a["content"] for a in (await client.get(base, headers=client_headers)).json()]
    assert "Any update?" in contents
    assert "Vendor contacted" not in contents

    response = await client.post(base, json={"content": "secret", "is_internal": True}, headers=client_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_audit_trail_staff_only(client: AsyncClient, dispatcher_headers, client_headers, asset):
    ticket = await _create_ticket(client, dispatcher_headers, asset_id=asset.id)

    assert (await client.get(f"/api/v1/tickets/{ticket['id']}/audit-trail", headers=dispatcher_headers)).status_code == 200
    assert (await client.get(f"/api/v1/tickets/{ticket['id']}/audit-trail", headers=client_headers)).status_code == 403


@pytest.mark.asyncio
async def test_engineer_accepts_escalation_with_right(
    client: AsyncClient, dispatcher_headers, engineer_user, make_user, grant_rights, auth_for, asset, sla_policies
):
    ticket = await _create_ticket(client, dispatcher_headers, asset_id=asset.id)
    base = f"/api/v1/tickets/{ticket['id']}"
    await client.post(f"{base}/assign", json={"assigned_to": engineer_user.id}, headers=dispatcher_headers)
    escalated = await client.post(f"{base}/escalate", json={"reason": "Needs L2"}, headers=dispatcher_headers)
    assert escalated.json()["escalation_level"] == 1

    outsider = await make_user(UserRole.L2_ENGINEER)
    response = await client.post(f"{base}/accept-escalation", headers=auth_for(outsider))
    assert response.status_code == 403

    specialist = await make_user(UserRole.L2_ENGINEER)
    await grant_rights(specialist, global_rights=[Right.ESCALATION_L1])
    response = await client.post(f"{base}/accept-escalation", headers=auth_for(specialist))

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "Assigned"
    assert response.json()["assigned_to"] == specialist.id
