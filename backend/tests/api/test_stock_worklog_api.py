import pytest
from httpx import AsyncClient

from ticketops.models.user import UserRole
from ticketops.models.user_right import Right


def _stock_payload(site, *codes):
    return {
        "site_id": site.id,
        "asset_type": "Camera",
        "device_type": "Dome",
        "items": [{"asset_code": code, "serial_number": f"SN-{code}"} for code in codes],
    }


class TestStock:

    @pytest.mark.asyncio
    async def test_admin_adds_stock(self, client: AsyncClient, admin_headers, head_office):
        response = await client.post("/api/v1/stock/add", json=_stock_payload(head_office, "SP-1", "SP-2"),
                                     headers=admin_headers)
        assert response.status_code == 201
        assert sorted(a["asset_code"] for a in response.json()) == ["SP-1", "SP-2"]

        inventory = (await client.get("/api/v1/stock/inventory", headers=admin_headers)).json()
        assert inventory[0]["count"] == 2
        assert inventory[0]["site_id"] == head_office.id

    @pytest.mark.asyncio
    async def test_engineer_needs_site_stock_right(
        self, client: AsyncClient, engineer_user, engineer_headers, grant_rights, site
    ):
        response = await client.post("/api/v1/stock/add", json=_stock_payload(site, "SP-9"), headers=engineer_headers)
        assert response.status_code == 403

        await grant_rights(engineer_user, site_rights=[{"site_id": site.id, "rights": [Right.MANAGE_SITE_STOCK.value]}])

        response = await client.post("/api/v1/stock/add", json=_stock_payload(site, "SP-9"), headers=engineer_headers)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts(self, client: AsyncClient, admin_headers, head_office, asset):
        response = await client.post(
            "/api/v1/stock/add", json=_stock_payload(head_office, asset.asset_code), headers=admin_headers
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_transfer_over_http(self, client: AsyncClient, admin_headers, head_office, site):
        added = (await client.post("/api/v1/stock/add", json=_stock_payload(head_office, "SP-1"),
                                   headers=admin_headers)).json()

        response = await client.post("/api/v1/stock/transfers", json={
            "source_site_id": head_office.id,
            "destination_site_id": site.id,
            "asset_ids": [added[0]["id"]],
        }, headers=admin_headers)
        assert response.status_code == 201
        transfer = response.json()

        base = f"/api/v1/stock/transfers/{transfer['id']}"
        response = await client.post(f"{base}/dispatch", json={"shipping_details": {"docket": "BD-1"}},
                                     headers=admin_headers)
        assert response.json()["status"] == "InTransit"

        response = await client.post(f"{base}/receive", headers=admin_headers)
        assert response.json()["status"] == "Completed"

        response = await client.post(f"{base}/cancel", headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_null_status_on_spare_update(self, client: AsyncClient, admin_headers, head_office):
        added = (await client.post("/api/v1/stock/add", json=_stock_payload(head_office, "SP-1"),
                                   headers=admin_headers)).json()

        response = await client.put(f"/api/v1/stock/items/{added[0]['id']}",
                                    json={"status": None, "remark": "Shelf B"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "Spare"
        assert response.json()["remark"] == "Shelf B"


class TestRequisitions:

    @pytest.mark.asyncio
    async def test_requisition_over_http(self, client: AsyncClient, engineer_headers, admin_headers,
                                         make_user, auth_for, site):
        response = await client.post("/api/v1/stock/requisitions", json={
            "requisition_type": "RMATransfer",
            "requesting_site_id": site.id,
            "asset_type": "Camera",
            "quantity": 1,
        }, headers=engineer_headers)
        assert response.status_code == 201
        requisition = response.json()
        assert requisition["requisition_number"].startswith("RMT-")
        base = f"/api/v1/stock/requisitions/{requisition['id']}"

        response = await client.post(f"{base}/approve", headers=engineer_headers)
        assert response.status_code == 403

        response = await client.post(f"{base}/reject", headers=admin_headers)
        assert response.status_code == 400

        colleague = await make_user(UserRole.L2_ENGINEER)
        response = await client.post(f"{base}/cancel", headers=auth_for(colleague))
        assert response.status_code == 403

        response = await client.post(f"{base}/approve", headers=admin_headers)
        assert response.json()["status"] == "Approved"

        response = await client.post(f"{base}/fulfill", json={"asset_ids": ["missing"]}, headers=admin_headers)
        assert response.status_code == 400

        response = await client.post(f"{base}/cancel", headers=engineer_headers)
        assert response.json()["status"] == "Cancelled"


class TestWorkLogs:

    @pytest.mark.asyncio
    async def test_manual_entry_round_trip(self, client: AsyncClient, engineer_headers):
        response = await client.post("/api/v1/worklogs/entries", json={
            "category": "SiteVisit", "description": "Checked pole wiring at MG Road",
        }, headers=engineer_headers)
        assert response.status_code == 201
        entry = response.json()
        assert entry["source"] == "manual"

        today = (await client.get("/api/v1/worklogs/my/today", headers=engineer_headers)).json()
        assert [e["id"] for e in today["entries"]] == [entry["id"]]

        response = await client.delete(f"/api/v1/worklogs/entries/{entry['id']}", headers=engineer_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_automatic_category_rejected(self, client: AsyncClient, engineer_headers):
        response = await client.post("/api/v1/worklogs/entries", json={
            "category": "TicketClosed", "description": "Closed everything",
        }, headers=engineer_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_team_summary(self, client: AsyncClient, admin_headers, engineer_user, engineer_headers, client_user):
        await client.post("/api/v1/worklogs/entries", json={
            "category": "Training", "description": "PTZ calibration session",
        }, headers=engineer_headers)

        response = await client.get("/api/v1/worklogs/team", headers=admin_headers)
        rows = {row["user_id"]: row for row in response.json()}
        assert rows[engineer_user.id]["entry_count"] == 1
        assert client_user.id not in rows

        response = await client.get("/api/v1/worklogs/team", headers=engineer_headers)
        assert response.status_code == 403
