"""
Tests for RMA requests, SLA policy admin, device types and reports
"""
import pytest
from httpx import AsyncClient


async def _create_ticket(client, headers, **overrides):
    payload = {"category": "Hardware", "title": "Camera offline", "impact": 3, "urgency": 3, **overrides}
    response = await client.post("/api/v1/tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestRMA:
    @pytest.mark.asyncio
    async def test_create_rma(self, client: AsyncClient, admin_headers, asset, sla_policies):
        ticket = await _create_ticket(client, admin_headers, asset_id=asset.id)

        response = await client.post(
            "/api/v1/rma",
            json={"ticket_id": ticket["id"], "request_reason": "Sensor failure"},
            headers=admin_headers,
        )

        assert response.status_code == 201, response.text
        rma = response.json()
        assert rma["status"] == "Requested"
        assert rma["original_asset_id"] == asset.id
        assert rma["replacement_track_status"] == "NotRequired"
        assert rma["rma_number"]
        assert len(rma["timeline"]) == 1
        assert rma["original_details_snapshot"]["asset_code"] == asset.asset_code

    @pytest.mark.asyncio
    async def test_replacement_source_opens_replacement_track(self, client: AsyncClient, admin_headers,
                                                              asset, sla_policies):
        ticket = await _create_ticket(client, admin_headers, asset_id=asset.id)

        response = await client.post(
            "/api/v1/rma",
            json={"ticket_id": ticket["id"], "request_reason": "Dead unit", "replacement_source": "Stock"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["replacement_track_status"] == "Pending"

    @pytest.mark.asyncio
    async def test_one_active_rma_per_ticket(self, client: AsyncClient, admin_headers, asset, sla_policies):
        ticket = await _create_ticket(client, admin_headers, asset_id=asset.id)
        payload = {"ticket_id": ticket["id"], "request_reason": "Sensor failure"}

        first = await client.post("/api/v1/rma", json=payload, headers=admin_headers)
        second = await client.post("/api/v1/rma", json=payload, headers=admin_headers)

        assert first.status_code == 201
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_ticket_without_asset(self, client: AsyncClient, admin_headers, site, sla_policies):
        ticket = await _create_ticket(client, admin_headers, site_id=site.id)

        response = await client.post(
            "/api/v1/rma",
            json={"ticket_id": ticket["id"], "request_reason": "n/a"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_approve_and_lookup(self, client: AsyncClient, admin_headers, admin_user, asset, sla_policies):
        ticket = await _create_ticket(client, admin_headers, asset_id=asset.id)
        created = (await client.post(
            "/api/v1/rma",
            json={"ticket_id": ticket["id"], "request_reason": "Sensor failure"},
            headers=admin_headers,
        )).json()

        response = await client.put(
            f"/api/v1/rma/{created['id']}",
            json={"status": "Approved", "remarks": "Under warranty"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        updated = response.json()
        assert updated["status"] == "Approved"
        assert updated["approved_by"] == admin_user.id
        assert len(updated["timeline"]) == 2
        assert updated["timeline"][-1]["remarks"] == "Under warranty"

        by_ticket = await client.get(f"/api/v1/rma/ticket/{ticket['id']}", headers=admin_headers)
        assert by_ticket.json()["id"] == created["id"]

        history = await client.get(f"/api/v1/rma/asset/{asset.id}/history", headers=admin_headers)
        assert [r["id"] for r in history.json()] == [created["id"]]

    @pytest.mark.asyncio
    async def test_client_cannot_request_rma(self, client: AsyncClient, client_headers):
        response = await client.post(
            "/api/v1/rma",
            json={"ticket_id": "00000000-0000-0000-0000-000000000000", "request_reason": "x"},
            headers=client_headers,
        )

        assert response.status_code == 403


class TestSLAPolicies:
    POLICY = {
        "policy_name": "Critical",
        "priority": "P1",
        "response_time_minutes": 15,
        "restore_time_minutes": 60,
        "escalation_level1_minutes": 30,
        "escalation_level2_minutes": 45,
    }

    @pytest.mark.asyncio
    async def test_create_and_duplicate(self, client: AsyncClient, admin_headers):
        created = await client.post("/api/v1/sla-policies", json=self.POLICY, headers=admin_headers)
        duplicate = await client.post("/api/v1/sla-policies", json=self.POLICY, headers=admin_headers)

        assert created.status_code == 201
        assert created.json()["restore_time_minutes"] == 60
        assert duplicate.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_deactivates(self, client: AsyncClient, admin_headers):
        policy = (await client.post("/api/v1/sla-policies", json=self.POLICY, headers=admin_headers)).json()

        response = await client.delete(f"/api/v1/sla-policies/{policy['id']}", headers=admin_headers)
        assert response.json() == {"message": "SLA policy deactivated"}

        active = await client.get("/api/v1/sla-policies", headers=admin_headers)
        everything = await client.get(
            "/api/v1/sla-policies", params={"include_inactive": True}, headers=admin_headers
        )
        assert policy["id"] not in [p["id"] for p in active.json()]
        assert policy["id"] in [p["id"] for p in everything.json()]

    @pytest.mark.asyncio
    async def test_dispatcher_cannot_create(self, client: AsyncClient, dispatcher_headers):
        response = await client.post("/api/v1/sla-policies", json=self.POLICY, headers=dispatcher_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_policy(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/sla-policies/00000000-0000-0000-0000-000000000000", headers=admin_headers
        )
        assert response.status_code == 404


class TestDeviceTypes:
    @pytest.mark.asyncio
    async def test_create_group_and_deactivate(self, client: AsyncClient, admin_headers):
        for asset_type, device_type in [("Camera", "PTZ"), ("Camera", "Bullet"), ("Recorder", "NVR")]:
            response = await client.post(
                "/api/v1/device-types",
                json={"asset_type": asset_type, "device_type": device_type},
                headers=admin_headers,
            )
            assert response.status_code == 201

        grouped = await client.get("/api/v1/device-types/grouped", headers=admin_headers)
        assert grouped.json() == {"Camera": ["Bullet", "PTZ"], "Recorder": ["NVR"]}

        nvr = (await client.get(
            "/api/v1/device-types", params={"asset_type": "Recorder"}, headers=admin_headers
        )).json()[0]
        await client.put(f"/api/v1/device-types/{nvr['id']}", json={"is_active": False}, headers=admin_headers)

        grouped = await client.get("/api/v1/device-types/grouped", headers=admin_headers)
        assert "Recorder" not in grouped.json()

    @pytest.mark.asyncio
    async def test_duplicate_device_type(self, client: AsyncClient, admin_headers):
        payload = {"asset_type": "Camera", "device_type": "Dome"}
        await client.post("/api/v1/device-types", json=payload, headers=admin_headers)

        response = await client.post("/api/v1/device-types", json=payload, headers=admin_headers)

        assert response.status_code == 409


class TestReports:
    @pytest.mark.asyncio
    async def test_ticket_report(self, client: AsyncClient, admin_headers, asset, sla_policies):
        await _create_ticket(client, admin_headers, asset_id=asset.id)
        await _create_ticket(client, admin_headers, asset_id=asset.id, category="Network")

        response = await client.get("/api/v1/reports/tickets", headers=admin_headers)

        assert response.status_code == 200
        report = response.json()
        assert report["total"] == 2
        assert report["by_status"] == {"Open": 2}
        assert report["by_category"] == {"Hardware": 1, "Network": 1}
        assert report["resolution_time_hours"]["count"] == 0

    @pytest.mark.asyncio
    async def test_sla_report_without_breaches(self, client: AsyncClient, admin_headers, asset, sla_policies):
        await _create_ticket(client, admin_headers, asset_id=asset.id)

        report = (await client.get("/api/v1/reports/sla", headers=admin_headers)).json()

        assert report["total"] == 1
        assert report["breached"] == 0
        assert report["compliance_percent"] == 100.0

    @pytest.mark.asyncio
    async def test_ticket_export(self, client: AsyncClient, admin_headers, asset, sla_policies):
        ticket = await _create_ticket(client, admin_headers, asset_id=asset.id)

        response = await client.get("/api/v1/reports/tickets/export", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("ticket_number,title,category,priority,status")
        assert lines[1].startswith(f"{ticket['ticket_number']},Camera offline,Hardware,P2,Open")

    @pytest.mark.asyncio
    async def test_client_cannot_view_reports(self, client: AsyncClient, client_headers):
        response = await client.get("/api/v1/reports/tickets", headers=client_headers)
        assert response.status_code == 403
