"""
API tests for user, rights, site, settings and notification administration
"""
import pytest
from httpx import AsyncClient

from ticketops.models.user import UserRole


class TestUsers:

    @pytest.mark.asyncio
    async def test_create_user_and_duplicates(self, client: AsyncClient, admin_headers):
        payload = {
            "full_name": "Anil Rao",
            "email": "Anil.Rao@ticketops.in",
            "username": "anil.rao",
            "password": "s3cret-pass",
            "role": "L2Engineer",
        }

        response = await client.post("/api/v1/users", json=payload, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["email"] == "anil.rao@ticketops.in"

        response = await client.post("/api/v1/users", json={**payload, "username": "other"}, headers=admin_headers)
        assert response.status_code == 409

        response = await client.post(
            "/api/v1/users", json={**payload, "email": "other@ticketops.in"}, headers=admin_headers
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_only_admin_creates_users(self, client: AsyncClient, dispatcher_headers):
        response = await client.post("/api/v1/users", json={
            "full_name": "X", "email": "x@ticketops.in", "username": "xuser", "password": "s3cret-pass",
        }, headers=dispatcher_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_deactivate(self, client: AsyncClient, admin_user, admin_headers, engineer_user):
        response = await client.put(f"/api/v1/users/{engineer_user.id}/deactivate", headers=admin_headers)
        assert response.json()["is_active"] is False

        response = await client.put(f"/api/v1/users/{admin_user.id}/deactivate", headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_keeps_the_user(self, client: AsyncClient, admin_headers, engineer_user):
        response = await client.delete(f"/api/v1/users/{engineer_user.id}", headers=admin_headers)
        assert response.status_code == 200

        response = await client.get(f"/api/v1/users/{engineer_user.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_reset_password_generates_one(self, client: AsyncClient, admin_headers, engineer_user):
        response = await client.put(
            f"/api/v1/users/{engineer_user.id}/reset-password", json={}, headers=admin_headers
        )

        data = response.json()
        assert response.status_code == 200
        assert data["email_sent"] is False

        login = await client.post(
            "/api/v1/auth/login", json={"username": engineer_user.username, "password": data["temp_password"]}
        )
        assert login.status_code == 200


class TestUserRights:

    @pytest.mark.asyncio
    async def test_unknown_rights_rejected(self, client: AsyncClient, admin_headers, engineer_user):
        response = await client.put(
            f"/api/v1/user-rights/{engineer_user.id}",
            json={"global_rights": ["FLY_DRONES"]},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert "FLY_DRONES" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_rights_replaced(self, client: AsyncClient, admin_headers, engineer_user, engineer_headers, site):
        response = await client.put(
            f"/api/v1/user-rights/{engineer_user.id}",
            json={
                "global_rights": ["EDIT_TICKET", "CREATE_TICKET", "EDIT_TICKET"],
                "site_rights": [
                    {"site_id": site.id, "rights": ["MANAGE_SITE_STOCK"]},
                    {"site_id": "empty", "rights": []},
                ],
            },
            headers=admin_headers,
        )
        assert response.status_code == 200

        mine = (await client.get("/api/v1/user-rights/me", headers=engineer_headers)).json()
        assert mine["global_rights"] == ["CREATE_TICKET", "EDIT_TICKET"]
        assert mine["site_rights"] == [{"site_id": site.id, "rights": ["MANAGE_SITE_STOCK"]}]


class TestSites:

    @pytest.mark.asyncio
    async def test_engineer_sees_assigned_sites(self, client: AsyncClient, engineer_headers, site, head_office):
        response = await client.get("/api/v1/sites", headers=engineer_headers)
        assert [s["id"] for s in response.json()["items"]] == [site.id]

        response = await client.get(f"/api/v1/sites/{head_office.id}", headers=engineer_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_site_code_unique_ignoring_case(self, client: AsyncClient, admin_headers, site):
        response = await client.post(
            "/api/v1/sites", json={"site_name": "Another", "site_code": "mgr-01"}, headers=admin_headers
        )

        assert response.status_code == 409


class TestSettingsAndLookups:

    @pytest.mark.asyncio
    async def test_update_settings_is_audited(self, client: AsyncClient, admin_headers, engineer_headers):
        response = await client.put(
            "/api/v1/settings", json={"General": {"company_name": "Metro Surveillance"}}, headers=engineer_headers
        )
        assert response.status_code == 403

        response = await client.put(
            "/api/v1/settings", json={"General": {"company_name": "Metro Surveillance"}}, headers=admin_headers
        )
        assert response.json()["General"]["company_name"] == "Metro Surveillance"

        general = (await client.get("/api/v1/settings/General", headers=engineer_headers)).json()
        assert general["company_name"] == "Metro Surveillance"

        logs = (await client.get(
            "/api/v1/admin/audit-logs", params={"action": "settings_updated"}, headers=admin_headers
        )).json()
        assert logs["total"] == 1
        assert logs["items"][0]["details"]["categories"] == ["General"]

    @pytest.mark.asyncio
    async def test_audit_logs_admin_only(self, client: AsyncClient, dispatcher_headers):
        response = await client.get("/api/v1/admin/audit-logs", headers=dispatcher_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_lookups(self, client: AsyncClient, engineer_headers):
        response = await client.get("/api/v1/lookups/priorities", headers=engineer_headers)
        assert response.json() == ["P1", "P2", "P3", "P4"]

        response = await client.get("/api/v1/lookups/weather", headers=engineer_headers)
        assert response.status_code == 404


class TestNotifications:

    @pytest.mark.asyncio
    async def test_broadcast_read_per_user(
        self, client: AsyncClient, admin_headers, engineer_headers, dispatcher_headers
    ):
        response = await client.post(
            "/api/v1/notifications",
            json={"title": "Maintenance", "message": "VMS down at 22:00"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        notification = response.json()
        assert notification["is_broadcast"] is True

        listing = (await client.get("/api/v1/notifications", headers=engineer_headers)).json()
        assert listing["unread_count"] == 1

        response = await client.put(f"/api/v1/notifications/{notification['id']}/read", headers=engineer_headers)
        assert response.json()["is_read"] is True

        assert (await client.get("/api/v1/notifications/unread-count", headers=engineer_headers)).json() == {"count": 0}
        assert (await client.get("/api/v1/notifications/unread-count", headers=dispatcher_headers)).json() == {"count": 1}

    @pytest.mark.asyncio
    async def test_direct_notification(self, client: AsyncClient, admin_headers, make_user, auth_for):
        supervisor = await make_user(UserRole.SUPERVISOR)

        await client.post(
            "/api/v1/notifications",
            json={"user_id": supervisor.id, "title": "Review", "message": "Pending transfers"},
            headers=admin_headers,
        )

        response = await client.put("/api/v1/notifications/read-all", headers=auth_for(supervisor))
        assert response.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_only_admin_sends(self, client: AsyncClient, engineer_headers):
        response = await client.post(
            "/api/v1/notifications", json={"title": "x", "message": "y"}, headers=engineer_headers
        )

        assert response.status_code == 403
