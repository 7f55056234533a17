"""
Unit Tests for settings, client registrations and user rights
"""
import re
import pytest
from sqlalchemy import select

from ticketops.core.exceptions import ValidationError, ConflictError, InvalidTransitionError
from ticketops.core.security import verify_password
from ticketops.models.client_registration import RegistrationStatus
from ticketops.models.notification import NotificationLog
from ticketops.models.user import UserRole
from ticketops.models.user_right import UserRight, Right
from ticketops.schemas.client_registration import RegistrationSubmit
from ticketops.services import settings_service, client_registration_service


class TestStringify:

    @pytest.mark.parametrize("value,expected", [
        ("plain", "plain"),
        (True, "true"),
        (False, "false"),
        (42, "42"),
        (None, ""),
        ([1, 2], "[1, 2]"),
        ({"a": 1}, '{"a": 1}'),
    ])
    def test_values_become_text(self, value, expected):
        assert settings_service.stringify(value) == expected


class TestSettings:

    @pytest.mark.asyncio
    async def test_defaults_seeded_on_first_read(self, db_session):
        grouped = await settings_service.get_grouped(db_session)

        assert set(grouped) == set(settings_service.DEFAULT_SETTINGS)
        assert grouped["SLA"]["warning_window_hours"] == "4"

    @pytest.mark.asyncio
    async def test_update_grouped_upserts(self, db_session, admin_user):
        await settings_service.get_grouped(db_session)

        count = await settings_service.update_grouped(db_session, {
            "General": {"company_name": "City Surveillance"},
            "Custom": {"flags": ["a", "b"], "enabled": True},
            "ignored": "not a dict",
        }, updated_by=admin_user.id)
        await db_session.commit()

        assert count == 3
        grouped = await settings_service.get_grouped(db_session)
        assert grouped["General"]["company_name"] == "City Surveillance"
        assert grouped["Custom"] == {"enabled": "true", "flags": '["a", "b"]'}
        assert "ignored" not in grouped

    @pytest.mark.asyncio
    async def test_single_category(self, db_session):
        grouped = await settings_service.get_grouped(db_session, "Tickets")

        assert list(grouped) == ["Tickets"]


class TestUsernames:

    def test_base_from_full_name(self):
        assert client_registration_service.username_base("  Priya  Sharma ") == "priya.sharma"

    def test_base_is_truncated(self):
        assert len(client_registration_service.username_base("a" * 40)) == 20

    def test_generated_username_has_four_digit_suffix(self):
        username = client_registration_service.generate_username("Ravi Kumar")

        assert re.fullmatch(r"ravi\.kumar\.\d{4}", username)

    def test_symbols_only_name_falls_back(self):
        assert client_registration_service.generate_username("###").startswith("client.")


class TestRegistrations:

    def _submission(self, **overrides):
        return RegistrationSubmit(**{
            "full_name": "Ravi Kumar",
            "email": "Ravi.Kumar@ticketops.in",
            "phone": "9876543210",
            "site_name": "Ring Road",
            **overrides,
        })

    @pytest.mark.asyncio
    async def test_missing_fields_listed(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await client_registration_service.submit_registration(
                db_session, self._submission(phone=" ", site_name=None)
            )

        assert "Phone" in exc_info.value.message
        assert "Site name" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_duplicate_pending_rejected(self, db_session):
        await client_registration_service.submit_registration(db_session, self._submission())
        await db_session.commit()

        with pytest.raises(ConflictError):
            await client_registration_service.submit_registration(db_session, self._submission())

    @pytest.mark.asyncio
    async def test_submission_alerts_admins(self, db_session, admin_user):
        registration = await client_registration_service.submit_registration(db_session, self._submission())
        await db_session.commit()

        assert registration.email == "ravi.kumar@ticketops.in"
        logs = (await db_session.execute(select(NotificationLog))).scalars().all()
        assert [log.recipient for log in logs] == [admin_user.email]

    @pytest.mark.asyncio
    async def test_approve_creates_site_client(self, db_session, admin_user):
        registration = await client_registration_service.submit_registration(db_session, self._submission())

        user, temp_password, email_sent = await client_registration_service.approve_registration(
            db_session, registration, admin_user
        )
        await db_session.commit()

        assert registration.status == RegistrationStatus.APPROVED
        assert registration.user_id == user.id
        assert user.role == UserRole.SITE_CLIENT
        assert user.username.startswith("ravi.kumar.")
        assert user.preferences["must_change_password"] is True
        assert verify_password(temp_password, user.hashed_password)
        assert email_sent is False

        with pytest.raises(InvalidTransitionError):
            await client_registration_service.approve_registration(db_session, registration, admin_user)

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, db_session, admin_user):
        registration = await client_registration_service.submit_registration(db_session, self._submission())

        with pytest.raises(ValidationError):
            await client_registration_service.reject_registration(db_session, registration, admin_user, "  ")

        await client_registration_service.reject_registration(db_session, registration, admin_user, "Unknown site")
        assert registration.status == RegistrationStatus.REJECTED


class TestUserRights:

    def _rights(self, global_rights=(), site_rights=()):
        return UserRight(user_id="u", global_rights=list(global_rights), site_rights=list(site_rights))

    def test_global_right_applies_everywhere(self):
        rights = self._rights(global_rights=["EDIT_TICKET"])

        assert rights.has_right(Right.EDIT_TICKET, "site-1")
        assert rights.has_right("EDIT_TICKET")

    def test_site_right_scoped_to_site(self):
        rights = self._rights(site_rights=[{"site_id": "site-1", "rights": ["MANAGE_SITE_STOCK"]}])

        assert rights.has_right(Right.MANAGE_SITE_STOCK, "site-1")
        assert not rights.has_right(Right.MANAGE_SITE_STOCK, "site-2")

    def test_without_site_any_site_counts(self):
        rights = self._rights(site_rights=[{"site_id": "site-1", "rights": ["VIEW_CREDENTIALS"]}])

        assert rights.has_right(Right.VIEW_CREDENTIALS)
        assert rights.sites_with_right(Right.VIEW_CREDENTIALS) == ["site-1"]
        assert not rights.has_right(Right.DELETE_TICKET)
