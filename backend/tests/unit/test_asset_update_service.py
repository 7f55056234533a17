"""
Unit Tests for asset update links
"""
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from ticketops.core.exceptions import TokenExpiredError, ResourceNotFoundError, ValidationError, InvalidTransitionError
from ticketops.models.asset import AssetStatus
from ticketops.models.asset_update_request import AssetUpdateStatus
from ticketops.services import asset_update_service


def _request_data(asset, rma_id=None):
    return SimpleNamespace(asset_id=asset.id, rma_id=rma_id, ticket_id=None)


class TestCleanChanges:

    def test_drops_unknown_and_blank_fields(self):
        cleaned = asset_update_service.clean_changes({
            "serial_number": "  SN-9 ",
            "ip_address": "",
            "asset_code": "HACK",
            "mac": None,
        })

        assert cleaned == {"serial_number": "SN-9"}

    def test_dates_are_normalized(self):
        cleaned = asset_update_service.clean_changes({
            "installation_date": "2025-01-15",
            "warranty_end_date": "2027-01-14T18:30:00Z",
        })

        assert cleaned == {
            "installation_date": "2025-01-15T00:00:00",
            "warranty_end_date": "2027-01-14T18:30:00",
        }

    @pytest.mark.parametrize("value", ["15/01/2025", "soon", "2025-13-01"])
    def test_invalid_date_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            asset_update_service.clean_changes({"installation_date": value})

        assert exc_info.value.details == {"field": "installation_date"}


class TestLinkLifecycle:

    @pytest.mark.asyncio
    async def test_initiate_reuses_valid_link(self, db_session, asset, engineer_user):
        first = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)
        await db_session.commit()
        second = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)

        assert first.id == second.id
        assert len(first.token) == 64
        assert first.original_values["serial_number"] == "SN-0001"

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await asset_update_service.get_valid_request(db_session, "0" * 64)

    @pytest.mark.asyncio
    async def test_expired_link_is_marked(self, db_session, asset, engineer_user):
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)
        await db_session.commit()

        later = datetime.utcnow() + timedelta(hours=1)
        with pytest.raises(TokenExpiredError) as exc_info:
            await asset_update_service.get_valid_request(db_session, request.token, now=later)

        assert exc_info.value.status_code == 403
        assert exc_info.value.details == {"expired": True}
        assert request.status == AssetUpdateStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_submit_once(self, db_session, asset, engineer_user):
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)
        await db_session.commit()

        await asset_update_service.submit(db_session, request.token, {"serial_number": "SN-NEW"})
        await db_session.commit()

        assert request.is_submitted is True
        with pytest.raises(TokenExpiredError):
            await asset_update_service.submit(db_session, request.token, {"serial_number": "SN-AGAIN"})

    @pytest.mark.asyncio
    async def test_submit_without_changes(self, db_session, asset, engineer_user):
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)
        await db_session.commit()

        with pytest.raises(ValidationError):
            await asset_update_service.submit(db_session, request.token, {"asset_code": "X"})

    @pytest.mark.asyncio
    async def test_approve_applies_changes(self, db_session, asset, engineer_user, admin_user):
        asset.status = AssetStatus.IN_REPAIR
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)
        await db_session.commit()
        await asset_update_service.submit(db_session, request.token, {
            "serial_number": "SN-NEW",
            "installation_date": "2025-03-01T10:00:00",
        })
        await db_session.commit()

        await asset_update_service.approve(db_session, request, admin_user)
        await db_session.commit()

        assert request.status == AssetUpdateStatus.APPROVED
        assert asset.serial_number == "SN-NEW"
        assert asset.installation_date == datetime(2025, 3, 1, 10, 0)
        assert asset.status == AssetStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_approve_requires_submission(self, db_session, asset, engineer_user, admin_user):
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)

        with pytest.raises(ValidationError):
            await asset_update_service.approve(db_session, request, admin_user)

    @pytest.mark.asyncio
    async def test_reject_defaults_reason_and_is_final(self, db_session, asset, engineer_user, admin_user):
        request = await asset_update_service.initiate(db_session, _request_data(asset), engineer_user)

        await asset_update_service.reject(db_session, request, admin_user, "  ")

        assert request.status == AssetUpdateStatus.REJECTED
        assert request.rejection_reason == "No reason provided"
        with pytest.raises(InvalidTransitionError):
            await asset_update_service.reject(db_session, request, admin_user, "again")
