"""
Unit Tests for spare stock, transfers and requisitions
"""
import pytest
from types import SimpleNamespace
from sqlalchemy import select

from ticketops.core.exceptions import ValidationError, ConflictError, InvalidTransitionError, AuthorizationError
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.stock import (
    StockMovementLog, MovementType, TransferStatus, RequisitionType, RequisitionStatus,
)
from ticketops.models.user import UserRole
from ticketops.schemas.stock import StockItemUpdate
from ticketops.services import stock_service


def _stock_request(site, *codes):
    return SimpleNamespace(
        site_id=site.id,
        asset_type="Camera",
        device_type="Bullet",
        make="Hikvision",
        model="DS-2CD",
        items=[SimpleNamespace(asset_code=code, serial_number=f"SN-{code}", mac=None, remark=None) for code in codes],
    )


async def _spares(db_session, site, user, *codes):
    assets = await stock_service.add_stock(db_session, _stock_request(site, *codes), user)
    await db_session.commit()
    return assets


class TestAddStock:

    @pytest.mark.asyncio
    async def test_adds_spares_with_movements(self, db_session, head_office, admin_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1", "SP-2")

        assert {a.status for a in assets} == {AssetStatus.SPARE}
        movements = (await db_session.execute(select(StockMovementLog))).scalars().all()
        assert [m.movement_type for m in movements] == [MovementType.ADDED, MovementType.ADDED]

        inventory = await stock_service.get_inventory(db_session, admin_user)
        assert inventory == [{
            "site_id": head_office.id, "site_name": "Head Office Store", "asset_type": "Camera", "count": 2,
        }]

    @pytest.mark.asyncio
    async def test_duplicate_codes_in_request(self, db_session, head_office, admin_user):
        with pytest.raises(ValidationError):
            await stock_service.add_stock(db_session, _stock_request(head_office, "SP-1", "SP-1"), admin_user)

    @pytest.mark.asyncio
    async def test_existing_code_conflicts(self, db_session, head_office, admin_user, asset):
        with pytest.raises(ConflictError):
            await stock_service.add_stock(db_session, _stock_request(head_office, asset.asset_code), admin_user)


class TestTransfers:

    def _transfer_request(self, source, destination, assets):
        return SimpleNamespace(
            source_site_id=source.id,
            destination_site_id=destination.id,
            asset_ids=[a.id for a in assets],
            notes=None,
        )

    @pytest.mark.asyncio
    async def test_transfer_moves_assets(self, db_session, head_office, site, admin_user, engineer_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1", "SP-2")

        transfer = await stock_service.initiate_transfer(
            db_session, self._transfer_request(head_office, site, assets), admin_user
        )
        assert transfer.transfer_number.startswith("TRF-")
        assert {a.status for a in assets} == {AssetStatus.RESERVED}

        await stock_service.dispatch_transfer(db_session, transfer, admin_user, {"courier": "BlueDart"})
        assert {a.status for a in assets} == {AssetStatus.IN_TRANSIT}

        await stock_service.receive_transfer(db_session, transfer, engineer_user)
        await db_session.commit()

        assert transfer.status == TransferStatus.COMPLETED
        assert {a.site_id for a in assets} == {site.id}
        assert {a.status for a in assets} == {AssetStatus.SPARE}

        stats = await stock_service.movement_stats(db_session, site.id)
        assert stats["by_type"] == {"Transferred": 2, "Received": 2}

    @pytest.mark.asyncio
    async def test_cancel_releases_reservation(self, db_session, head_office, site, admin_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1")
        transfer = await stock_service.initiate_transfer(
            db_session, self._transfer_request(head_office, site, assets), admin_user
        )

        await stock_service.close_transfer(db_session, transfer, admin_user, TransferStatus.CANCELLED)
        await db_session.commit()

        assert assets[0].status == AssetStatus.SPARE
        with pytest.raises(InvalidTransitionError):
            await stock_service.dispatch_transfer(db_session, transfer, admin_user, {})

        movements = (await db_session.execute(
            select(StockMovementLog).where(StockMovementLog.reference_id == transfer.transfer_number)
        )).scalars().all()
        assert sorted((m.from_status, m.to_status) for m in movements) == [
            ("Reserved", "Spare"), ("Spare", "Reserved"),
        ]
        assert {m.movement_type for m in movements} == {MovementType.STATUS_CHANGED}

    @pytest.mark.asyncio
    async def test_approve_then_dispatch(self, db_session, head_office, site, admin_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1")
        transfer = await stock_service.initiate_transfer(
            db_session, self._transfer_request(head_office, site, assets), admin_user
        )

        await stock_service.approve_transfer(db_session, transfer, admin_user)
        assert transfer.status == TransferStatus.APPROVED
        assert transfer.approved_by == admin_user.id
        with pytest.raises(InvalidTransitionError):
            await stock_service.approve_transfer(db_session, transfer, admin_user)

        await stock_service.dispatch_transfer(db_session, transfer, admin_user, {"docket": "BD-7"})
        assert transfer.status == TransferStatus.IN_TRANSIT
        assert assets[0].status == AssetStatus.IN_TRANSIT

    @pytest.mark.asyncio
    async def test_reject_keeps_reason(self, db_session, head_office, site, admin_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1")
        transfer = await stock_service.initiate_transfer(
            db_session, self._transfer_request(head_office, site, assets), admin_user
        )

        await stock_service.close_transfer(db_session, transfer, admin_user, TransferStatus.REJECTED, "Not needed")

        assert transfer.status == TransferStatus.REJECTED
        assert transfer.rejection_reason == "Not needed"
        assert assets[0].status == AssetStatus.SPARE
        assert assets[0].site_id == head_office.id

    @pytest.mark.asyncio
    async def test_same_site_rejected(self, db_session, head_office, admin_user):
        assets = await _spares(db_session, head_office, admin_user, "SP-1")

        with pytest.raises(ValidationError):
            await stock_service.initiate_transfer(
                db_session, self._transfer_request(head_office, head_office, assets), admin_user
            )

    @pytest.mark.asyncio
    async def test_only_spares_at_source(self, db_session, head_office, site, admin_user, asset):
        with pytest.raises(ValidationError):
            await stock_service.initiate_transfer(
                db_session, self._transfer_request(head_office, site, [asset]), admin_user
            )

    @pytest.mark.asyncio
    async def test_head_office_lookup(self, db_session, head_office, site):
        assert (await stock_service.get_head_office(db_session)).id == head_office.id

    @pytest.mark.asyncio
    async def test_stock_is_not_installed_equipment(self, db_session, head_office, admin_user):
        await _spares(db_session, head_office, admin_user, "SP-1")

        spare = (await db_session.execute(select(Asset).where(Asset.asset_code == "SP-1"))).scalar_one()
        assert spare.location_name == "Store"


class TestSpareUpdates:

    @pytest.mark.asyncio
    async def test_null_status_is_ignored(self, db_session, head_office, admin_user):
        spare = (await _spares(db_session, head_office, admin_user, "SP-1"))[0]

        await stock_service.update_spare(db_session, spare, StockItemUpdate(status=None, remark="Shelf B"), admin_user)

        assert spare.status == AssetStatus.SPARE
        assert spare.remark == "Shelf B"

    @pytest.mark.asyncio
    async def test_status_change_is_logged(self, db_session, head_office, admin_user):
        spare = (await _spares(db_session, head_office, admin_user, "SP-1"))[0]

        await stock_service.update_spare(db_session, spare, StockItemUpdate(status=AssetStatus.DAMAGED), admin_user)
        await db_session.commit()

        changed = (await db_session.execute(
            select(StockMovementLog).where(StockMovementLog.movement_type == MovementType.STATUS_CHANGED)
        )).scalar_one()
        assert (changed.from_status, changed.to_status) == ("Spare", "Damaged")


class TestRequisitions:

    def _requisition(self, site, requisition_type=RequisitionType.STOCK_REQUEST):
        return SimpleNamespace(
            requisition_type=requisition_type,
            requesting_site_id=site.id,
            source_site_id=None,
            ticket_id=None,
            rma_id=None,
            asset_type="Camera",
            device_type="Dome",
            quantity=2,
            reason="Pole replacement",
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requisition_type,prefix", [
        (RequisitionType.STOCK_REQUEST, "REQ-"),
        (RequisitionType.RMA_TRANSFER, "RMT-"),
        (RequisitionType.REPAIRED_ITEM_TRANSFER, "RPT-"),
    ])
    async def test_numbering_by_type(self, db_session, site, engineer_user, requisition_type, prefix):
        requisition = await stock_service.create_requisition(
            db_session, self._requisition(site, requisition_type), engineer_user
        )

        assert requisition.requisition_number.startswith(prefix)
        assert requisition.status == RequisitionStatus.PENDING

    @pytest.mark.asyncio
    async def test_approve_and_fulfill(self, db_session, site, head_office, engineer_user, admin_user):
        spares = await _spares(db_session, head_office, admin_user, "SP-1", "SP-2")
        requisition = await stock_service.create_requisition(db_session, self._requisition(site), engineer_user)

        await stock_service.approve_requisition(db_session, requisition, admin_user)
        assert requisition.status == RequisitionStatus.APPROVED

        with pytest.raises(ValidationError):
            await stock_service.fulfill_requisition(db_session, requisition, ["no-such-asset"], admin_user)

        await stock_service.fulfill_requisition(db_session, requisition, [s.id for s in spares], admin_user)
        assert requisition.status == RequisitionStatus.FULFILLED
        assert requisition.fulfilled_asset_ids == [s.id for s in spares]
        assert requisition.fulfilled_by == admin_user.id

    @pytest.mark.asyncio
    async def test_reject_needs_reason(self, db_session, site, engineer_user, admin_user):
        requisition = await stock_service.create_requisition(db_session, self._requisition(site), engineer_user)

        with pytest.raises(ValidationError):
            await stock_service.reject_requisition(db_session, requisition, admin_user, "  ")

        await stock_service.reject_requisition(db_session, requisition, admin_user, "Stock exhausted")
        assert requisition.status == RequisitionStatus.REJECTED
        with pytest.raises(InvalidTransitionError):
            await stock_service.approve_requisition(db_session, requisition, admin_user)

    @pytest.mark.asyncio
    async def test_only_requester_cancels(self, db_session, site, engineer_user, make_user):
        requisition = await stock_service.create_requisition(db_session, self._requisition(site), engineer_user)
        colleague = await make_user(UserRole.L2_ENGINEER)

        with pytest.raises(AuthorizationError):
            await stock_service.cancel_requisition(db_session, requisition, colleague)

        await stock_service.cancel_requisition(db_session, requisition, engineer_user)
        assert requisition.status == RequisitionStatus.CANCELLED
