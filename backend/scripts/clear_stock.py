#!/usr/bin/env python3
"""
Clear stock data

Deletes spare and in-transit assets together with every requisition,
stock transfer and movement log. Assets still referenced by a ticket,
an RMA or an asset update request are kept.

Usage:
    python scripts/clear_stock.py --yes
"""

import asyncio
import sys
import argparse
from pathlib import Path

from sqlalchemy import select, delete, func, union

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ticketops.core.database import AsyncSessionLocal, close_db  # noqa: E402
from ticketops.models import (  # noqa: E402
    Asset, AssetStatus, Requisition, StockTransfer, StockMovementLog,
    Ticket, RMARequest, AssetUpdateRequest,
)

CLEARED_STATUSES = (AssetStatus.SPARE, AssetStatus.IN_TRANSIT)


async def clear_stock() -> dict:
    async with AsyncSessionLocal() as db:
        referenced = union(
            select(Ticket.asset_id).where(Ticket.asset_id.is_not(None)),
            select(RMARequest.original_asset_id),
            select(AssetUpdateRequest.asset_id),
        ).subquery()
        doomed = select(Asset.id).where(
            Asset.status.in_(CLEARED_STATUSES),
            Asset.id.not_in(select(referenced.c[0])),
        )

        kept = await db.scalar(
            select(func.count(Asset.id)).where(Asset.status.in_(CLEARED_STATUSES))
        )

        counts = {
            "movement_logs": (await db.execute(delete(StockMovementLog))).rowcount,
            "requisitions": (await db.execute(delete(Requisition))).rowcount,
            "transfers": (await db.execute(delete(StockTransfer))).rowcount,
        }
        counts["assets"] = (await db.execute(
            delete(Asset).where(Asset.id.in_(doomed)).execution_options(synchronize_session=False)
        )).rowcount
        counts["assets_kept"] = kept - counts["assets"]

        await db.commit()
    return counts


async def main():
    parser = argparse.ArgumentParser(description="Delete spare/in-transit stock, requisitions and transfers")
    parser.add_argument("--yes", action="store_true", help="Confirm the deletion")
    args = parser.parse_args()

    if not args.yes:
        print("[ClearStock] This permanently deletes stock data. Re-run with --yes to continue.")
        sys.exit(1)

    print("=" * 50)
    print("  TicketOps - Clear Stock")
    print("=" * 50)

    try:
        counts = await clear_stock()
    except Exception as e:
        print(f"[ClearStock] ERROR: {e}")
        sys.exit(1)
    finally:
        await close_db()

    print(f"[ClearStock] Deleted {counts['assets']} stock assets ({', '.join(s.value for s in CLEARED_STATUSES)})")
    if counts["assets_kept"]:
        print(f"[ClearStock] Kept {counts['assets_kept']} assets still referenced by tickets or RMAs")
    print(f"[ClearStock] Deleted {counts['requisitions']} requisitions")
    print(f"[ClearStock] Deleted {counts['transfers']} transfers")
    print(f"[ClearStock] Deleted {counts['movement_logs']} movement log entries")
    print("\n[ClearStock] Done")


if __name__ == "__main__":
    asyncio.run(main())
