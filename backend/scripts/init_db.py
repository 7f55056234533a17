#!/usr/bin/env python3
"""
Database Initialization Script for TicketOps

This script:
1. Tests database connectivity
2. Creates any missing tables
3. Seeds SLA policies, default settings, the head office site and an admin user

Usage:
    python scripts/init_db.py              # Full init
    python scripts/init_db.py --check      # Only check connectivity
    python scripts/init_db.py --tables     # Only create tables
    python scripts/init_db.py --status     # Show row counts per table
"""

import asyncio
import sys
import argparse
from pathlib import Path

from sqlalchemy import select, func, text

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ticketops.core.config import settings  # noqa: E402
from ticketops.core.database import Base, create_engine_for_url, AsyncSessionLocal, init_db  # noqa: E402
from ticketops.core.security import get_password_hash  # noqa: E402
from ticketops.models import SLAPolicy, TicketPriority, Site, User, UserRole  # noqa: E402
from ticketops.services import settings_service  # noqa: E402


# priority -> (response minutes, restore minutes, escalation L1, escalation L2)
DEFAULT_SLA_POLICIES = {
    TicketPriority.P1: (15, 60, 30, 45),
    TicketPriority.P2: (30, 240, 120, 180),
    TicketPriority.P3: (60, 480, 240, 360),
    TicketPriority.P4: (120, 1440, 720, 1080),
}


def masked_url(db_url: str) -> str:
    return db_url.split('@')[1] if '@' in db_url else db_url.split('///')[-1]


async def test_connection() -> bool:
    """Test database connectivity"""
    print("\n[InitDB] Testing database connection...")
    print(f"[InitDB] Connecting to: {masked_url(settings.DATABASE_URL)}")

    engine = create_engine_for_url(settings.DATABASE_URL)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        print("[InitDB] Database connection successful!")
        return True
    except Exception as e:
        print(f"[InitDB] ERROR: Database connection failed: {e}")
        return False
    finally:
        await engine.dispose()


async def create_tables() -> bool:
    print("\n[InitDB] Creating tables...")
    try:
        await init_db()
        print(f"[InitDB] {len(Base.metadata.tables)} tables ready")
        return True
    except Exception as e:
        print(f"[InitDB] ERROR: Table creation failed: {e}")
        return False


async def seed_data() -> None:
    """Idempotent: existing rows are left alone"""
    print("\n[InitDB] Seeding initial data...")

    async with AsyncSessionLocal() as db:
        existing = {p for p in (await db.execute(select(SLAPolicy.priority))).scalars()}
        for priority, (response, restore, esc1, esc2) in DEFAULT_SLA_POLICIES.items():
            if priority in existing:
                continue
            db.add(SLAPolicy(
                policy_name=f"{priority.value} default",
                priority=priority,
                response_time_minutes=response,
                restore_time_minutes=restore,
                escalation_level1_minutes=esc1,
                escalation_level2_minutes=esc2,
            ))
            print(f"[InitDB] + SLA policy {priority.value}: respond {response}m, restore {restore}m")

        added = await settings_service.seed_defaults(db)
        if added:
            print(f"[InitDB] + {added} default settings")

        head_office = await db.scalar(select(Site).where(Site.site_code == settings.HEAD_OFFICE_SITE_CODE))
        if head_office is None:
            db.add(Site(
                site_name="Head Office",
                site_code=settings.HEAD_OFFICE_SITE_CODE,
                is_head_office=True,
            ))
            print(f"[InitDB] + Head office site ({settings.HEAD_OFFICE_SITE_CODE})")

        admin = await db.scalar(select(User).where(User.username == settings.ADMIN_USERNAME))
        if admin is None:
            db.add(User(
                email=settings.ADMIN_EMAIL.lower(),
                username=settings.ADMIN_USERNAME,
                full_name="Administrator",
                hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
                role=UserRole.ADMIN,
                assigned_sites=[],
                preferences={},
            ))
            print(f"[InitDB] + Admin user '{settings.ADMIN_USERNAME}' (change the password after first login)")

        await db.commit()
    print("[InitDB] Seed complete")


async def show_table_status() -> None:
    print("\n[InitDB] Table status:")
    async with AsyncSessionLocal() as db:
        for table in Base.metadata.sorted_tables:
            count = await db.scalar(select(func.count()).select_from(table))
            print(f"  {table.name:<28} {count:>8}")


async def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="TicketOps Database Initialization")
    parser.add_argument("--check", action="store_true", help="Only check connectivity")
    parser.add_argument("--tables", action="store_true", help="Only create tables")
    parser.add_argument("--status", action="store_true", help="Show table status")
    args = parser.parse_args()

    print("=" * 50)
    print("  TicketOps Database Initialization")
    print("=" * 50)

    if not await test_connection():
        print("\n[InitDB] FAILED: Cannot connect to database")
        sys.exit(1)

    if args.check:
        print("\n[InitDB] Connection check completed!")
        sys.exit(0)

    if args.status:
        await show_table_status()
        sys.exit(0)

    if not await create_tables():
        print("[InitDB] FAILED: Could not create tables")
        sys.exit(1)

    if not args.tables:
        await seed_data()

    await show_table_status()

    print("\n" + "=" * 50)
    print("  Database Initialization Complete!")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(main())
