"""Celery beat jobs for SLA monitoring; the work lives in services.sla_monitor"""
import asyncio

from ticketops.core.celery_app import celery_app
from ticketops.core.database import AsyncSessionLocal, close_db
from ticketops.core.logging_config import logger
from ticketops.services import sla_monitor


async def _run(job) -> int:
    try:
        async with AsyncSessionLocal() as db:
            return await job(db)
    finally:
        # Each task runs in a fresh event loop; pooled connections cannot outlive it
        await close_db()


@celery_app.task(name="ticketops.tasks.sla_tasks.send_breach_warnings_task")
def send_breach_warnings_task() -> int:
    """Warn assignees about tickets close to breaching their restore SLA"""
    warned = asyncio.run(_run(sla_monitor.send_breach_warnings))
    logger.info(f"[SLA Task] Breach warnings sent: {warned}")
    return warned


@celery_app.task(name="ticketops.tasks.sla_tasks.check_sla_breaches_task")
def check_sla_breaches_task() -> int:
    """Flag tickets past their restore deadline and alert admins"""
    flagged = asyncio.run(_run(sla_monitor.check_sla_breaches))
    logger.info(f"[SLA Task] Tickets flagged as breached: {flagged}")
    return flagged
