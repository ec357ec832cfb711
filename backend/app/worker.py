import asyncio
from datetime import datetime
import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select, delete
from app.core.config import get_settings
from app.core.database import SessionLocal
from app.models.session import Session
from app.models.user import User
from app.schemas.workflow import WorkflowContext
from app.services.workflow_orchestrator import WorkflowOrchestrator
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger("worker")

scheduler = AsyncIOScheduler(timezone=pytz.timezone(settings.TIMEZONE))


async def run_scheduled_workflow_for_all_users():
    logger.info("Starting scheduled maintenance workflow for all users...")
    async with SessionLocal() as db:
        result = await db.execute(select(User.id))
        user_ids = result.scalars().all()

    for user_id in user_ids:
        # Fresh session per user so one failure cannot poison the rest of the sweep
        async with SessionLocal() as db:
            try:
                orchestrator = WorkflowOrchestrator(db)
                res = await orchestrator.process_workflow(
                    WorkflowContext(user_id=user_id, trigger="scheduled", data={})
                )
                logger.info(f"Scheduled workflow for user {user_id}: {len(res.actions)} actions, confidence {res.confidence:.2f}")
            except Exception as e:
                logger.error(f"Error running scheduled workflow for user {user_id}: {e}")


async def purge_expired_sessions() -> int:
    async with SessionLocal() as db:
        result = await db.execute(delete(Session).where(Session.expires_at <= datetime.utcnow()))
        await db.commit()
        removed = result.rowcount or 0
    logger.info(f"Purged {removed} expired sessions")
    return removed


def schedule_jobs():
    tz = pytz.timezone(settings.TIMEZONE)
    scheduler.add_job(
        run_scheduled_workflow_for_all_users,
        CronTrigger(hour=settings.RETENTION_SWEEP_HOUR, minute=0, timezone=tz),
        id="scheduled_workflow",
        replace_existing=True,
    )
    scheduler.add_job(
        purge_expired_sessions,
        CronTrigger(hour=settings.RETENTION_SWEEP_HOUR, minute=30, timezone=tz),
        id="purge_sessions",
        replace_existing=True,
    )


async def main_async():
    logger.info("Initializing Worker...")
    schedule_jobs()
    scheduler.start()
    logger.info("Worker started. Press Ctrl+C to exit.")

    # Keep alive
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass


def main():
    try:
        asyncio.run(main_async())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Worker stopped.")


if __name__ == "__main__":
    main()
