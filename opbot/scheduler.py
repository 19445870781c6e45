import logging
import threading
from zoneinfo import ZoneInfo

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler


# -------------------------------------------------
# Logging
# -------------------------------------------------
logger = logging.getLogger("scheduler")
logger.setLevel(logging.INFO)
logger.propagate = True


# -------------------------------------------------
# Scheduler state
# -------------------------------------------------
_scheduler: BackgroundScheduler | None = None
_run_count: int = 0
_report_lock = threading.Lock()
_stop_event = threading.Event()


# -------------------------------------------------
# Job logic
# -------------------------------------------------
def send_daily_report(report_service, bot):
    """
    Build the report and send it to every subscribed chat.
    Overlapping runs (scheduled or manual) are skipped.
    """
    global _run_count

    if not _report_lock.acquire(blocking=False):
        logger.info("⏳ Previous report still running, skipping this run.")
        return None

    logger.info("⏳ Daily report triggered")

    try:
        path = report_service.build_excel_report(cancel_event=_stop_event)
        delivered = bot.send_file(path, stop_event=_stop_event)
        _run_count += 1
        logger.info(f"✅ Report {path.name} delivered to {delivered} chats (run #{_run_count})")
        return path
    except Exception:
        logger.error("❌ Daily report failed", exc_info=True)
        return None
    finally:
        _report_lock.release()


def report_in_progress() -> bool:
    return _report_lock.locked()


# -------------------------------------------------
# Scheduler bootstrap
# -------------------------------------------------
def start_scheduler(report_service, bot, *, hour: int, minute: int, timezone: str):
    """
    Start scheduler safely (idempotent).
    """
    global _scheduler

    logger.info("🚀 Initializing scheduler")

    if _scheduler and _scheduler.running:
        logger.info("⚠️ Scheduler already running, skipping start")
        return _scheduler

    _stop_event.clear()

    _scheduler = BackgroundScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": ThreadPoolExecutor(max_workers=1)},
        timezone=ZoneInfo(timezone),
    )

    _scheduler.add_job(
        send_daily_report,
        trigger="cron",
        hour=hour,
        minute=minute,
        args=[report_service, bot],
        id="daily_report_job",
        replace_existing=True,
        max_instances=1,  #  no overlap
        coalesce=True,  #  skip missed runs
    )

    _scheduler.start()

    logger.info(f"🚀 Scheduler running = {_scheduler.running}")
    logger.info(f"📌 Next report at {_scheduler.get_job('daily_report_job').next_run_time}")
    return _scheduler


def stop_scheduler():
    """Stop the scheduler and cancel a report that is still being collected."""
    global _scheduler

    _stop_event.set()
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=True)
        logger.info("🛑 Scheduler stopped")
    _scheduler = None
