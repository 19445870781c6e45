"""
FastAPI Application - OpenProject daily report bot
"""

import logging
import threading
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse

from opbot import config, scheduler
from opbot.dispatcher import TaskCollector
from opbot.errors import CollectionCancelled, ReportError
from opbot.excel import ExcelReportWriter
from opbot.logging_config import setup_logging
from opbot.openproject import OpenProjectClient
from opbot.report import ReportPipeline, ReportService
from opbot.storage import ChatStore
from opbot.telegram import TelegramBot

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

logger = logging.getLogger("api")


def build_report_service() -> ReportService:
    client = OpenProjectClient(
        config.OPENPROJECT_BASE_URL,
        config.OPENPROJECT_API_TOKEN,
        page_size=config.OPENPROJECT_PAGE_SIZE,
        timeout=config.OPENPROJECT_REQUEST_TIMEOUT_SECONDS,
        closed_status_ids=config.OPENPROJECT_CLOSED_STATUS_IDS,
        pool_size=config.REPORT_MAX_WORKERS,
        logger=logging.getLogger("openproject"),
    )
    collector = TaskCollector(
        client,
        max_workers=config.REPORT_MAX_WORKERS,
        date_field=config.REPORT_SENT_TO_TEST_FIELD,
        logger=logging.getLogger("collector"),
    )
    pipeline = ReportPipeline(
        collector,
        config.OPENPROJECT_PROJECT_IDS,
        config.OPENPROJECT_ASSIGNEE_IDS,
        timezone=ZoneInfo(config.REPORT_TIMEZONE),
        logger=logging.getLogger("report"),
    )
    writer = ExcelReportWriter(config.REPORT_SAVE_DIR, file_prefix=config.REPORT_FILE_PREFIX)
    return ReportService(pipeline, writer, logger=logging.getLogger("report"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.REPORT_TIMEZONE)
    config.validate_config()

    store = ChatStore(config.DATABASE_URL)
    store.ensure_schema()
    bot = TelegramBot(
        config.TELEGRAM_BOT_TOKEN,
        config.TELEGRAM_MESSAGE,
        store=store,
        logger=logging.getLogger("telegram"),
    )
    report_service = build_report_service()

    app.state.store = store
    app.state.bot = bot
    app.state.report_service = report_service

    stop_polling = threading.Event()
    poller = threading.Thread(
        target=bot.poll_forever, args=(stop_polling,), name="telegram-poller", daemon=True
    )
    poller.start()

    scheduler.start_scheduler(
        report_service,
        bot,
        hour=config.DAILY_REPORT_HOUR,
        minute=config.DAILY_REPORT_MINUTE,
        timezone=config.REPORT_TIMEZONE,
    )
    yield

    scheduler.stop_scheduler()
    stop_polling.set()
    # The poller may be inside a long poll; it exits once that call returns.
    poller.join(timeout=1)


app = FastAPI(title="OpenProject Report Bot", lifespan=lifespan)


def _report_failed(e: ReportError) -> HTTPException:
    if isinstance(e, CollectionCancelled):
        return HTTPException(status_code=503, detail="Report generation cancelled")
    return HTTPException(status_code=500, detail=f"Failed to generate report: {e}")


# -------------------------------------------------
# Report Endpoints
# -------------------------------------------------
@app.get("/api/v1/report", tags=["Report"])
def download_report(request: Request):
    """Build a fresh report and return it as an .xlsx attachment."""
    try:
        path = request.app.state.report_service.build_excel_report()
    except ReportError as e:
        logger.error("❌ Report generation failed", exc_info=True)
        raise _report_failed(e) from e
    return FileResponse(path, media_type=XLSX_MEDIA_TYPE, filename=path.name)


@app.get("/api/v1/report/summary", tags=["Report"])
def report_summary(request: Request):
    """Per-employee task counts without rendering a spreadsheet."""
    try:
        report = request.app.state.report_service.pipeline.generate_report()
    except ReportError as e:
        logger.error("❌ Report generation failed", exc_info=True)
        raise _report_failed(e) from e
    return {
        "generated_at": report.generated_at.isoformat(),
        "backlog": len(report.backlog),
        "in_progress": len(report.in_progress),
        "sent_to_test_today": len(report.sent_to_test_today),
        "employees": [s.to_dict() for s in report.employee_stats],
    }


@app.post("/api/v1/report/send", tags=["Report"])
def send_report(request: Request):
    """Build the report and deliver it to all subscribed chats now."""
    if scheduler.report_in_progress():
        return {"status": "skipped", "reason": "Report already in progress"}
    path = scheduler.send_daily_report(request.app.state.report_service, request.app.state.bot)
    if path is None:
        raise HTTPException(status_code=500, detail="Failed to build or send report")
    return {"status": "success", "file": path.name}


# -------------------------------------------------
# Subscribers
# -------------------------------------------------
@app.get("/api/v1/chats", tags=["Chats"])
def list_chats(request: Request):
    """Chats the report is delivered to."""
    chats = request.app.state.store.list_chats()
    return {"count": len(chats), "chats": chats}
