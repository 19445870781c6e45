import os
from dotenv import load_dotenv

# Load variables from .env into environment
load_dotenv()


def _csv(name: str) -> list:
    raw = os.getenv(name, "")
    return [v.strip() for v in raw.split(",") if v.strip()]


# =========================
# OPENPROJECT CONFIG
# =========================
OPENPROJECT_BASE_URL = os.getenv("OPENPROJECT_BASE_URL")
OPENPROJECT_API_TOKEN = os.getenv("OPENPROJECT_API_TOKEN")
OPENPROJECT_PROJECT_IDS = _csv("OPENPROJECT_PROJECT_IDS")
OPENPROJECT_ASSIGNEE_IDS = _csv("OPENPROJECT_ASSIGNEE_IDS")
# Empty -> OpenProject's own "open" status filter
OPENPROJECT_CLOSED_STATUS_IDS = _csv("OPENPROJECT_CLOSED_STATUS_IDS")
OPENPROJECT_PAGE_SIZE = int(os.getenv("OPENPROJECT_PAGE_SIZE", "200"))
OPENPROJECT_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("OPENPROJECT_REQUEST_TIMEOUT_SECONDS", "30")
)

# =========================
# REPORT CONFIG
# =========================
REPORT_MAX_WORKERS = int(os.getenv("REPORT_MAX_WORKERS", "8"))
# Field holding the "moved to test" date: updatedAt or a custom field (customField14)
REPORT_SENT_TO_TEST_FIELD = os.getenv("REPORT_SENT_TO_TEST_FIELD", "updatedAt")
REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "Europe/Moscow")
REPORT_SAVE_DIR = os.getenv("REPORT_SAVE_DIR", "reports")
REPORT_FILE_PREFIX = os.getenv("REPORT_FILE_PREFIX", "report")

# =========================
# SCHEDULER CONFIG
# =========================
DAILY_REPORT_HOUR = int(os.getenv("DAILY_REPORT_HOUR", "9"))
DAILY_REPORT_MINUTE = int(os.getenv("DAILY_REPORT_MINUTE", "0"))

# =========================
# TELEGRAM CONFIG
# =========================
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_MESSAGE = os.getenv("TELEGRAM_MESSAGE", "Ежедневный отчёт по задачам")

# =========================
# DATABASE CONFIG (PostgreSQL, subscriber chats)
# =========================
DATABASE_URL = os.getenv("DATABASE_URL")


# =========================
# VALIDATION (FAIL FAST)
# =========================
def validate_config():
    missing = []

    if not OPENPROJECT_BASE_URL:
        missing.append("OPENPROJECT_BASE_URL")

    if not OPENPROJECT_API_TOKEN:
        missing.append("OPENPROJECT_API_TOKEN")

    if not OPENPROJECT_PROJECT_IDS:
        missing.append("OPENPROJECT_PROJECT_IDS")

    if not OPENPROJECT_ASSIGNEE_IDS:
        missing.append("OPENPROJECT_ASSIGNEE_IDS")

    if not TELEGRAM_BOT_TOKEN:
        missing.append("TELEGRAM_BOT_TOKEN")

    if not DATABASE_URL:
        missing.append("DATABASE_URL")

    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    if not (0 <= DAILY_REPORT_HOUR <= 23 and 0 <= DAILY_REPORT_MINUTE <= 59):
        raise RuntimeError(
            f"Invalid daily report time {DAILY_REPORT_HOUR}:{DAILY_REPORT_MINUTE:02d}"
        )
