"""
Work package classification for the daily report.

Rules are evaluated in order and the first match wins:
  1. test statuses      -> SENT_TO_TEST_TODAY if moved today, else DISCARDED
  2. in-progress        -> IN_PROGRESS
  3. excluded statuses  -> DISCARDED (developer-only states, kept off the backlog)
  4. anything else open -> BACKLOG
"""

from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Sequence, Tuple, Union

from opbot.models import Category, WorkPackage

DEFAULT_DATE_FIELD = "updatedAt"

# --- Status keyword table (case-insensitive substring match) ---
SENT_TO_TEST_STATUSES = (
    "готово к тесту",
    "тестирование",
    "на тесте",
    "передано на тесты",
    "ready for test",
    "testing",
    "on test",
    "sent to test",
)

IN_PROGRESS_STATUSES = (
    "в процессе",
    "в работе",
    "in progress",
    "выполняется",
)

EXCLUDED_FROM_BACKLOG_STATUSES = (
    "разработан",
    "в ветку разработки",
    "developed",
    "merged to develop",
)

# Evaluated top to bottom; the category is what a match resolves to
# (SENT_TO_TEST_TODAY is further narrowed by date).
STATUS_RULES: Sequence[Tuple[Category, Tuple[str, ...]]] = (
    (Category.SENT_TO_TEST_TODAY, SENT_TO_TEST_STATUSES),
    (Category.IN_PROGRESS, IN_PROGRESS_STATUSES),
    (Category.DISCARDED, EXCLUDED_FROM_BACKLOG_STATUSES),
)

AsOf = Union[date, datetime]


def status_matches(status: str, keywords: Sequence[str]) -> bool:
    lowered = status.lower()
    return any(k.lower() in lowered for k in keywords)


def _reference(as_of: AsOf) -> Tuple[date, Optional[tzinfo]]:
    """
    Reference date and the timezone task timestamps are normalized to.

    Aware datetimes carry their own zone, naive ones are local time and
    plain dates are taken as UTC days.
    """
    if isinstance(as_of, datetime):
        if as_of.tzinfo is not None:
            return as_of.date(), as_of.tzinfo
        local = as_of.astimezone()
        return as_of.date(), local.tzinfo
    return as_of, timezone.utc


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def date_in_zone(value: Optional[str], tz: Optional[tzinfo]) -> Optional[str]:
    """`YYYY-MM-DD` of an ISO-8601 value, shifted into `tz` when it carries an offset."""
    if not value:
        return None

    parsed = _parse_timestamp(value)
    if parsed is not None:
        if parsed.tzinfo is not None and tz is not None:
            parsed = parsed.astimezone(tz)
        return parsed.date().isoformat()

    # Fallback: trust the date prefix of whatever the API sent
    head = value.split("T", 1)[0]
    return head[:10] if len(head) >= 10 else None


def _moved_on_reference_date(task: WorkPackage, as_of: AsOf, date_field: str) -> bool:
    ref_date, tz = _reference(as_of)
    return date_in_zone(task.field_value(date_field), tz) == ref_date.isoformat()


def classify(
    task: WorkPackage,
    as_of: AsOf,
    *,
    date_field: str = DEFAULT_DATE_FIELD,
    rules: Sequence[Tuple[Category, Tuple[str, ...]]] = STATUS_RULES,
) -> Category:
    status = task.status.title
    if not status:
        return Category.DISCARDED

    for category, keywords in rules:
        if not status_matches(status, keywords):
            continue
        if category is Category.SENT_TO_TEST_TODAY:
            if _moved_on_reference_date(task, as_of, date_field):
                return category
            return Category.DISCARDED
        return category

    return Category.BACKLOG
