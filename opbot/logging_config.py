import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo


class ReportTZFormatter(logging.Formatter):
    """Renders record times in the report timezone regardless of the host's."""

    def __init__(self, fmt, datefmt, tz: ZoneInfo):
        super().__init__(fmt, datefmt)
        self.tz = tz

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        return dt.strftime(datefmt or "%H:%M:%S")


def setup_logging(tz_name: str = "UTC", level: int = logging.INFO):
    formatter = ReportTZFormatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        "%H:%M:%S",
        ZoneInfo(tz_name),
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )
