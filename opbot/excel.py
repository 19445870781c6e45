"""
XLSX writer for the daily report.
"""

from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from opbot.models import EmployeeStats, Report, WorkPackage

BACKLOG_SHEET = "Бэклог"
WORK_SHEET = "В работе"
SUMMARY_SHEET = "Сводная"

TASK_HEADERS = [
    "ID",
    "Тема",
    "Тип",
    "Статус",
    "Назначенный",
    "Ответственный",
    "Проект",
    "Дата начала",
    "Дата окончания",
]

SUMMARY_HEADERS = ["ФИО", "В работе", "Передано на тесты сегодня", "Бэклог"]

TASK_COLUMN_WIDTH = 20
SUMMARY_COLUMN_WIDTH = 25


def format_date(value: Optional[str]) -> str:
    """"2024-06-01" -> "01.06.2024"; anything unparseable is returned unchanged."""
    if not value:
        return ""
    try:
        return date.fromisoformat(value).strftime("%d.%m.%Y")
    except ValueError:
        return value


def task_row(task: WorkPackage) -> List:
    return [
        task.id,
        task.subject,
        task.type.title,
        task.status.title,
        task.assignee.title,
        task.responsible.title,
        task.project.title,
        format_date(task.start_date) or None,
        format_date(task.due_date) or None,
    ]


def summary_row(stats: EmployeeStats) -> List:
    return [stats.name, stats.in_progress, stats.sent_to_test_today, stats.backlog]


class ExcelReportWriter:
    """
    Renders a Report into a three-sheet workbook:
    backlog, in work (in progress + sent to test today) and the summary.
    """

    def __init__(self, save_dir, *, file_prefix: str = "report"):
        self.save_dir = Path(save_dir)
        self.file_prefix = file_prefix

    def file_name(self, report: Report) -> str:
        return f"{self.file_prefix}_{report.generated_at:%Y-%m-%d_%H-%M-%S}.xlsx"

    def build_workbook(self, report: Report) -> Workbook:
        wb = Workbook()
        # Reuse the default sheet for the backlog
        backlog_ws = wb.active
        backlog_ws.title = BACKLOG_SHEET
        self._fill(backlog_ws, TASK_HEADERS, map(task_row, report.backlog), TASK_COLUMN_WIDTH)

        work_ws = wb.create_sheet(WORK_SHEET)
        self._fill(work_ws, TASK_HEADERS, map(task_row, report.work), TASK_COLUMN_WIDTH)

        summary_ws = wb.create_sheet(SUMMARY_SHEET)
        self._fill(
            summary_ws,
            SUMMARY_HEADERS,
            map(summary_row, report.employee_stats),
            SUMMARY_COLUMN_WIDTH,
        )

        wb.active = wb.sheetnames.index(SUMMARY_SHEET)
        return wb

    def write(self, report: Report) -> Path:
        self.save_dir.mkdir(parents=True, exist_ok=True)
        path = self.save_dir / self.file_name(report)
        wb = self.build_workbook(report)
        try:
            wb.save(path)
        finally:
            wb.close()
        return path

    @staticmethod
    def _fill(ws: Worksheet, headers: List[str], rows: Iterable[List], width: int) -> None:
        ws.append(headers)
        for row in rows:
            ws.append(row)
        for col_idx in range(1, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col_idx)].width = width
