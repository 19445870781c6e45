"""
Report pipeline: collect -> classify -> summarize -> (optionally) render.
"""

import logging
import threading
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional, Sequence

from opbot.aggregator import summarize
from opbot.classifier import AsOf
from opbot.dispatcher import TaskCollector
from opbot.models import Report


class ReportPipeline:
    def __init__(
        self,
        collector: TaskCollector,
        project_ids: Sequence[str],
        assignee_ids: Sequence[str],
        *,
        timezone: Optional[tzinfo] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.collector = collector
        self.project_ids = list(project_ids)
        self.assignee_ids = list(assignee_ids)
        self.timezone = timezone
        self.logger = logger or logging.getLogger("report")

    def generate_report(
        self,
        as_of: Optional[AsOf] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Report:
        generated_at = datetime.now(self.timezone)
        if as_of is None:
            as_of = generated_at

        self.logger.info(
            f"📊 Building report for {as_of:%Y-%m-%d} "
            f"({len(self.project_ids)} projects x {len(self.assignee_ids)} assignees)"
        )

        collected = self.collector.collect_all(
            self.project_ids, self.assignee_ids, as_of, cancel_event
        )
        stats = summarize(
            collected.backlog, collected.in_progress, collected.sent_to_test_today
        )

        self.logger.info(
            f"🗂️ Tasks classified: backlog={len(collected.backlog)}, "
            f"in_progress={len(collected.in_progress)}, "
            f"sent_to_test_today={len(collected.sent_to_test_today)}, "
            f"employees={len(stats)}"
        )

        return Report(
            backlog=collected.backlog,
            in_progress=collected.in_progress,
            sent_to_test_today=collected.sent_to_test_today,
            employee_stats=stats,
            generated_at=generated_at,
        )


class ReportService:
    """Builds a report and hands it to the spreadsheet writer."""

    def __init__(self, pipeline: ReportPipeline, writer, logger: Optional[logging.Logger] = None):
        self.pipeline = pipeline
        self.writer = writer
        self.logger = logger or logging.getLogger("report")

    def build_excel_report(
        self,
        as_of: Optional[AsOf] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        report = self.pipeline.generate_report(as_of, cancel_event)
        path = self.writer.write(report)
        self.logger.info(f"💾 Excel report created: {path}")
        return path
