from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import make_wp
from opbot import scheduler
from opbot.errors import CollectionCancelled, SourceUnavailable
from opbot.main import app
from opbot.models import EmployeeStats, Report


@pytest.fixture
def report() -> Report:
    return Report(
        backlog=[make_wp(1, assignee="Bob")],
        in_progress=[],
        sent_to_test_today=[make_wp(2, status="Testing", assignee="Alice")],
        employee_stats=[EmployeeStats("Alice", 0, 1, 0), EmployeeStats("Bob", 0, 0, 1)],
        generated_at=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def client():
    # No `with`: the lifespan (config, DB, scheduler, bot) is not started
    app.state.report_service = MagicMock()
    app.state.bot = MagicMock()
    app.state.store = MagicMock()
    yield TestClient(app)
    for name in ("report_service", "bot", "store"):
        delattr(app.state, name)


def test_download_report(client, tmp_path) -> None:
    path = tmp_path / "report_2024-06-01_09-00-00.xlsx"
    path.write_bytes(b"xlsx-bytes")
    app.state.report_service.build_excel_report.return_value = path

    resp = client.get("/api/v1/report")

    assert resp.status_code == 200
    assert resp.content == b"xlsx-bytes"
    assert resp.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert path.name in resp.headers["content-disposition"]


@pytest.mark.parametrize("error,status", [(SourceUnavailable("down"), 500), (CollectionCancelled("stop"), 503)])
def test_download_report_errors(client, error, status) -> None:
    app.state.report_service.build_excel_report.side_effect = error

    assert client.get("/api/v1/report").status_code == status


def test_report_summary(client, report) -> None:
    app.state.report_service.pipeline.generate_report.return_value = report

    resp = client.get("/api/v1/report/summary")

    assert resp.status_code == 200
    body = resp.json()
    assert body["backlog"] == 1
    assert body["sent_to_test_today"] == 1
    assert [e["name"] for e in body["employees"]] == ["Alice", "Bob"]
    assert body["employees"][0] == {"name": "Alice", "in_progress": 0, "sent_to_test_today": 1, "backlog": 0}


def test_send_report(client, tmp_path) -> None:
    path = tmp_path / "report.xlsx"
    app.state.report_service.build_excel_report.return_value = path
    app.state.bot.send_file.return_value = 3

    resp = client.post("/api/v1/report/send")

    assert resp.json() == {"status": "success", "file": "report.xlsx"}
    app.state.bot.send_file.assert_called_once()
    assert app.state.bot.send_file.call_args.args[0] == path


def test_send_report_failure(client) -> None:
    app.state.report_service.build_excel_report.side_effect = SourceUnavailable("down")

    assert client.post("/api/v1/report/send").status_code == 500
    app.state.bot.send_file.assert_not_called()


def test_send_report_skipped_while_running(client) -> None:
    assert scheduler._report_lock.acquire(blocking=False)
    try:
        resp = client.post("/api/v1/report/send")
    finally:
        scheduler._report_lock.release()

    assert resp.json()["status"] == "skipped"
    app.state.report_service.build_excel_report.assert_not_called()


def test_list_chats(client) -> None:
    app.state.store.list_chats.return_value = [{"chat_id": -1, "title": "Team"}]

    resp = client.get("/api/v1/chats")

    assert resp.json() == {"count": 1, "chats": [{"chat_id": -1, "title": "Team"}]}
