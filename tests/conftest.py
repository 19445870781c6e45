from __future__ import annotations

import threading
from typing import Any

import pytest

from opbot.models import Link, WorkPackage


def make_wp(
    id: int = 1,
    status: str = "New",
    assignee: str = "Alice",
    updated_at: str = "2024-06-01T10:00:00Z",
    subject: str = "Task",
    **custom_fields: Any,
) -> WorkPackage:
    return WorkPackage(
        id=id,
        subject=subject,
        type=Link("Task", "/api/v3/types/1"),
        status=Link(status, "/api/v3/statuses/1"),
        assignee=Link(assignee, "/api/v3/users/5" if assignee else ""),
        responsible=Link("Lead", "/api/v3/users/2"),
        project=Link("Android", "/api/v3/projects/16"),
        created_at="2024-05-01T08:00:00Z",
        updated_at=updated_at,
        start_date="2024-05-02",
        due_date=None,
        custom_fields=custom_fields,
    )


def api_element(id: int = 1, status: str = "New", assignee: str = "Alice") -> dict:
    return {
        "id": id,
        "subject": f"Task {id}",
        "createdAt": "2024-05-01T08:00:00Z",
        "updatedAt": "2024-06-01T10:00:00Z",
        "startDate": "2024-05-02",
        "dueDate": None,
        "customField14": "2024-06-01",
        "_links": {
            "type": {"title": "Bug", "href": "/api/v3/types/7"},
            "status": {"title": status, "href": "/api/v3/statuses/3"},
            "assignee": {"title": assignee, "href": "/api/v3/users/20"},
            "responsible": {"title": "Lead", "href": "/api/v3/users/2"},
            "project": {"title": "Android", "href": "/api/v3/projects/16"},
        },
    }


class FakeClient:
    """Stands in for OpenProjectClient; results keyed by (project_id, assignee_id)."""

    def __init__(self, results: dict | None = None, errors: dict | None = None):
        self.results = results or {}
        self.errors = errors or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def fetch_work_packages(self, project_id, assignee_id, cancel_event=None):
        with self._lock:
            self.calls.append((project_id, assignee_id))
        key = (project_id, assignee_id)
        if key in self.errors:
            raise self.errors[key]
        return list(self.results.get(key, []))


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
