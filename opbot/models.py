"""
Data model for the OpenProject report: work packages, classification
categories and per-employee statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class Link:
    """A HAL `_links` entry (`{"title": ..., "href": ...}`)."""

    title: str = ""
    href: str = ""

    @classmethod
    def from_api(cls, data: Optional[Mapping[str, Any]]) -> "Link":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"link must be an object, got {type(data).__name__}")
        return cls(title=data.get("title") or "", href=data.get("href") or "")


# API field name -> WorkPackage attribute
_DATE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "startDate": "start_date",
    "dueDate": "due_date",
}


@dataclass(frozen=True)
class WorkPackage:
    id: int
    subject: str
    type: Link
    status: Link
    assignee: Link
    responsible: Link
    project: Link
    created_at: str = ""
    updated_at: str = ""
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    custom_fields: Mapping[str, Any] = field(
        default_factory=dict, compare=False, hash=False, repr=False
    )

    @classmethod
    def from_api(cls, element: Mapping[str, Any]) -> "WorkPackage":
        """
        Build a WorkPackage from one element of `_embedded.elements`.

        Raises KeyError, TypeError or ValueError when the element does not
        look like a work package.
        """
        if not isinstance(element, Mapping):
            raise TypeError(f"work package must be an object, got {type(element).__name__}")

        links = element.get("_links") or {}
        if not isinstance(links, Mapping):
            raise TypeError("work package _links must be an object")

        raw_id = element["id"]
        if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)):
            raise TypeError(f"work package id must be an integer, got {raw_id!r}")

        return cls(
            id=int(raw_id),
            subject=element.get("subject") or "",
            type=Link.from_api(links.get("type")),
            status=Link.from_api(links.get("status")),
            assignee=Link.from_api(links.get("assignee")),
            responsible=Link.from_api(links.get("responsible")),
            project=Link.from_api(links.get("project")),
            created_at=element.get("createdAt") or "",
            updated_at=element.get("updatedAt") or "",
            start_date=element.get("startDate"),
            due_date=element.get("dueDate"),
            custom_fields={
                k: v for k, v in element.items() if k.startswith("customField")
            },
        )

    def field_value(self, name: str) -> Optional[str]:
        """Value of a date-like field by its API name (`updatedAt`, `customField14`, ...)."""
        attr = _DATE_FIELDS.get(name)
        if attr:
            return getattr(self, attr) or None
        value = self.custom_fields.get(name)
        return str(value) if value not in (None, "") else None


@dataclass(frozen=True)
class Job:
    project_id: str
    assignee_id: str


class Category(str, Enum):
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    SENT_TO_TEST_TODAY = "sent_to_test_today"
    DISCARDED = "discarded"


@dataclass
class EmployeeStats:
    name: str
    in_progress: int = 0
    sent_to_test_today: int = 0
    backlog: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "in_progress": self.in_progress,
            "sent_to_test_today": self.sent_to_test_today,
            "backlog": self.backlog,
        }


@dataclass
class CollectedTasks:
    backlog: List[WorkPackage] = field(default_factory=list)
    in_progress: List[WorkPackage] = field(default_factory=list)
    sent_to_test_today: List[WorkPackage] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.backlog or self.in_progress or self.sent_to_test_today)

    def add(self, category: Category, task: WorkPackage) -> None:
        if category is Category.BACKLOG:
            self.backlog.append(task)
        elif category is Category.IN_PROGRESS:
            self.in_progress.append(task)
        elif category is Category.SENT_TO_TEST_TODAY:
            self.sent_to_test_today.append(task)

    def extend(self, other: "CollectedTasks") -> None:
        self.backlog.extend(other.backlog)
        self.in_progress.extend(other.in_progress)
        self.sent_to_test_today.extend(other.sent_to_test_today)


@dataclass
class Report:
    backlog: List[WorkPackage]
    in_progress: List[WorkPackage]
    sent_to_test_today: List[WorkPackage]
    employee_stats: List[EmployeeStats]
    generated_at: datetime

    @property
    def work(self) -> List[WorkPackage]:
        """Tasks for the "in work" sheet: in progress first, then sent to test today."""
        return [*self.in_progress, *self.sent_to_test_today]
