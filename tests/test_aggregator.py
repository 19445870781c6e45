from __future__ import annotations

import random

from conftest import make_wp
from opbot.aggregator import summarize
from opbot.models import EmployeeStats


def _sample():
    backlog = [
        make_wp(1, assignee="Bob"),
        make_wp(2, assignee="Alice"),
        make_wp(3, assignee=""),
        make_wp(4, assignee="Bob"),
    ]
    in_progress = [make_wp(5, status="В процессе", assignee="Яна"), make_wp(6, status="В процессе", assignee="")]
    sent = [make_wp(7, status="Testing", assignee="Alice")]
    return backlog, in_progress, sent


def test_counts_per_employee() -> None:
    backlog, in_progress, sent = _sample()

    assert summarize(backlog, in_progress, sent) == [
        EmployeeStats("Alice", in_progress=0, sent_to_test_today=1, backlog=1),
        EmployeeStats("Bob", in_progress=0, sent_to_test_today=0, backlog=2),
        EmployeeStats("Яна", in_progress=1, sent_to_test_today=0, backlog=0),
    ]


def test_totals_match_named_tasks() -> None:
    backlog, in_progress, sent = _sample()
    stats = summarize(backlog, in_progress, sent)

    assert sum(s.backlog for s in stats) == len([t for t in backlog if t.assignee.title])
    assert sum(s.in_progress for s in stats) == len([t for t in in_progress if t.assignee.title])
    assert sum(s.sent_to_test_today for s in stats) == len([t for t in sent if t.assignee.title])


def test_order_is_independent_of_input_order() -> None:
    backlog, in_progress, sent = _sample()
    expected = summarize(backlog, in_progress, sent)

    rng = random.Random(1234)
    for _ in range(20):
        rng.shuffle(backlog)
        rng.shuffle(in_progress)
        rng.shuffle(sent)
        assert summarize(backlog, in_progress, sent) == expected


def test_sorted_by_code_point() -> None:
    names = ["bob", "Bob", "Алиса", "alice", "Zed"]
    stats = summarize([make_wp(i, assignee=n) for i, n in enumerate(names)], [], [])

    assert [s.name for s in stats] == ["Bob", "Zed", "alice", "bob", "Алиса"]


def test_empty_inputs() -> None:
    assert summarize([], [], []) == []


def test_unnamed_in_progress_task_adds_no_row() -> None:
    in_progress = [make_wp(1, status="В процессе", assignee="")]
    assert summarize([], in_progress, []) == []


def test_single_sent_to_test_task() -> None:
    assert summarize([], [], [make_wp(1, status="Ready for test", assignee="Alice")]) == [
        EmployeeStats("Alice", in_progress=0, sent_to_test_today=1, backlog=0)
    ]
