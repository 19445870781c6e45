from typing import Dict, Iterable, List

from opbot.models import EmployeeStats, WorkPackage


def summarize(
    backlog: Iterable[WorkPackage],
    in_progress: Iterable[WorkPackage],
    sent_to_test_today: Iterable[WorkPackage],
) -> List[EmployeeStats]:
    """
    Per-assignee task counts, one row per non-empty assignee name,
    sorted by name (code point order, so the output is stable between runs).
    Tasks without an assignee name are not counted.
    """
    stats: Dict[str, EmployeeStats] = {}

    def row(task: WorkPackage):
        name = task.assignee.title
        if not name:
            return None
        if name not in stats:
            stats[name] = EmployeeStats(name=name)
        return stats[name]

    for t in in_progress:
        s = row(t)
        if s is not None:
            s.in_progress += 1

    for t in sent_to_test_today:
        s = row(t)
        if s is not None:
            s.sent_to_test_today += 1

    for t in backlog:
        s = row(t)
        if s is not None:
            s.backlog += 1

    return sorted(stats.values(), key=lambda s: s.name)
