"""Filter and grouping pipeline for board views."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .model import STATUSES, Filters, Status, Task


def _matches_query(task: Task, query: str) -> bool:
    if query in task.title.lower() or query in task.description.lower():
        return True
    return any(query in tag.lower() for tag in task.tags)


def matches(task: Task, filters: Filters) -> bool:
    """Return True when *task* satisfies every active criterion in *filters*."""
    # Unassigned tasks are never hidden by the assignee criterion.
    if filters.assignees and task.assignee_id:
        if task.assignee_id not in filters.assignees:
            return False

    if filters.tags and not any(tag in filters.tags for tag in task.tags):
        return False

    if filters.priorities and task.priority not in filters.priorities:
        return False

    # Blank queries are ignored; otherwise the text is matched as typed.
    if filters.query.strip() and not _matches_query(task, filters.query.lower()):
        return False

    return True


def apply_filters(tasks: Iterable[Task], filters: Optional[Filters] = None) -> list[Task]:
    if filters is None or filters.is_empty:
        return list(tasks)
    return [t for t in tasks if matches(t, filters)]


def sort_by_order(tasks: Iterable[Task]) -> list[Task]:
    """Ascending by ``order``; ties keep their incoming relative order."""
    return sorted(tasks, key=lambda t: t.order)


def group_by_status(tasks: Iterable[Task]) -> dict[Status, list[Task]]:
    grouped: dict[Status, list[Task]] = {status: [] for status in STATUSES}
    for task in tasks:
        grouped[task.status].append(task)
    return {status: sort_by_order(bucket) for status, bucket in grouped.items()}


def task_counts_by_status(tasks: Sequence[Task]) -> dict[Status, int]:
    counts = {status: 0 for status in STATUSES}
    for task in tasks:
        counts[task.status] += 1
    return counts
