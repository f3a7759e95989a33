"""Dashboard aggregates computed from the in-memory task and user lists.

Every function is pure and returns JSON-ready values.  Functions that look
back over a timeframe take ``days`` (one of :data:`TIMEFRAMES`) and an
optional ``now``.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from ..constants import DEFAULT_TAG_COLORS, FALLBACK_TAG_COLOR, TIMEFRAMES
from ..utils import parse_iso
from .dates import date_range, is_overdue, start_of_day
from .model import PRIORITY_ORDER, STATUSES, Status, Task, User


def _check_timeframe(days: int) -> int:
    if days not in TIMEFRAMES:
        raise ValueError(f"Unsupported timeframe: {days} (expected one of {TIMEFRAMES})")
    return days


def _percent(part: int, whole: int) -> int:
    if whole == 0:
        return 0
    # Half rounds up, as the dashboard always displayed it.
    return int(part * 100 / whole + 0.5)


def _after(value: Optional[str], start: datetime) -> bool:
    when = parse_iso(value)
    return when is not None and when > start


def _day_key(value: datetime) -> str:
    return f"{value.strftime('%b')} {value.day}"


def completion_rate(tasks: Sequence[Task], days: int, now: Optional[datetime] = None) -> int:
    """Percentage of tasks created in the timeframe that are done."""
    start, _ = date_range(_check_timeframe(days), now)
    in_range = [t for t in tasks if _after(t.created_at, start)]
    done = [t for t in in_range if t.status == Status.DONE]
    return _percent(len(done), len(in_range))


def on_time_percentage(tasks: Sequence[Task], days: int, now: Optional[datetime] = None) -> int:
    """Percentage of completed tasks with a due date finished on or before it.

    The completion time is approximated by ``updated_at``.
    """
    start, _ = date_range(_check_timeframe(days), now)
    completed = [
        t for t in tasks
        if t.status == Status.DONE and t.due_date and _after(t.created_at, start)
    ]
    on_time = 0
    for task in completed:
        finished = parse_iso(task.updated_at)
        due = parse_iso(task.due_date)
        if finished is None or due is None:
            continue
        if finished < due or start_of_day(finished) == start_of_day(due):
            on_time += 1
    return _percent(on_time, len(completed))


def count_overdue(tasks: Sequence[Task], now: Optional[datetime] = None) -> int:
    return sum(1 for t in tasks if t.status != Status.DONE and is_overdue(t.due_date, now))


def status_priority_matrix(tasks: Sequence[Task]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for status in STATUSES:
        counts = Counter(t.priority for t in tasks if t.status == status)
        row: dict[str, Any] = {"status": status.label}
        for priority in PRIORITY_ORDER:
            row[priority.value] = counts.get(priority, 0)
        rows.append(row)
    return rows


def tag_distribution(tasks: Sequence[Task], colors: Optional[dict[str, str]] = None) -> list[dict[str, Any]]:
    """Tag usage counts, most used first."""
    palette = DEFAULT_TAG_COLORS if colors is None else colors
    counts: Counter[str] = Counter()
    for task in tasks:
        counts.update(task.tags)
    entries = [
        {"name": tag, "value": count, "fill": palette.get(tag, FALLBACK_TAG_COLOR)}
        for tag, count in counts.items()
    ]
    entries.sort(key=lambda e: e["value"], reverse=True)
    return entries


def velocity_series(tasks: Sequence[Task], days: int, now: Optional[datetime] = None) -> list[dict[str, Any]]:
    """Tasks created vs completed per day across the timeframe."""
    start, end = date_range(_check_timeframe(days), now)
    buckets: dict[str, dict[str, int]] = {}
    cursor = start
    while cursor <= end:
        buckets[_day_key(cursor)] = {"created": 0, "completed": 0}
        cursor += timedelta(days=1)

    def _bump(value: Optional[str], key: str) -> None:
        when = parse_iso(value)
        if when is None or not (start < when < end):
            return
        bucket = buckets.get(_day_key(when))
        if bucket is not None:
            bucket[key] += 1

    for task in tasks:
        _bump(task.created_at, "created")
        if task.status == Status.DONE:
            _bump(task.updated_at, "completed")

    return [{"date": day, **counts} for day, counts in buckets.items()]


def workload_by_user(tasks: Sequence[Task], users: Sequence[User]) -> list[dict[str, Any]]:
    """Open (not done) tasks per user, busiest first."""
    open_counts = Counter(t.assignee_id for t in tasks if t.assignee_id and t.status != Status.DONE)
    rows = [
        {"user_id": u.id, "user_name": u.name, "task_count": open_counts.get(u.id, 0)}
        for u in users
    ]
    rows.sort(key=lambda r: r["task_count"], reverse=True)
    return rows


def leaderboard_completed(
    tasks: Sequence[Task],
    users: Sequence[User],
    days: int,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    start, _ = date_range(_check_timeframe(days), now)
    done_counts = Counter(
        t.assignee_id
        for t in tasks
        if t.status == Status.DONE and t.assignee_id and _after(t.updated_at, start)
    )
    rows = [
        {
            "user_id": u.id,
            "user_name": u.name,
            "avatar": u.avatar,
            "completed_count": done_counts.get(u.id, 0),
        }
        for u in users
    ]
    rows.sort(key=lambda r: r["completed_count"], reverse=True)
    return rows


def progress(tasks: Sequence[Task]) -> dict[str, int]:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == Status.DONE)
    return {"completed": completed, "total": total, "percentage": _percent(completed, total)}


def dashboard(
    tasks: Sequence[Task],
    users: Sequence[User],
    days: int = 30,
    now: Optional[datetime] = None,
    colors: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """Every dashboard aggregate in one payload."""
    return {
        "timeframe": _check_timeframe(days),
        "completion_rate": completion_rate(tasks, days, now),
        "on_time_percentage": on_time_percentage(tasks, days, now),
        "overdue": count_overdue(tasks, now),
        "status_priority": status_priority_matrix(tasks),
        "tag_distribution": tag_distribution(tasks, colors),
        "velocity": velocity_series(tasks, days, now),
        "workload": workload_by_user(tasks, users),
        "leaderboard": leaderboard_completed(tasks, users, days, now),
        "progress": progress(tasks),
    }
