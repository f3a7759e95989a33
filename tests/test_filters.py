"""Tests for the filter and grouping pipeline (board/filters.py)."""

from __future__ import annotations

from taskflow_board.board.filters import (
    apply_filters,
    group_by_status,
    matches,
    sort_by_order,
    task_counts_by_status,
)
from taskflow_board.board.model import Filters, Priority, Status, Task


def _tasks() -> list[Task]:
    return [
        Task(id="t1", title="Implement auth", tags=["backend"], priority=Priority.HIGH, assignee_id="u1"),
        Task(id="t2", title="Fix layout", description="Auth page overflow", tags=["frontend"], assignee_id="u2"),
        Task(id="t3", title="Docs", tags=["authoring"], priority=Priority.LOW),
        Task(id="t4", title="Deploy", tags=["devops"], status=Status.DONE, assignee_id="u2"),
    ]


class TestMatches:
    def test_query_over_title_description_and_tags(self) -> None:
        result = apply_filters(_tasks(), Filters(query="auth"))
        assert [t.id for t in result] == ["t1", "t2", "t3"]

    def test_query_is_case_insensitive(self) -> None:
        result = apply_filters(_tasks(), Filters(query="DEPLOY"))
        assert [t.id for t in result] == ["t4"]

    def test_query_whitespace_is_matched_as_typed(self) -> None:
        tasks = [Task(id="a", title="Fix authentication bug"), Task(id="b", title="auth")]
        assert apply_filters(tasks, Filters(query="auth ")) == []
        assert [t.id for t in apply_filters(tasks, Filters(query="auth"))] == ["a", "b"]

    def test_blank_query_matches_everything(self) -> None:
        assert len(apply_filters(_tasks(), Filters(query="   "))) == 4
        assert matches(_tasks()[0], Filters(query="  ", priorities=[Priority.HIGH]))

    def test_unassigned_tasks_pass_assignee_filter(self) -> None:
        result = apply_filters(_tasks(), Filters(assignees=["u1"]))
        assert [t.id for t in result] == ["t1", "t3"]

    def test_tags_match_any(self) -> None:
        result = apply_filters(_tasks(), Filters(tags=["frontend", "devops"]))
        assert [t.id for t in result] == ["t2", "t4"]

    def test_priority_membership(self) -> None:
        result = apply_filters(_tasks(), Filters(priorities=[Priority.LOW, Priority.HIGH]))
        assert [t.id for t in result] == ["t1", "t3"]

    def test_criteria_are_anded(self) -> None:
        filters = Filters(assignees=["u2"], tags=["frontend", "backend"])
        result = apply_filters(_tasks(), filters)
        assert [t.id for t in result] == ["t2"]

    def test_no_filters_returns_copy(self) -> None:
        tasks = _tasks()
        result = apply_filters(tasks)
        assert result == tasks
        assert result is not tasks

    def test_matches_single_task(self) -> None:
        task = Task(title="Plain")
        assert matches(task, Filters())
        assert not matches(task, Filters(tags=["x"]))


class TestGrouping:
    def test_all_columns_present(self) -> None:
        grouped = group_by_status([])
        assert list(grouped) == [Status.TODO, Status.IN_PROGRESS, Status.IN_REVIEW, Status.DONE]
        assert all(bucket == [] for bucket in grouped.values())

    def test_columns_sorted_by_order(self) -> None:
        tasks = [
            Task(id="b", order=2000),
            Task(id="a", order=1000),
            Task(id="d", status=Status.DONE, order=5),
        ]
        grouped = group_by_status(tasks)
        assert [t.id for t in grouped[Status.TODO]] == ["a", "b"]
        assert [t.id for t in grouped[Status.DONE]] == ["d"]

    def test_ties_keep_input_order(self) -> None:
        tasks = [Task(id="first", order=1000), Task(id="second", order=1000)]
        assert [t.id for t in sort_by_order(tasks)] == ["first", "second"]

    def test_counts(self) -> None:
        counts = task_counts_by_status(_tasks())
        assert counts[Status.TODO] == 3
        assert counts[Status.DONE] == 1
        assert counts[Status.IN_REVIEW] == 0
