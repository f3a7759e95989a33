"""Turn drag-and-drop drop events into ``(status, order)`` assignments.

Every function here is pure: it reads task sequences and returns
:class:`MoveInstruction` values for the caller to apply through the store.
Column sequences passed in must already be sorted ascending by ``order``
(see :func:`taskflow_board.board.filters.group_by_status`).
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from ..constants import DEFAULT_REBALANCE_EPSILON, ORDER_GAP
from .model import STATUSES, Status, Task


@dataclass(frozen=True)
class DropEvent:
    """End of a drag: the dragged task and whatever it was released over."""

    active_id: str
    over_id: Optional[str] = None


@dataclass(frozen=True)
class MoveInstruction:
    task_id: str
    status: Status
    order: float


@dataclass
class DropResolution:
    moves: list[MoveInstruction] = field(default_factory=list)
    rebalanced: bool = False

    @property
    def is_noop(self) -> bool:
        return not self.moves


def _column_id(over_id: str) -> Optional[Status]:
    for status in STATUSES:
        if status.value == over_id:
            return status
    return None


def _index_of(column: Sequence[Task], task_id: str) -> int:
    for idx, task in enumerate(column):
        if task.id == task_id:
            return idx
    return -1


# ---------------------------------------------------------------------------
# Order arithmetic
# ---------------------------------------------------------------------------

def append_order(column: Sequence[Task], gap: float = ORDER_GAP) -> float:
    """Order for a drop on the empty or trailing region of a column."""
    if not column:
        return float(gap)
    return column[-1].order + gap


def insertion_order(column: Sequence[Task], over_index: int, gap: float = ORDER_GAP) -> float:
    """Order for a task dropped onto ``column[over_index]`` from another column.

    The first slot gets ``target - gap``, the last ``target + gap``; anything in
    between takes the midpoint of the keys at ``over_index - 1`` and
    ``over_index``, so no neighbour is renumbered.
    """
    if not column:
        return float(gap)
    target = column[over_index]
    if over_index == 0:
        return target.order - gap
    if over_index == len(column) - 1:
        return target.order + gap
    return (column[over_index - 1].order + target.order) / 2


def compute_next_order(column: Sequence[Task], target_index: int, gap: float = ORDER_GAP) -> float:
    """Order for inserting a new task *at* ``target_index`` of ``column``."""
    if not column:
        return float(gap)
    if target_index <= 0:
        return column[0].order - gap
    if target_index >= len(column):
        return column[-1].order + gap
    return (column[target_index - 1].order + column[target_index].order) / 2


def needs_rebalance(orders: Sequence[float], epsilon: float = DEFAULT_REBALANCE_EPSILON) -> bool:
    """True when two adjacent keys are closer than *epsilon*."""
    return any(b - a < epsilon for a, b in zip(orders, orders[1:]))


def renumber(sequence: Sequence[Task], status: Status, gap: float = ORDER_GAP) -> list[MoveInstruction]:
    """Assign ``(index + 1) * gap`` to every task, emitting only changed keys."""
    moves: list[MoveInstruction] = []
    for idx, task in enumerate(sequence):
        new_order = float((idx + 1) * gap)
        if task.order != new_order or task.status != status:
            moves.append(MoveInstruction(task.id, status, new_order))
    return moves


def rebalance_column(column: Sequence[Task], gap: float = ORDER_GAP) -> list[MoveInstruction]:
    if not column:
        return []
    return renumber(column, column[0].status, gap)


def reorder_column(
    column: Sequence[Task],
    active_id: str,
    over_id: str,
    gap: float = ORDER_GAP,
) -> list[MoveInstruction]:
    """Move ``active_id`` to ``over_id``'s slot and renumber the column."""
    active_index = _index_of(column, active_id)
    over_index = _index_of(column, over_id)
    if active_index == -1 or over_index == -1 or active_index == over_index:
        return []
    reordered = list(column)
    moved = reordered.pop(active_index)
    reordered.insert(over_index, moved)
    return renumber(reordered, moved.status, gap)


# ---------------------------------------------------------------------------
# Drop resolution
# ---------------------------------------------------------------------------

def resolve_drop(
    event: DropEvent,
    tasks: Sequence[Task],
    columns: Mapping[Status, Sequence[Task]],
    *,
    gap: float = ORDER_GAP,
    epsilon: float = DEFAULT_REBALANCE_EPSILON,
) -> DropResolution:
    """Resolve a drop into the moves needed to realise it.

    ``tasks`` is the full collection (to look up the dragged and target
    tasks); ``columns`` is the grouped view currently on screen, which may be
    filtered.
    """
    if event.over_id is None:
        return DropResolution()

    active = next((t for t in tasks if t.id == event.active_id), None)
    if active is None:
        return DropResolution()

    status = _column_id(event.over_id)
    if status is not None:
        order = append_order(columns.get(status, []), gap)
        return DropResolution([MoveInstruction(active.id, status, order)])

    if event.over_id == event.active_id:
        return DropResolution()
    over = next((t for t in tasks if t.id == event.over_id), None)
    if over is None:
        return DropResolution()

    column = list(columns.get(over.status, []))
    if active.status == over.status:
        return DropResolution(reorder_column(column, active.id, over.id, gap))

    over_index = _index_of(column, over.id)
    if over_index == -1:
        return DropResolution()
    order = insertion_order(column, over_index, gap)

    orders = [t.order for t in column]
    slot = bisect_right(orders, order)
    orders.insert(slot, order)
    if not needs_rebalance(orders, epsilon):
        return DropResolution([MoveInstruction(active.id, over.status, order)])

    placed = list(column)
    placed.insert(slot, active)
    return DropResolution(renumber(placed, over.status, gap), rebalanced=True)
