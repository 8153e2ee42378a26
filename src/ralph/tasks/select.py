"""Pick the next task to hand to the agent."""

from __future__ import annotations

from collections.abc import Iterable

from ralph.tasks.model import Task


def _priority_key(task: Task) -> tuple[bool, int]:
    # Tasks without a priority go after every prioritised one.
    return (task.priority is None, task.priority or 0)


def select_next(tasks: Iterable[Task]) -> Task | None:
    """Return the pending task with the lowest priority value, or ``None``.

    ``sorted`` is stable, so equal priorities keep their document order.
    """
    pending = [t for t in tasks if not t.passes]
    if not pending:
        return None
    return sorted(pending, key=_priority_key)[0]
