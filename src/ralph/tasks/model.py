"""Task and TaskList data models for the task-list document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ralph.config import DEFAULT_MAX_ITERATIONS, DEFAULT_STUCK_THRESHOLD


@dataclass
class Task:
    id: str
    title: str = ""
    priority: int | None = None
    passes: bool = False
    attempts: int = 0


@dataclass
class ListOptions:
    """The document's ``config`` block. Keys we do not use stay in ``extra``."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    stuck_threshold: int = DEFAULT_STUCK_THRESHOLD
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TaskList:
    project: str = ""
    branch_name: str = ""
    tasks: list[Task] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    options: ListOptions = field(default_factory=ListOptions)
    has_config: bool = False

    def pending(self) -> list[Task]:
        return [t for t in self.tasks if not t.passes]

    def completed(self) -> list[Task]:
        return [t for t in self.tasks if t.passes]
