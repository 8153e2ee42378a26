"""Load the task-list document from disk.

The agent rewrites the document during every iteration, so :meth:`TaskStore.load`
always reads the file again. Nothing is cached between calls and the store
never writes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ralph import log
from ralph.config import DEFAULT_MAX_ITERATIONS, DEFAULT_STUCK_THRESHOLD
from ralph.errors import DocumentNotFound, DocumentParseError, RalphError
from ralph.io_utils import read_json
from ralph.tasks.model import ListOptions, Task, TaskList

# Older documents list their work under "userStories".
_TASK_KEYS = ("tasks", "userStories")


class TaskStore:
    """Read-only view of the task-list document at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> TaskList:
        """Return a fresh snapshot of the document."""
        try:
            raw = read_json(self.path)
        except FileNotFoundError:
            raise DocumentNotFound(self.path) from None
        except UnicodeDecodeError as e:
            raise DocumentParseError(self.path, f"not UTF-8 text ({e.reason})") from e
        except json.JSONDecodeError as e:
            raise DocumentParseError(
                self.path, f"{e.msg} at line {e.lineno} column {e.colno}"
            ) from e
        except OSError as e:
            raise RalphError(f"Could not read {self.path}: {e.strerror or e}") from e

        task_list = parse_task_list(raw, self.path)
        log.debug(
            f"Loaded {self.path}: {len(task_list.completed())}/{len(task_list.tasks)} tasks passing"
        )
        return task_list


def parse_task_list(raw: Any, path: Path) -> TaskList:
    """Validate decoded JSON and build a :class:`TaskList`."""
    if not isinstance(raw, dict):
        raise DocumentParseError(path, "top level must be a JSON object")

    raw_tasks: Any = []
    for key in _TASK_KEYS:
        if key in raw:
            raw_tasks = raw[key]
            break
    if not isinstance(raw_tasks, list):
        raise DocumentParseError(path, "'tasks' must be a list")

    tasks: list[Task] = []
    seen: set[str] = set()
    for index, item in enumerate(raw_tasks):
        task = _parse_task(item, index, path)
        if task.id in seen:
            raise DocumentParseError(path, f"duplicate task id '{task.id}'")
        seen.add(task.id)
        tasks.append(task)

    stats = raw.get("stats")
    if stats is None:
        stats = {}
    if not isinstance(stats, dict):
        raise DocumentParseError(path, "'stats' must be an object")

    raw_config = raw.get("config")
    has_config = raw_config is not None
    options = _parse_options({} if raw_config is None else raw_config, path)

    return TaskList(
        project=_as_text(raw.get("project")),
        branch_name=_as_text(raw.get("branchName")),
        tasks=tasks,
        stats=stats,
        options=options,
        has_config=has_config,
    )


def _parse_task(item: Any, index: int, path: Path) -> Task:
    where = f"task #{index + 1}"
    if not isinstance(item, dict):
        raise DocumentParseError(path, f"{where} must be an object")

    task_id = item.get("id")
    if isinstance(task_id, (int, float)) and not isinstance(task_id, bool):
        task_id = str(task_id)
    if not isinstance(task_id, str) or not task_id.strip():
        raise DocumentParseError(path, f"{where} has no 'id'")

    priority = item.get("priority")
    if priority is not None and not _is_int(priority):
        raise DocumentParseError(path, f"task '{task_id}': 'priority' must be an integer")

    passes = item.get("passes", False)
    if not isinstance(passes, bool):
        raise DocumentParseError(path, f"task '{task_id}': 'passes' must be true or false")

    attempts = item.get("attempts")
    if attempts is None:
        attempts = 0
    if not _is_int(attempts):
        raise DocumentParseError(path, f"task '{task_id}': 'attempts' must be an integer")

    return Task(
        id=task_id,
        title=_as_text(item.get("title")),
        priority=priority,
        passes=passes,
        attempts=attempts,
    )


def _parse_options(raw: Any, path: Path) -> ListOptions:
    if not isinstance(raw, dict):
        raise DocumentParseError(path, "'config' must be an object")

    extra = {k: v for k, v in raw.items() if k not in ("maxIterations", "stuckThreshold")}
    max_iterations = raw.get("maxIterations", DEFAULT_MAX_ITERATIONS)
    stuck_threshold = raw.get("stuckThreshold", DEFAULT_STUCK_THRESHOLD)

    if not _is_int(max_iterations) or max_iterations < 1:
        raise DocumentParseError(path, "'config.maxIterations' must be a positive integer")
    if not _is_int(stuck_threshold) or stuck_threshold < 1:
        raise DocumentParseError(path, "'config.stuckThreshold' must be a positive integer")

    return ListOptions(
        max_iterations=max_iterations,
        stuck_threshold=stuck_threshold,
        extra=extra,
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
