"""Shared fixtures for ralph tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- ``ralph_project`` lays out ``ralph/prd.json`` and ``ralph/prompt.md`` under tmp_path.
"""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path
from typing import Any

import pytest

from ralph.config import Config
from ralph.tasks.model import Task

FAKE_AGENT = Path(__file__).parent / "fake_agent.py"

DEFAULT_PROMPT = "Read ralph/prd.json, implement the next task, then update it.\n"


def _make_task(
    id: str,
    priority: int | None = 1,
    passes: bool = False,
    title: str = "",
    attempts: int = 0,
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        priority=priority,
        passes=passes,
        attempts=attempts,
    )


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


def task_dict(id: str, priority: int = 1, passes: bool = False, **extra: Any) -> dict[str, Any]:
    return {"id": id, "title": f"Task {id}", "priority": priority, "passes": passes, **extra}


def write_prd(root: Path, tasks: list[dict[str, Any]], **extra: Any) -> Path:
    """Write ``ralph/prd.json`` under *root* and return its path."""
    doc = {"project": "demo", "branchName": "ralph/demo", "tasks": tasks, **extra}
    path = root / "ralph" / "prd.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
    return path


def read_prd(root: Path) -> dict[str, Any]:
    return json.loads((root / "ralph" / "prd.json").read_text(encoding="utf-8"))


@pytest.fixture
def ralph_project(tmp_path: Path) -> Path:
    """A project root with ``ralph/prompt.md`` and two pending tasks."""
    (tmp_path / "ralph").mkdir()
    (tmp_path / "ralph" / "prompt.md").write_text(DEFAULT_PROMPT, encoding="utf-8")
    write_prd(tmp_path, [task_dict("T-1", priority=1), task_dict("T-2", priority=2)])
    return tmp_path


@pytest.fixture
def make_config():
    """Build a Config rooted at a project, with no cool-down by default."""

    def _make(root: Path, **overrides: Any) -> Config:
        overrides.setdefault("cooldown", 0)
        return Config(root=root, work_dir="ralph", agent="command", **overrides)

    return _make


@pytest.fixture
def fake_agent_argv() -> list[str]:
    """argv for the stand-in agent script (the prompt is appended by the engine)."""
    return [sys.executable, str(FAKE_AGENT)]


@pytest.fixture
def fake_agent_cmd(fake_agent_argv: list[str]) -> str:
    """The stand-in agent as a single ``--agent-cmd`` string."""
    return shlex.join(fake_agent_argv)
