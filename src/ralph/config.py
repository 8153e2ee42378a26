"""Configuration defaults, env vars, and exit codes for RALPH."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_MAX_ITERATIONS = 50
DEFAULT_STUCK_THRESHOLD = 3
DEFAULT_COOLDOWN = 2.0

# Process exit statuses. Callers script "run again" on EXIT_MAX_ITERATIONS.
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_MAX_ITERATIONS = 2
EXIT_STUCK = 3
EXIT_INTERRUPTED = 130


@dataclass
class Config:
    """Runtime configuration — mirrors the flags of ``ralph run``."""

    # Layout
    root: Path = field(default_factory=Path.cwd)
    work_dir: str = ""
    prd_file: str = "prd.json"
    prompt_file: str = "prompt.md"
    progress_file: str = "progress.txt"

    # Agent
    agent: str = ""
    agent_cmd: list[str] = field(default_factory=list)

    # Loop
    max_iterations: int | None = None
    cooldown: float = DEFAULT_COOLDOWN
    iteration_timeout: float | None = None
    kill_on_interrupt: bool = True
    halt_on_stuck: bool = False

    def __post_init__(self) -> None:
        if not self.work_dir:
            self.work_dir = os.environ.get("RALPH_DIR") or "ralph"
        if not self.agent:
            self.agent = os.environ.get("RALPH_AGENT") or "claude"
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.cooldown < 0:
            raise ValueError("cooldown cannot be negative")
        if self.iteration_timeout is not None and self.iteration_timeout <= 0:
            self.iteration_timeout = None

    @property
    def work_path(self) -> Path:
        return self.root / self.work_dir

    @property
    def prd_path(self) -> Path:
        return self.work_path / self.prd_file

    @property
    def prompt_path(self) -> Path:
        return self.work_path / self.prompt_file

    @property
    def progress_path(self) -> Path:
        return self.work_path / self.progress_file


def is_windows() -> bool:
    return sys.platform == "win32"
