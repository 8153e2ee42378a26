"""Engine registry — get the right adapter by name."""

from __future__ import annotations

from ralph.engines.base import EngineBase
from ralph.engines.claude import ClaudeEngine
from ralph.engines.codex import CodexEngine
from ralph.engines.command import CommandEngine


def get_engine(name: str, *, command: list[str] | None = None) -> EngineBase:
    """Return an agent adapter for *name*."""
    match name:
        case "claude":
            return ClaudeEngine()
        case "codex":
            return CodexEngine()
        case "command":
            return CommandEngine(command)
        case _:
            raise ValueError(f"Unknown agent: {name}")


ENGINE_NAMES = ("claude", "codex", "command")
