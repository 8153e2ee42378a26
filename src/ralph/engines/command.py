"""Adapter for an arbitrary agent command; the prompt is the last argument."""

from __future__ import annotations

import shutil

from ralph.engines.base import EngineBase


class CommandEngine(EngineBase):
    name = "command"
    install_hint = "Pass the agent executable with --agent-cmd"

    def __init__(self, argv: list[str] | None = None) -> None:
        self.argv = list(argv or [])

    def build_cmd(self, prompt: str) -> list[str]:
        return [*self.argv, prompt]

    def check_available(self) -> str | None:
        if not self.argv:
            return "No agent command configured"
        if not shutil.which(self.argv[0]):
            return f"{self.argv[0]} not found in PATH"
        return None
