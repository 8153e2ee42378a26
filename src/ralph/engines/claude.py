"""Claude Code agent adapter."""

from __future__ import annotations

import shutil

from ralph.engines.base import EngineBase


class ClaudeEngine(EngineBase):
    name = "claude"
    install_hint = "Install with: npm install -g @anthropic-ai/claude-code"

    def build_cmd(self, prompt: str) -> list[str]:
        # Use resolved path so subprocess gets an absolute path; on some platforms
        # (e.g. Windows with pipx) the child process resolves PATH differently.
        claude = shutil.which("claude") or "claude"
        return [
            claude,
            "--dangerously-skip-permissions",
            "-p",
            prompt,
        ]

    def check_available(self) -> str | None:
        if not shutil.which("claude"):
            return "Claude Code CLI not found"
        return None
