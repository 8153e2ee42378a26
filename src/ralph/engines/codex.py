"""Codex CLI agent adapter."""

from __future__ import annotations

import shutil

from ralph.engines.base import EngineBase


class CodexEngine(EngineBase):
    name = "codex"
    install_hint = "Install with: npm install -g @openai/codex"

    def build_cmd(self, prompt: str) -> list[str]:
        codex = shutil.which("codex") or "codex"
        return [
            codex,
            "--dangerously-bypass-approvals-and-sandbox",
            "exec",
            prompt,
        ]

    def check_available(self) -> str | None:
        if not shutil.which("codex"):
            return "Codex CLI not found"
        return None
