"""Error kinds that stop the loop before or between iterations."""

from __future__ import annotations

from pathlib import Path


class RalphError(Exception):
    """Base class for fatal controller errors.

    ``hint`` is an optional remediation line shown under the message.
    """

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class PrerequisiteMissing(RalphError):
    """Working area, task list, prompt, or agent executable is unavailable."""


class DocumentNotFound(RalphError):
    def __init__(self, path: Path) -> None:
        super().__init__(
            f"{path} not found",
            hint="Copy prd.json.example to prd.json and configure your tasks",
        )
        self.path = path


class DocumentParseError(RalphError):
    """The task-list document is not valid JSON or does not match the schema."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(
            f"Could not parse {path}: {detail}",
            hint="Fix the file by hand or restore it from version control",
        )
        self.path = path
        self.detail = detail
