"""RALPH — run a coding agent in a loop until the task list is done."""

__version__ = "1.0.0"
