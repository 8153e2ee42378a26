"""Classify agent output against the completion / stuck marker protocol.

The agent ends an iteration by printing one of:

- ``<complete>ALL_STORIES_PASSED</complete>`` when every task passes.
- ``<stuck>TASK_ID: reason</stuck>`` when it cannot make progress on a task.

Matching is a case-sensitive substring search over the whole captured
output. The completion marker wins over a stuck marker, and only the first
stuck marker is reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

COMPLETE_MARKER = "<complete>ALL_STORIES_PASSED</complete>"

_STUCK_RE = re.compile(r"<stuck>(.*?)</stuck>", re.DOTALL)


class SignalKind(str, Enum):
    COMPLETED = "completed"
    STUCK = "stuck"
    NONE = "none"


@dataclass(frozen=True)
class Signal:
    kind: SignalKind
    task_id: str = ""
    reason: str = ""


NO_SIGNAL = Signal(SignalKind.NONE)


def classify(output: str) -> Signal:
    """Return the signal carried by *output*."""
    if not output:
        return NO_SIGNAL
    if COMPLETE_MARKER in output:
        return Signal(SignalKind.COMPLETED)

    match = _STUCK_RE.search(output)
    if match:
        task_id, reason = _split_stuck_body(match.group(1))
        return Signal(SignalKind.STUCK, task_id=task_id, reason=reason)
    return NO_SIGNAL


def _split_stuck_body(body: str) -> tuple[str, str]:
    head, sep, tail = body.partition(":")
    if not sep:
        return "", body.strip()
    return head.strip(), tail.strip()
