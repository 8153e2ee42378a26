"""Loop controller: run the agent until the task list passes or the budget runs out.

States::

    CHECKING_PREREQUISITES -> SELECTING -> RUNNING -> PAUSED -> SELECTING ...

``SELECTING`` re-reads the task list every time it is entered, so the
document the agent wrote during iteration *k* decides iteration *k + 1*.
Terminal states are COMPLETED, MAX_ITERATIONS, STUCK, FAILED and
INTERRUPTED; each maps to a process exit status.

After the last budgeted iteration there is no pause, but ``SELECTING`` still
reads the document once more. If the agent finished every task in that run
the outcome is COMPLETED (exit 0), otherwise MAX_ITERATIONS (exit 2).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from rich.markup import escape

from ralph import log
from ralph.config import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_MAX_ITERATIONS,
    EXIT_STUCK,
    EXIT_SUCCESS,
    Config,
)
from ralph.engines.base import EngineBase, ExecutionResult
from ralph.errors import PrerequisiteMissing, RalphError
from ralph.io_utils import read_text
from ralph.signals import NO_SIGNAL, Signal, SignalKind, classify
from ralph.tasks.model import Task, TaskList
from ralph.tasks.select import select_next
from ralph.tasks.store import TaskStore


class LoopState(str, Enum):
    CHECKING_PREREQUISITES = "checking_prerequisites"
    SELECTING = "selecting"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    STUCK = "stuck"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


TERMINAL_STATES = frozenset(
    {
        LoopState.COMPLETED,
        LoopState.MAX_ITERATIONS,
        LoopState.STUCK,
        LoopState.FAILED,
        LoopState.INTERRUPTED,
    }
)

_EXIT_CODES: dict[LoopState, int] = {
    LoopState.COMPLETED: EXIT_SUCCESS,
    LoopState.MAX_ITERATIONS: EXIT_MAX_ITERATIONS,
    LoopState.STUCK: EXIT_STUCK,
    LoopState.FAILED: EXIT_FAILURE,
    LoopState.INTERRUPTED: EXIT_INTERRUPTED,
}


@dataclass
class IterationRecord:
    """What happened in one agent run."""

    number: int
    task_id: str
    exit_code: int
    signal: Signal
    timed_out: bool = False
    duration_ms: int = 0


@dataclass
class LoopResult:
    state: LoopState
    iterations: int
    records: list[IterationRecord] = field(default_factory=list)
    error: RalphError | None = None

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.state]


class LoopController:
    """Drives one agent process per iteration until a terminal state is reached."""

    def __init__(
        self,
        cfg: Config,
        engine: EngineBase,
        *,
        store: TaskStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = cfg
        self.engine = engine
        self.store = store or TaskStore(cfg.prd_path)
        self._sleep = sleep

        self.state = LoopState.CHECKING_PREREQUISITES
        self.iteration = 0
        self.max_iterations = cfg.max_iterations or 0
        self.stuck_threshold = 0
        self.current: Task | None = None
        self.records: list[IterationRecord] = []
        self.stuck_counts: dict[str, int] = {}
        self.error: RalphError | None = None
        self._summary_shown = False

    def run(self) -> LoopResult:
        """Run the state machine to completion and return the terminal result."""
        handlers: dict[LoopState, Callable[[], LoopState]] = {
            LoopState.CHECKING_PREREQUISITES: self._check_prerequisites,
            LoopState.SELECTING: self._select,
            LoopState.RUNNING: self._run_iteration,
            LoopState.PAUSED: self._pause,
        }

        try:
            while self.state not in TERMINAL_STATES:
                try:
                    next_state = handlers[self.state]()
                except RalphError as e:
                    self.error = e
                    next_state = LoopState.FAILED
                log.debug(f"{self.state.value} -> {next_state.value}")
                self.state = next_state
        except KeyboardInterrupt:
            self.state = LoopState.INTERRUPTED

        self._report()
        return LoopResult(
            state=self.state,
            iterations=self.iteration,
            records=list(self.records),
            error=self.error,
        )

    # ── states ───────────────────────────────────────────────────

    def _check_prerequisites(self) -> LoopState:
        cfg = self.cfg
        if not cfg.work_path.is_dir():
            raise PrerequisiteMissing(
                f"{cfg.work_dir}/ directory not found",
                hint=f"Create {cfg.work_dir}/ with {cfg.prd_file} and {cfg.prompt_file} to get started",
            )
        if not cfg.prd_path.is_file():
            raise PrerequisiteMissing(
                f"{cfg.work_dir}/{cfg.prd_file} not found",
                hint=f"Copy {cfg.prd_file}.example to {cfg.prd_file} and configure your tasks",
            )
        if not cfg.prompt_path.is_file():
            raise PrerequisiteMissing(
                f"{cfg.work_dir}/{cfg.prompt_file} not found",
                hint=f"Write the agent instructions to {cfg.work_dir}/{cfg.prompt_file}",
            )

        err = self.engine.check_available()
        if err:
            raise PrerequisiteMissing(err, hint=self.engine.install_hint)
        return LoopState.SELECTING

    def _select(self) -> LoopState:
        task_list = self.store.load()
        if not self._summary_shown:
            self._resolve_budget(task_list)
            self._show_summary(task_list)
            self._summary_shown = True

        task = select_next(task_list.tasks)
        if task is None:
            return LoopState.COMPLETED
        if self.iteration >= self.max_iterations:
            return LoopState.MAX_ITERATIONS

        self.current = task
        return LoopState.RUNNING

    def _run_iteration(self) -> LoopState:
        task = self.current
        if task is None:
            return LoopState.SELECTING
        prompt = self._read_prompt()
        self.iteration += 1
        self._show_iteration_header(task)

        result = self.engine.run(
            prompt,
            cwd=self.cfg.root,
            timeout=self.cfg.iteration_timeout,
            kill_on_interrupt=self.cfg.kill_on_interrupt,
        )
        signal = self._classify(result)
        self.records.append(
            IterationRecord(
                number=self.iteration,
                task_id=task.id,
                exit_code=result.exit_code,
                signal=signal,
                timed_out=result.timed_out,
                duration_ms=result.duration_ms,
            )
        )

        if signal.kind == SignalKind.COMPLETED:
            return LoopState.COMPLETED
        if signal.kind == SignalKind.STUCK and self._record_stuck(signal, task):
            return LoopState.STUCK

        if self.iteration >= self.max_iterations:
            # No pause after the last run; SELECTING still gets one look at the document.
            return LoopState.SELECTING
        return LoopState.PAUSED

    def _pause(self) -> LoopState:
        if self.cfg.cooldown > 0:
            log.debug(f"Cooling down for {self.cfg.cooldown:g}s")
            self._sleep(self.cfg.cooldown)
        return LoopState.SELECTING

    # ── helpers ──────────────────────────────────────────────────

    def _resolve_budget(self, task_list: TaskList) -> None:
        if not self.max_iterations:
            self.max_iterations = task_list.options.max_iterations
        self.stuck_threshold = task_list.options.stuck_threshold

    def _read_prompt(self) -> str:
        cfg = self.cfg
        try:
            return read_text(cfg.prompt_path)
        except FileNotFoundError:
            raise PrerequisiteMissing(
                f"{cfg.work_dir}/{cfg.prompt_file} disappeared during the run",
                hint=f"Restore {cfg.work_dir}/{cfg.prompt_file} and run again",
            ) from None
        except UnicodeDecodeError as e:
            raise PrerequisiteMissing(
                f"{cfg.work_dir}/{cfg.prompt_file} is not UTF-8 text ({e.reason})",
                hint=f"Re-save {cfg.work_dir}/{cfg.prompt_file} as UTF-8",
            ) from e
        except OSError as e:
            raise PrerequisiteMissing(
                f"Could not read {cfg.work_dir}/{cfg.prompt_file}: {e.strerror or e}",
                hint=f"Check that {cfg.work_dir}/{cfg.prompt_file} is a readable file",
            ) from e

    def _classify(self, result: ExecutionResult) -> Signal:
        if result.error and not result.timed_out:
            # The agent keeps its own books in the task list; a failed exit is not fatal.
            log.warn(f"Agent finished with {escape(result.error)}")
        if result.timed_out:
            return NO_SIGNAL
        return classify(result.output)

    def _record_stuck(self, signal: Signal, task: Task) -> bool:
        """Report a stuck signal. Returns ``True`` when the loop should halt."""
        task_id = signal.task_id or task.id
        reason = signal.reason or "no reason given"
        log.warn(f"Agent reported stuck on {escape(task_id)}: {escape(reason)}")

        if not self.cfg.halt_on_stuck:
            return False
        self.stuck_counts[task_id] = self.stuck_counts.get(task_id, 0) + 1
        count = self.stuck_counts[task_id]
        log.debug(f"{escape(task_id)} stuck {count}/{self.stuck_threshold}")
        return count >= self.stuck_threshold

    def _show_summary(self, task_list: TaskList) -> None:
        done = len(task_list.completed())
        total = len(task_list.tasks)
        log.console.print(f"[blue]→ Project:[/blue] {escape(task_list.project) or 'Unknown'}")
        log.console.print(f"[blue]→ Tasks:[/blue] {done}/{total} complete")
        log.console.print(f"[blue]→ Agent:[/blue] {self.engine.name}")
        log.console.print(f"[blue]→ Max iterations:[/blue] {self.max_iterations}")
        log.console.print()
        if task_list.pending():
            log.info("Starting autonomous loop…")
            log.console.print("  [dim]Press Ctrl+C to stop[/dim]")
            log.console.print()

    def _show_iteration_header(self, task: Task) -> None:
        log.banner(f"Iteration {self.iteration}/{self.max_iterations}: {escape(task.id)}")
        if task.title:
            log.console.print(f"  {task.title}", markup=False)
            log.console.print()

    def _report(self) -> None:
        match self.state:
            case LoopState.COMPLETED:
                if self.iteration == 0:
                    log.success("All tasks complete!")
                else:
                    log.banner("RALPH COMPLETE", style="green")
            case LoopState.MAX_ITERATIONS:
                log.banner("MAX ITERATIONS REACHED", style="yellow")
                log.console.print('Run "ralph run" again to continue')
            case LoopState.STUCK:
                stuck = ", ".join(
                    escape(tid) for tid, n in self.stuck_counts.items() if n >= self.stuck_threshold
                )
                log.banner("AGENT STUCK", style="yellow")
                log.console.print(f"Stopped after repeated stuck reports for: {stuck}")
            case LoopState.INTERRUPTED:
                log.warn(f"Interrupted after {self.iteration} iteration(s)")
            case LoopState.FAILED:
                if self.error is not None:
                    log.error(escape(self.error.message))
                    if self.error.hint:
                        log.hint(escape(self.error.hint))
