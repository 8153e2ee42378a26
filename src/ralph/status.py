"""Read-only progress report for ``ralph status``."""

from __future__ import annotations

from rich.markup import escape

from ralph import log
from ralph.config import Config
from ralph.errors import RalphError
from ralph.io_utils import read_text
from ralph.tasks.model import TaskList
from ralph.tasks.store import TaskStore

BAR_WIDTH = 40
MAX_PENDING_SHOWN = 5
RECENT_ITERATIONS = 3

_QUALITY_GATES = ("typecheck", "test", "lint", "build")


def progress_bar(done: int, total: int, width: int = BAR_WIDTH) -> str:
    """Return ``[████░░░░] done/total (pct%)``."""
    pct = round(done / total * 100) if total else 0
    filled = round(done / total * width) if total else 0
    return f"[{'█' * filled}{'░' * (width - filled)}] {done}/{total} ({pct}%)"


def recent_iterations(progress_text: str, limit: int = RECENT_ITERATIONS) -> list[str]:
    """Return the last *limit* ``## Iteration`` headings without the ``## ``."""
    lines = [line for line in progress_text.splitlines() if line.startswith("## Iteration")]
    return [line.removeprefix("## ") for line in lines[-limit:]]


def show_status(cfg: Config) -> bool:
    """Print the status report. Returns ``False`` when there is nothing to show."""
    log.banner("RALPH STATUS")

    if not cfg.work_path.is_dir():
        log.warn("Ralph not initialized")
        log.console.print(f"  Create {cfg.work_dir}/ with {cfg.prd_file} and {cfg.prompt_file} to get started")
        return False

    store = TaskStore(cfg.prd_path)
    if not store.exists():
        log.warn(f"No {cfg.prd_file} found")
        log.console.print(
            f"  Copy {cfg.prd_file}.example to {cfg.prd_file} and configure your tasks"
        )
        return False

    try:
        task_list = store.load()
    except RalphError as e:
        log.error(escape(e.message))
        if e.hint:
            log.hint(escape(e.hint))
        return False

    _show_overview(task_list)
    _show_pending(task_list)

    if cfg.progress_path.is_file():
        recent = recent_iterations(read_text(cfg.progress_path, errors="replace"))
        if recent:
            log.console.print()
            log.console.print("[blue]Recent Iterations:[/blue]")
            for line in recent:
                log.console.print(f"  {line}", markup=False)

    log.console.print()
    return True


def _show_overview(task_list: TaskList) -> None:
    total = len(task_list.tasks)
    done = len(task_list.completed())
    log.console.print(f"[blue]Project:[/blue]     {escape(task_list.project) or 'Unknown'}")
    log.console.print(f"[blue]Branch:[/blue]      {escape(task_list.branch_name) or 'N/A'}")
    log.console.print()
    log.console.print(f"[blue]Progress:[/blue]    {progress_bar(done, total)}")
    log.console.print()

    stats = task_list.stats
    if stats:
        log.console.print(f"[blue]Iterations:[/blue]  {stats.get('iterationsRun') or 0}")
        if stats.get("startedAt"):
            log.console.print(f"[blue]Started:[/blue]     {stats['startedAt']}")
        if stats.get("completedAt"):
            log.console.print(f"[blue]Completed:[/blue]   {stats['completedAt']}")

    if task_list.has_config:
        opts = task_list.options
        log.console.print()
        log.console.print("[blue]Configuration:[/blue]")
        log.console.print(f"  Max iterations: {opts.max_iterations}")
        log.console.print(f"  Stuck threshold: {opts.stuck_threshold}")
        gates = opts.extra.get("qualityGates")
        if isinstance(gates, dict):
            for gate in _QUALITY_GATES:
                if gates.get(gate):
                    log.console.print(f"  {gate.capitalize()}: {gates[gate]}", markup=False)


def _show_pending(task_list: TaskList) -> None:
    pending = task_list.pending()
    if not pending:
        return

    log.console.print()
    log.console.print("[blue]Pending Tasks:[/blue]")
    for task in pending[:MAX_PENDING_SHOWN]:
        attempts = f" [yellow]({task.attempts} attempts)[/yellow]" if task.attempts > 0 else ""
        log.console.print(f"  {escape(task.id)}: {escape(task.title)}{attempts}")
    if len(pending) > MAX_PENDING_SHOWN:
        log.console.print(f"  ... and {len(pending) - MAX_PENDING_SHOWN} more")
