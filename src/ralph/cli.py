"""RALPH CLI — run a coding agent until the task list passes.

Installed as ``ralph`` console_script via pipx / pip.
"""

from __future__ import annotations

import shlex
from pathlib import Path

import click

from ralph import __version__
from ralph.config import DEFAULT_COOLDOWN, EXIT_FAILURE, EXIT_SUCCESS, Config
from ralph.engines.registry import ENGINE_NAMES


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


def _resolve_agent(agent: str | None, agent_cmd: str) -> tuple[str, list[str]]:
    """Work out the engine name and command argv from ``--agent``/``--agent-cmd``."""
    try:
        argv = shlex.split(agent_cmd)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--agent-cmd") from e

    if argv and agent not in (None, "command"):
        raise click.UsageError("--agent-cmd can only be combined with --agent command.")
    if argv:
        return "command", argv
    if agent == "command":
        raise click.UsageError("--agent command requires --agent-cmd.")
    return agent or "", []


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="ralph")
def main(verbose: bool) -> None:
    """RALPH — Autonomous AI agent loop.

    Runs a coding agent once per iteration against ralph/prompt.md until
    every task in ralph/prd.json passes, the agent prints the completion
    marker, or the iteration budget is spent.

    \b
    EXIT CODES:
      0  all tasks complete (also when the final budgeted
         iteration finishes the last task)
      1  missing prerequisite or unreadable task list
      2  max iterations reached with tasks still pending
         (run again to continue)
      3  agent stuck (only with --halt-on-stuck)
    """
    from ralph import log as rlog

    rlog.set_verbose(verbose)


@main.command()
@click.option("-m", "--max", "max_iterations", type=click.IntRange(min=1), default=None,
              help="Maximum iterations (default: config.maxIterations or 50)")
@click.option("--agent", type=click.Choice(ENGINE_NAMES), default=None,
              help="Agent to run (default: claude, or $RALPH_AGENT)")
@click.option("--agent-cmd", default="", help="Custom agent command; the prompt is appended as the last argument")
@click.option("--dir", "work_dir", default="", help="Working directory name (default: ralph, or $RALPH_DIR)")
@click.option("--cooldown", type=click.FloatRange(min=0), default=DEFAULT_COOLDOWN, show_default=True,
              help="Seconds to pause between iterations")
@click.option("--timeout", "iteration_timeout", type=click.FloatRange(min=0), default=0,
              help="Per-iteration timeout in seconds (0=unlimited)")
@click.option("--no-kill-on-interrupt", is_flag=True,
              help="Leave the running agent alive when ralph is interrupted")
@click.option("--halt-on-stuck", is_flag=True,
              help="Stop once the agent reports the same task stuck config.stuckThreshold times")
@click.pass_context
def run(
    ctx: click.Context,
    max_iterations: int | None,
    agent: str | None,
    agent_cmd: str,
    work_dir: str,
    cooldown: float,
    iteration_timeout: float,
    no_kill_on_interrupt: bool,
    halt_on_stuck: bool,
) -> None:
    """Run the autonomous loop.

    \b
    EXAMPLES:
      ralph run                                # Up to 50 iterations with Claude Code
      ralph run -m 10                          # Stop after 10 iterations
      ralph run --agent codex --timeout 1800   # Codex, 30 minutes per iteration
      ralph run --agent-cmd "./my-agent --fast"
    """
    from ralph import log as rlog
    from ralph.engines.registry import get_engine
    from ralph.loop import LoopController

    engine_name, argv = _resolve_agent(agent, agent_cmd)

    cfg = Config(
        root=Path.cwd(),
        work_dir=work_dir,
        agent=engine_name,
        agent_cmd=argv,
        max_iterations=max_iterations,
        cooldown=cooldown,
        iteration_timeout=iteration_timeout or None,
        kill_on_interrupt=not no_kill_on_interrupt,
        halt_on_stuck=halt_on_stuck,
    )

    try:
        engine = get_engine(cfg.agent, command=cfg.agent_cmd)
    except ValueError as e:
        rlog.error(str(e))
        ctx.exit(EXIT_FAILURE)

    rlog.banner("RALPH EXECUTION")
    result = LoopController(cfg, engine).run()
    ctx.exit(result.exit_code)


@main.command()
@click.option("--dir", "work_dir", default="", help="Working directory name (default: ralph, or $RALPH_DIR)")
@click.pass_context
def status(ctx: click.Context, work_dir: str) -> None:
    """Show current progress."""
    from ralph.status import show_status

    show_status(Config(root=Path.cwd(), work_dir=work_dir))
    ctx.exit(EXIT_SUCCESS)
