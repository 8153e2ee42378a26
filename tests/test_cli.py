"""CLI tests: flags, exit codes, and the run/status commands."""

from __future__ import annotations

import click
import pytest
from click.testing import CliRunner

from ralph.cli import _resolve_agent, main
from ralph.config import EXIT_FAILURE, EXIT_MAX_ITERATIONS, EXIT_SUCCESS

from conftest import task_dict, write_prd


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    return CliRunner()


@pytest.fixture
def in_project(ralph_project, monkeypatch):
    monkeypatch.chdir(ralph_project)
    monkeypatch.delenv("RALPH_DIR", raising=False)
    monkeypatch.delenv("RALPH_AGENT", raising=False)
    return ralph_project


class TestCliHelpAndVersion:
    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "RALPH" in r.output
        assert "run" in r.output
        assert "status" in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0

    def test_help_documents_exit_codes(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert "final budgeted" in r.output
        assert "tasks still pending" in r.output

    def test_verbose_flag_switches_debug_logging(self, cli_runner, in_project, monkeypatch):
        from ralph import log as rlog

        monkeypatch.setattr(rlog, "_verbose", False)
        r = cli_runner.invoke(main, ["-v", "status"])
        assert r.exit_code == 0
        assert rlog._verbose is True

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert "ralph" in r.output.lower()

    def test_run_help_lists_options(self, cli_runner):
        r = cli_runner.invoke(main, ["run", "--help"])
        assert r.exit_code == 0
        for flag in ("--max", "--agent", "--agent-cmd", "--cooldown", "--timeout", "--halt-on-stuck"):
            assert flag in r.output


class TestResolveAgent:
    def test_defaults_to_config_choice(self):
        assert _resolve_agent(None, "") == ("", [])

    def test_named_agent(self):
        assert _resolve_agent("codex", "") == ("codex", [])

    def test_agent_cmd_implies_command_engine(self):
        assert _resolve_agent(None, "./agent --fast 'two words'") == (
            "command",
            ["./agent", "--fast", "two words"],
        )

    def test_agent_cmd_conflicts_with_named_agent(self):
        with pytest.raises(click.UsageError):
            _resolve_agent("claude", "./agent")

    def test_command_engine_needs_a_command(self):
        with pytest.raises(click.UsageError):
            _resolve_agent("command", "")

    def test_unbalanced_quotes_are_rejected(self):
        with pytest.raises(click.BadParameter):
            _resolve_agent(None, "'oops")


class TestRunCommand:
    def test_missing_work_dir_exits_with_failure(self, cli_runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        r = cli_runner.invoke(main, ["run", "--agent-cmd", "true"])
        assert r.exit_code == EXIT_FAILURE

    def test_invalid_max_is_rejected(self, cli_runner, in_project):
        r = cli_runner.invoke(main, ["run", "--max", "0"])
        assert r.exit_code == 2
        assert "--max" in r.output

    def test_already_complete_exits_zero(self, cli_runner, in_project, fake_agent_cmd):
        write_prd(in_project, [task_dict("T-1", passes=True)])
        r = cli_runner.invoke(main, ["run", "--agent-cmd", fake_agent_cmd, "--cooldown", "0"])
        assert r.exit_code == EXIT_SUCCESS
        assert "All tasks complete" in r.output

    def test_full_run_with_fake_agent(self, cli_runner, in_project, fake_agent_cmd, monkeypatch):
        monkeypatch.setenv("FAKE_AGENT_MODE", "flip")
        r = cli_runner.invoke(main, ["run", "--agent-cmd", fake_agent_cmd, "--cooldown", "0"])
        assert r.exit_code == EXIT_SUCCESS
        assert "implemented T-1" in r.output
        assert "implemented T-2" in r.output

    def test_budget_exhausted_exit_code(self, cli_runner, in_project, fake_agent_cmd, monkeypatch):
        monkeypatch.setenv("FAKE_AGENT_MODE", "idle")
        r = cli_runner.invoke(
            main, ["run", "-m", "2", "--agent-cmd", fake_agent_cmd, "--cooldown", "0"]
        )
        assert r.exit_code == EXIT_MAX_ITERATIONS
        assert "Iteration 2/2" in r.output

    def test_malformed_document_exit_code(self, cli_runner, in_project, fake_agent_cmd):
        (in_project / "ralph" / "prd.json").write_text("{", encoding="utf-8")
        r = cli_runner.invoke(main, ["run", "--agent-cmd", fake_agent_cmd])
        assert r.exit_code == EXIT_FAILURE
        assert r.exception is None or isinstance(r.exception, SystemExit)

    def test_custom_work_dir(self, cli_runner, in_project, fake_agent_cmd):
        (in_project / "ralph").rename(in_project / "agent-loop")
        (in_project / "agent-loop" / "prd.json").write_text('{"tasks": []}', encoding="utf-8")
        r = cli_runner.invoke(main, ["run", "--dir", "agent-loop", "--agent-cmd", fake_agent_cmd])
        assert r.exit_code == EXIT_SUCCESS

    def test_env_selects_work_dir(self, cli_runner, in_project, fake_agent_cmd, monkeypatch):
        monkeypatch.setenv("RALPH_DIR", "missing-dir")
        r = cli_runner.invoke(main, ["run", "--agent-cmd", fake_agent_cmd])
        assert r.exit_code == EXIT_FAILURE


class TestStatusCommand:
    def test_status_shows_progress_and_pending(self, cli_runner, in_project):
        write_prd(
            in_project,
            [
                task_dict("T-1", passes=True),
                task_dict("T-2", attempts=2),
                task_dict("T-3"),
            ],
            stats={"iterationsRun": 4, "startedAt": "2026-10-01T10:00:00Z"},
            config={"maxIterations": 20, "qualityGates": {"test": "pytest -q"}},
        )
        (in_project / "ralph" / "progress.txt").write_text(
            "# log\n## Iteration 1 - T-1\n## Iteration 2 - T-2\n", encoding="utf-8"
        )
        r = cli_runner.invoke(main, ["status"])

        assert r.exit_code == 0
        assert "1/3 (33%)" in r.output
        assert "T-2: Task T-2" in r.output
        assert "(2 attempts)" in r.output
        assert "Max iterations: 20" in r.output
        assert "Test: pytest -q" in r.output
        assert "Iteration 2 - T-2" in r.output

    def test_status_without_work_dir(self, cli_runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("RALPH_DIR", raising=False)
        r = cli_runner.invoke(main, ["status"])
        assert r.exit_code == 0
        assert "not initialized" in r.output
