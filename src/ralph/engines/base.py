"""Base class for agent adapters: launch one agent run and tee its output."""

from __future__ import annotations

import codecs
import os
import shutil
import signal
import subprocess
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from ralph import log
from ralph.config import is_windows

_CHUNK_SIZE = 4096
_POLL_INTERVAL = 0.2
_TERMINATE_GRACE = 3.0
_PUMP_JOIN_TIMEOUT = 2.0


@dataclass
class ExecutionResult:
    """Outcome of a single agent process."""

    exit_code: int = 0
    output: str = ""
    timed_out: bool = False
    duration_ms: int = 0
    error: str = ""


class Tee:
    """Forward each chunk to *sink* right away and keep a copy in *buffer*.

    Several tees may share one buffer; *lock* serialises their appends so
    chunks land in arrival order.
    """

    def __init__(self, sink: IO[str], buffer: bytearray, lock: threading.Lock) -> None:
        self._sink = sink
        self._buffer = buffer
        self._lock = lock
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write(self, chunk: bytes) -> None:
        with self._lock:
            self._buffer.extend(chunk)

        raw = getattr(self._sink, "buffer", None)
        if raw is not None:
            self._sink.flush()
            raw.write(chunk)
            raw.flush()
        else:
            self._sink.write(self._decoder.decode(chunk))
            self._sink.flush()


def _pump(stream: IO[bytes], tee: Tee) -> None:
    """Copy *stream* into *tee* until EOF."""
    try:
        while True:
            chunk = stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            tee.write(chunk)
    except (OSError, ValueError) as e:
        log.debug(f"Output pump stopped: {e}")
    finally:
        stream.close()


class EngineBase(ABC):
    """Abstract agent adapter.  Subclasses implement ``build_cmd``."""

    name: str = "base"
    install_hint: str = ""

    @abstractmethod
    def build_cmd(self, prompt: str) -> list[str]:
        """Return the CLI command list for the given prompt."""
        ...

    def check_available(self) -> str | None:
        """Return an error message if the agent CLI is not available, else None."""
        cmd_name = self.build_cmd("test")[0]
        if not shutil.which(cmd_name):
            return f"{cmd_name} not found in PATH"
        return None

    def run(
        self,
        prompt: str,
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
        kill_on_interrupt: bool = True,
    ) -> ExecutionResult:
        """Run the agent once, streaming its output live, and wait for it to exit.

        stdin is inherited so the operator can still answer the agent.
        stdout and stderr go through a :class:`Tee` each; both feed the same
        capture buffer. On timeout the process is terminated and the result
        is flagged ``timed_out``. ``KeyboardInterrupt`` terminates the agent
        (when *kill_on_interrupt*) and propagates.
        """
        cmd = self.build_cmd(prompt)
        log.debug(f"Launching {cmd[0]} in {cwd or Path.cwd()}")
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                cwd=cwd,
                **self._isolation_kwargs(kill_on_interrupt),
            )
        except OSError as e:
            return ExecutionResult(
                exit_code=-1,
                error=f"{cmd[0]} could not be started: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        captured = bytearray()
        lock = threading.Lock()
        pumps = [
            threading.Thread(
                target=_pump,
                args=(proc.stdout, Tee(sys.stdout, captured, lock)),
                daemon=True,
            ),
            threading.Thread(
                target=_pump,
                args=(proc.stderr, Tee(sys.stderr, captured, lock)),
                daemon=True,
            ),
        ]
        for t in pumps:
            t.start()

        timed_out = False
        try:
            self._wait_with_interrupts(proc, timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            log.warn(f"Agent exceeded the {timeout:g}s iteration timeout; terminating it")
            self._terminate_process(proc, group=kill_on_interrupt)
        except KeyboardInterrupt:
            if kill_on_interrupt:
                self._terminate_process(proc, group=True)
            raise

        for t in pumps:
            t.join(timeout=_PUMP_JOIN_TIMEOUT)

        with lock:
            data = bytes(captured)

        result = ExecutionResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            output=data.decode("utf-8", errors="replace"),
            timed_out=timed_out,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        if timed_out:
            result.error = "timeout"
        elif result.exit_code != 0:
            result.error = f"exit code {result.exit_code}"
        return result

    @staticmethod
    def _wait_with_interrupts(
        proc: subprocess.Popen[bytes],
        *,
        timeout: float | None,
    ) -> None:
        """Wait for *proc* while remaining responsive to KeyboardInterrupt."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            wait_for = _POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise subprocess.TimeoutExpired(proc.args, timeout)
                wait_for = min(wait_for, remaining)
            try:
                proc.wait(timeout=wait_for)
                return
            except subprocess.TimeoutExpired:
                continue

    @staticmethod
    def _isolation_kwargs(own_group: bool) -> dict[str, object]:
        """Popen kwargs that put the agent in its own process group."""
        if not own_group:
            return {}
        if is_windows():
            return {"creationflags": int(getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0))}
        return {"start_new_session": True}

    @staticmethod
    def _terminate_process(proc: subprocess.Popen[bytes], *, group: bool) -> None:
        """Terminate *proc* (and its process group), killing it if it lingers."""
        if proc.poll() is not None:
            return

        EngineBase._send(proc, signal.SIGTERM, group=group)
        try:
            proc.wait(timeout=_TERMINATE_GRACE)
            return
        except subprocess.TimeoutExpired:
            log.debug(f"Agent {proc.pid} ignored SIGTERM; killing")

        EngineBase._send(proc, getattr(signal, "SIGKILL", signal.SIGTERM), group=group)
        try:
            proc.wait(timeout=_TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            log.warn(f"Agent process {proc.pid} did not exit after kill")

    @staticmethod
    def _send(proc: subprocess.Popen[bytes], sig: int, *, group: bool) -> None:
        try:
            if group and not is_windows():
                os.killpg(proc.pid, sig)
            elif sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            # Already gone.
            pass
