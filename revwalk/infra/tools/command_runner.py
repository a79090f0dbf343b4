"""Standardized subprocess execution for revwalk.

Every external process (git, setup steps, the test command) goes through
CommandRunner so that output capture, timeouts, and process-group handling
behave the same everywhere.

Children run in their own session by default (POSIX). A Ctrl-C typed at the
terminal is therefore delivered only to revwalk, which records it as a
cancellation request, and never to a running test process. A second Ctrl-C
raises KeyboardInterrupt; the runner then terminates the child's process group
before re-raising.

On timeout the whole process group receives SIGTERM, then SIGKILL after a
grace period, and the result is reported with TIMEOUT_EXIT_CODE.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from revwalk.core.models import tail_text

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

# Exit code reported for timed-out commands (matches coreutils `timeout`)
TIMEOUT_EXIT_CODE = 124

# Seconds between SIGTERM and SIGKILL when terminating a timed-out command
DEFAULT_KILL_GRACE_SECONDS = 2.0


@dataclass
class CommandResult:
    """Result of a command execution."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def stdout_tail(self, max_chars: int = 800, max_lines: int = 20) -> str:
        return tail_text(self.stdout, max_chars=max_chars, max_lines=max_lines)

    def stderr_tail(self, max_chars: int = 800, max_lines: int = 20) -> str:
        return tail_text(self.stderr, max_chars=max_chars, max_lines=max_lines)


class CommandRunner:
    """Runs commands with a default working directory and timeout.

    Args:
        cwd: Default working directory for commands.
        timeout_seconds: Default timeout. None means no limit.
        kill_grace_seconds: Delay between SIGTERM and SIGKILL on timeout.
    """

    def __init__(
        self,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        self.cwd = cwd
        self.timeout_seconds = timeout_seconds
        self.kill_grace_seconds = kill_grace_seconds

    def run(
        self,
        cmd: list[str],
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cwd: Path | None = None,
        use_process_group: bool | None = None,
    ) -> CommandResult:
        """Run a command, capturing stdout and stderr separately.

        Args:
            cmd: Command argv.
            env: Extra environment variables (merged over os.environ).
            timeout: Override the runner's default timeout.
            cwd: Override the runner's working directory.
            use_process_group: Start the command in its own session so
                timeouts kill its children too. Defaults to True on POSIX.

        Returns:
            CommandResult with execution details.

        Raises:
            OSError: If the executable cannot be started.
        """
        effective_timeout = timeout if timeout is not None else self.timeout_seconds
        new_session = _use_new_session(use_process_group)
        start = time.monotonic()
        logger.debug("run: %s (cwd=%s)", cmd, cwd or self.cwd)

        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd or self.cwd) if (cwd or self.cwd) else None,
            env=_merge_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=new_session,
        )
        try:
            stdout, stderr = proc.communicate(timeout=effective_timeout)
        except KeyboardInterrupt:
            self._terminate(proc, new_session)
            raise
        except subprocess.TimeoutExpired:
            self._terminate(proc, new_session)
            try:
                stdout, stderr = proc.communicate(timeout=self.kill_grace_seconds)
            except subprocess.TimeoutExpired:
                # A surviving grandchild still holds the pipes open
                stdout, stderr = "", ""
            logger.warning("Command timed out after %ss: %s", effective_timeout, cmd)
            return CommandResult(
                command=list(cmd),
                returncode=TIMEOUT_EXIT_CODE,
                stdout=stdout or "",
                stderr=stderr or "",
                duration_seconds=time.monotonic() - start,
                timed_out=True,
            )

        return CommandResult(
            command=list(cmd),
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=time.monotonic() - start,
        )

    def run_streaming(
        self,
        cmd: list[str],
        on_output: Callable[[str], None] | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cwd: Path | None = None,
        use_process_group: bool | None = None,
    ) -> CommandResult:
        """Run a command, forwarding each output line as it is produced.

        stderr is merged into stdout so lines arrive in the order the process
        wrote them; the combined text is returned in CommandResult.stdout.

        Raises:
            OSError: If the executable cannot be started.
        """
        effective_timeout = timeout if timeout is not None else self.timeout_seconds
        new_session = _use_new_session(use_process_group)
        start = time.monotonic()
        logger.debug("run_streaming: %s (cwd=%s)", cmd, cwd or self.cwd)

        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd or self.cwd) if (cwd or self.cwd) else None,
            env=_merge_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
            start_new_session=new_session,
        )

        timed_out = threading.Event()
        timer: threading.Timer | None = None
        if effective_timeout is not None:

            def _on_timeout() -> None:
                timed_out.set()
                self._terminate(proc, new_session)

            timer = threading.Timer(effective_timeout, _on_timeout)
            timer.daemon = True
            timer.start()

        lines: list[str] = []
        try:
            assert proc.stdout is not None
            for raw_line in proc.stdout:
                line = raw_line.rstrip("\n")
                lines.append(line)
                if on_output is not None:
                    on_output(line)
            proc.wait()
        except KeyboardInterrupt:
            # Escalated Ctrl-C: the child runs in its own session and would outlive us
            self._terminate(proc, new_session)
            raise
        finally:
            if timer is not None:
                timer.cancel()
            if proc.stdout is not None:
                proc.stdout.close()

        output = "\n".join(lines)
        if timed_out.is_set():
            logger.warning("Command timed out after %ss: %s", effective_timeout, cmd)
            return CommandResult(
                command=list(cmd),
                returncode=TIMEOUT_EXIT_CODE,
                stdout=output,
                duration_seconds=time.monotonic() - start,
                timed_out=True,
            )
        return CommandResult(
            command=list(cmd),
            returncode=proc.returncode,
            stdout=output,
            duration_seconds=time.monotonic() - start,
        )

    def _terminate(self, proc: subprocess.Popen[str], new_session: bool) -> None:
        """SIGTERM the process (group), then SIGKILL after the grace period."""
        if proc.poll() is not None and not new_session:
            return
        _send_signal(proc, signal.SIGTERM, new_session)
        try:
            proc.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.debug("Process %s ignored SIGTERM, sending SIGKILL", proc.pid)
        # Also reaps group members that outlived the leader
        _send_signal(proc, _kill_signal(), new_session)
        try:
            proc.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after SIGKILL", proc.pid)


def _use_new_session(use_process_group: bool | None) -> bool:
    if sys.platform == "win32":
        return False
    return True if use_process_group is None else use_process_group


def _merge_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    return {**os.environ, **env}


def _kill_signal() -> signal.Signals:
    return getattr(signal, "SIGKILL", signal.SIGTERM)


def _send_signal(
    proc: subprocess.Popen[str], sig: signal.Signals, new_session: bool
) -> None:
    try:
        if new_session:
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
    except (ProcessLookupError, PermissionError):
        # Already gone
        pass
