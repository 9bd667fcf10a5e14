"""Blocking subprocess and pid utilities.

Every agent primitive is a short-lived child process whose exit status is
the whole answer, so commands run synchronously and return a ToolResult
rather than raising on non-zero exits.
"""

import logging
import os
import signal
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

GRACEFUL_TIMEOUT: float = 2.0
POLL_INTERVAL: float = 0.05

# Exit statuses synthesized when the child never produced one
EXIT_NOT_FOUND: int = 127
EXIT_NOT_EXECUTABLE: int = 126
EXIT_TIMEOUT: int = 124


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external command.

    Attributes:
        argv: The command that was run.
        returncode: Exit status (127 if the executable is missing, 126 if it
            cannot be executed, 124 on timeout).
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def run_tool(
    argv: Sequence[str],
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> ToolResult:
    """Run a command to completion and capture its output.

    stdin is inherited so ssh-add can still prompt for a passphrase on the
    controlling terminal.

    Args:
        argv: Command and arguments.
        env: Full environment for the child. None inherits ours.
        timeout: Seconds before the child is killed. None waits forever.

    Returns:
        ToolResult. Never raises for a missing or unexecutable command or a
        timeout.
    """
    argv = tuple(argv)
    logger.debug("Running: %s", " ".join(argv))
    try:
        completed = subprocess.run(
            argv,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        logger.error("Executable not found: %s", argv[0])
        return ToolResult(argv=argv, returncode=EXIT_NOT_FOUND, stderr=f"{argv[0]}: not found")
    except subprocess.TimeoutExpired:
        logger.error("Command timed out after %ss: %s", timeout, argv[0])
        return ToolResult(argv=argv, returncode=EXIT_TIMEOUT, stderr="timed out")
    except OSError as e:
        logger.error("Cannot execute %s: %s", argv[0], e)
        return ToolResult(argv=argv, returncode=EXIT_NOT_EXECUTABLE, stderr=f"{argv[0]}: {e}")

    logger.debug("%s exited with status %d", argv[0], completed.returncode)
    return ToolResult(
        argv=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def pid_exists(pid: int) -> bool:
    """Check whether we can signal-probe a process (kill -0).

    A process owned by another user raises PermissionError; we report it as
    absent because such an agent is of no use to the caller anyway.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        logger.debug("Process %d exists but cannot be signalled", pid)
        return False
    except OSError:
        return False
    return True


def terminate_pid(pid: int, graceful_timeout: float = GRACEFUL_TIMEOUT) -> bool:
    """Terminate a process we did not start as a child: SIGTERM -> wait -> SIGKILL.

    ssh-agent daemonizes, so there is no Popen to wait() on. Exit is detected
    by polling with signal 0.

    Returns:
        True if the process is gone afterwards.
    """
    if not pid_exists(pid):
        return True

    try:
        os.kill(pid, signal.SIGTERM)
        logger.debug("Sent SIGTERM to %d", pid)
    except ProcessLookupError:
        return True
    except OSError as e:
        logger.debug("SIGTERM to %d failed: %s", pid, e)
        return False

    deadline = time.monotonic() + graceful_timeout
    while time.monotonic() < deadline:
        if not pid_exists(pid):
            return True
        time.sleep(POLL_INTERVAL)

    sigkill = getattr(signal, "SIGKILL", signal.SIGTERM)
    try:
        os.kill(pid, sigkill)
        logger.debug("Sent SIGKILL to %d", pid)
    except ProcessLookupError:
        return True
    except OSError as e:
        logger.debug("SIGKILL to %d failed: %s", pid, e)
        return False
    return not pid_exists(pid)
