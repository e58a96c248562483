"""Verification script execution.

Scripts are written to a unique temp file and run with bash in a child
process of their own session. stdout and stderr are captured separately.
The temp file is removed on every exit path.
"""

import os
import signal
import stat
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Optional

from xof.constants import DEFAULT_KILL_GRACE_S, SCRIPT_SHEBANG


# How often a running script is checked for cancellation / timeout
POLL_INTERVAL_S = 0.05


class ScriptError(Exception):
    """Base class for errors carried in a ScriptResult."""
    pass


class ScriptSetupError(ScriptError):
    """The script could not be written or the process could not be started."""
    pass


class ScriptExitError(ScriptError):
    """The script ran to completion with a non-zero exit status."""

    def __init__(self, exit_code: int):
        self.exit_code = exit_code
        if exit_code < 0:
            message = f"process killed by signal {-exit_code}"
        else:
            message = f"process exits with {exit_code}"
        super().__init__(message)


class ScriptCancelledError(ScriptError):
    """The script was terminated because the cancel event was set."""
    pass


class ScriptTimeoutError(ScriptError):
    """The script ran past its timeout and was terminated."""
    pass


def _fenced(label: str, text: str) -> str:
    if not text.endswith("\n"):
        text += "\n"
    return f"{label}:\n```\n{text}```"


@dataclass(frozen=True)
class ScriptResult:
    """Captured output of one verification run."""

    stdout: str = ""
    stderr: str = ""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        # Verification scripts are expected to be silent on stderr
        return self.error is None and self.stderr == ""

    def render(self) -> str:
        """Failure report: Error/Stdout/Stderr sections, non-empty ones only."""
        sections = []
        if self.error is not None:
            sections.append(_fenced("Error", str(self.error)))
        if self.stdout:
            sections.append(_fenced("Stdout", self.stdout))
        if self.stderr:
            sections.append(_fenced("Stderr", self.stderr))
        return "\n\n".join(sections)

    def __str__(self) -> str:
        return self.render()


def _write_script(script: str) -> str:
    fd, path = tempfile.mkstemp(prefix="xof-", suffix=".sh")
    try:
        try:
            f = os.fdopen(fd, "w", encoding="utf-8")
        except Exception:
            os.close(fd)
            raise
        with f:
            f.write(SCRIPT_SHEBANG + script)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(path, stat.S_IRWXU)
    except OSError:
        os.remove(path)
        raise
    return path


def _terminate(proc: subprocess.Popen, grace: float) -> None:
    """SIGTERM the script's process group, SIGKILL it if still alive after `grace`."""
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass


def run_script(
    script: str,
    cancel: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
    shell: str = "bash",
    kill_grace: float = DEFAULT_KILL_GRACE_S,
) -> ScriptResult:
    """
    Run `script` as a bash script and capture its output.

    Args:
        script: Script body (the shebang header is prepended)
        cancel: Event that, once set, terminates the running script
        timeout: Seconds before the script is terminated (None = no limit)
        shell: Interpreter used to run the temp file
        kill_grace: Seconds between SIGTERM and SIGKILL on termination

    Returns:
        ScriptResult. Never raises for script failures; errors are carried
        in `result.error` (ScriptSetupError, ScriptExitError,
        ScriptCancelledError, ScriptTimeoutError).
    """
    try:
        path = _write_script(script)
    except OSError as e:
        return ScriptResult(error=ScriptSetupError(f"cannot write script: {e}"))

    try:
        try:
            proc = subprocess.Popen(
                [shell, path],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # Undecodable output must not escape as UnicodeDecodeError
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            return ScriptResult(error=ScriptSetupError(f"cannot start {shell}: {e}"))

        deadline = time.monotonic() + timeout if timeout is not None else None
        stopped: Optional[ScriptError] = None
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_S)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    stopped = ScriptCancelledError("script cancelled")
                elif deadline is not None and time.monotonic() >= deadline:
                    stopped = ScriptTimeoutError(f"script timed out after {timeout}s")
                else:
                    continue
                _terminate(proc, kill_grace)
                stdout, stderr = proc.communicate()
                break

        error: Optional[Exception] = stopped
        if error is None and proc.returncode != 0:
            error = ScriptExitError(proc.returncode)
        return ScriptResult(stdout=stdout, stderr=stderr, error=error)
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
