"""
Shell Tools
===========

Tools for running commands in the user's project: builds, test suites,
package installs, arbitrary shell commands, and directory creation.

Process lifecycle:
- Commands run as asyncio subprocesses with stdout/stderr captured
- A timeout (MAVENS_COMMAND_TIMEOUT, default 120 s) kills the process
- Each command runs in its own session; the timeout, the abort signal and
  task cancellation SIGKILL the whole process group, so children the shell
  started (a dev server behind `npm run dev`) die with it

run_process() is shared with the git tools.
"""

import asyncio
import os
import shlex
import signal
from dataclasses import dataclass
from pathlib import Path

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.utils.config import get_config
from mavens.utils.logger import Logger

logger = Logger("ShellTools")

# Keep captured output bounded; builds can be chatty
MAX_OUTPUT_CHARS = 20_000

# Upper bound on waiting for pipes after a kill; a daemon that left the
# group can hold them open
KILL_GRACE_SECONDS = 2.0


@dataclass
class ProcessOutcome:
    """
    What a finished (or killed) subprocess produced.

    Attributes:
        command: The command as displayed to the user
        exit_code: Process exit status (None if it never exited on its own)
        stdout: Captured standard output
        stderr: Captured standard error
        timed_out: Killed because the timeout elapsed
        cancelled: Killed because the abort signal fired
    """
    command: str
    exit_code: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.cancelled

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
        }


def _clip(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[-MAX_OUTPUT_CHARS:]


async def _kill(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the command's process group, then reap the process."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        elif process.returncode is None:
            process.kill()
    except ProcessLookupError:
        logger.debug(f"Process group {process.pid} already gone")

    try:
        await asyncio.wait_for(process.wait(), KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"pid {process.pid} did not exit after SIGKILL")


async def run_process(
    command: str | list[str],
    cwd: str,
    timeout: float | None = None,
    cancel: CancelSignal | None = None
) -> ProcessOutcome:
    """
    Run a command and capture its output.

    Args:
        command: A shell string, or an argv list executed without a shell
        cwd: Working directory
        timeout: Seconds before the process is killed (default from config)
        cancel: Abort signal; the process is killed when it fires

    Returns:
        ProcessOutcome (never raises for non-zero exits)

    Raises:
        FileNotFoundError: The executable (argv form) does not exist
        asyncio.CancelledError: The calling task was cancelled (after the
            process has been killed)
    """
    timeout = timeout or get_config().shell.command_timeout

    if isinstance(command, str):
        display = command
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    else:
        display = shlex.join(command)
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )

    logger.debug(f"Started pid {process.pid}: {display}")

    communicate = asyncio.ensure_future(process.communicate())
    waiters = {communicate}
    cancel_wait = None
    if cancel is not None:
        cancel_wait = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_wait)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        communicate.cancel()
        await _kill(process)
        logger.info(f"Killed pid {process.pid} (task cancelled): {display}")
        raise
    finally:
        if cancel_wait is not None:
            cancel_wait.cancel()

    if communicate in done:
        stdout, stderr = communicate.result()
        return ProcessOutcome(
            command=display,
            exit_code=process.returncode,
            stdout=_clip(stdout.decode("utf-8", errors="replace")),
            stderr=_clip(stderr.decode("utf-8", errors="replace")),
        )

    # Timed out or aborted: kill, then collect whatever was written
    await _kill(process)
    try:
        stdout, stderr = await asyncio.wait_for(communicate, KILL_GRACE_SECONDS)
    except (asyncio.TimeoutError, asyncio.CancelledError, OSError):
        stdout, stderr = b"", b""

    timed_out = not done
    logger.warning(f"Killed pid {process.pid} ({'timeout' if timed_out else 'aborted'}): {display}")
    return ProcessOutcome(
        command=display,
        exit_code=process.returncode,
        stdout=_clip(stdout.decode("utf-8", errors="replace")),
        stderr=_clip(stderr.decode("utf-8", errors="replace")),
        timed_out=timed_out,
        cancelled=not timed_out,
    )


# ==============================================================================
# Tool: Run Command
# ==============================================================================

async def _run_command(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """
    Run a shell command in the given directory.

    A non-zero exit is a failed result, with the captured output kept in
    data so the user can see what went wrong.
    """
    command = params["command"].strip()
    cwd = params["cwd"]
    timeout = params.get("timeout")

    if not os.path.isdir(cwd):
        return ToolResult.fail(f"Working directory not found: {cwd}")

    outcome = await run_process(command, cwd, timeout=timeout, cancel=cancel)
    output = (outcome.stdout + ("\n" + outcome.stderr if outcome.stderr else "")).strip()

    if outcome.cancelled:
        return ToolResult.fail(f"Command aborted: {command}", data=outcome.to_dict())
    if outcome.timed_out:
        return ToolResult.fail(f"Command timed out: {command}", data=outcome.to_dict())
    if outcome.exit_code != 0:
        result = ToolResult.fail(f"Command failed with exit code {outcome.exit_code}: {command}", data=outcome.to_dict())
        result.content = output or result.content
        return result

    return ToolResult.ok(
        content=output or f"{command} completed with no output",
        display_summary=f"Ran `{command}` (exit code 0)",
        data=outcome.to_dict()
    )


run_command_tool = Tool(
    name="run_command",
    description="Run a shell command in a working directory and capture its output.",
    parameters={
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The command line to run"
            },
            "cwd": {
                "type": "string",
                "description": "Absolute working directory"
            },
            "timeout": {
                "type": "number",
                "description": "Seconds before the command is killed"
            }
        },
        "required": ["command", "cwd"]
    },
    execute=_run_command
)


# ==============================================================================
# Tool: Make Directory
# ==============================================================================

async def _make_directory(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """Create a directory and any missing parents."""
    path = Path(params["path"])

    if path.exists() and not path.is_dir():
        return ToolResult.fail(f"{path} exists and is not a directory")

    existed = path.is_dir()
    await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    summary = f"Directory already exists: {path}" if existed else f"Created directory {path}"
    return ToolResult.ok(
        content=summary,
        display_summary=summary,
        data={"path": str(path), "created": not existed}
    )


make_directory_tool = Tool(
    name="make_directory",
    description="Create a directory (and any missing parent directories).",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path of the directory to create"
            }
        },
        "required": ["path"]
    },
    execute=_make_directory,
    validator=lambda params: None if os.path.isabs(params["path"]) else "Parameter 'path' must be absolute"
)


# ==============================================================================
# Register All Shell Tools
# ==============================================================================

def register_shell_tools(registry: ToolRegistry) -> None:
    """Register all shell tools with a registry."""
    registry.register(run_command_tool)
    registry.register(make_directory_tool)

    logger.debug("Shell tools registered")
