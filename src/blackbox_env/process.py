"""Child process execution with concurrent stream draining."""
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

import psutil

from blackbox_env.drain import StreamDrainPool
from blackbox_env.errors import ProcessRunnerError, ProcessTimeoutError
from blackbox_env.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessParameters:
    """What to run and what result to expect"""
    name: str
    arguments: Sequence[str]
    work_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)
    timeout: float = 600.0
    # None accepts any exit code
    expected_exit_code: Optional[int] = 0
    expect_empty_error: bool = False


@dataclass(frozen=True)
class ProcessResult:
    """Exit code and captured output of a finished process"""
    exit_code: int
    stdout_lines: list[str]
    stderr_lines: list[str]

    def out_string(self) -> str:
        return "\n".join(self.stdout_lines)

    def err_string(self) -> str:
        return "\n".join(self.stderr_lines)


def kill_process_tree(pid: int) -> None:
    """Kill a process and all of its descendants."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    processes = parent.children(recursive=True) + [parent]
    for proc in processes:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    psutil.wait_procs(processes, timeout=5)


def run_process(params: ProcessParameters, drain_pool: StreamDrainPool) -> ProcessResult:
    """Run a child process, draining stdout and stderr on the drain pool.

    Raises ProcessTimeoutError if the process outlives ``params.timeout``
    and ProcessRunnerError if the result does not match the expectations.
    """
    cmd = [params.name, *params.arguments]
    logger.debug(
        {"event": "process_start", "cmd": cmd, "work_dir": str(params.work_dir)}
    )

    process = subprocess.Popen(
        cmd,
        cwd=params.work_dir,
        env=dict(params.env) if params.env else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    try:
        stdout_future, stderr_future = drain_pool.drain_process(process.stdout, process.stderr)
    except Exception:
        kill_process_tree(process.pid)
        process.wait()
        process.stdout.close()
        process.stderr.close()
        raise

    try:
        exit_code = process.wait(timeout=params.timeout)
    except subprocess.TimeoutExpired:
        logger.error(
            {"event": "process_timeout", "cmd": cmd, "timeout": params.timeout}
        )
        kill_process_tree(process.pid)
        process.wait()
        stdout = "\n".join(stdout_future.result(timeout=params.timeout))
        stderr = "\n".join(stderr_future.result(timeout=params.timeout))
        raise ProcessTimeoutError(params.name, params.timeout, stdout, stderr)

    result = ProcessResult(
        exit_code=exit_code,
        stdout_lines=stdout_future.result(timeout=params.timeout),
        stderr_lines=stderr_future.result(timeout=params.timeout),
    )
    logger.debug(
        {
            "event": "process_complete",
            "cmd": cmd,
            "returncode": exit_code,
            "stdout_lines": len(result.stdout_lines),
            "stderr_lines": len(result.stderr_lines),
        }
    )

    if params.expected_exit_code is not None and exit_code != params.expected_exit_code:
        raise ProcessRunnerError(
            params.name,
            f"expected exit code {params.expected_exit_code}, got {exit_code}",
            exit_code,
            result.out_string(),
            result.err_string(),
        )
    if params.expect_empty_error and result.stderr_lines:
        raise ProcessRunnerError(
            params.name,
            "expected empty error output",
            exit_code,
            result.out_string(),
            result.err_string(),
        )
    return result
