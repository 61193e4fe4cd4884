"""Framework configuration."""
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import appdirs

# One worker per stream of a child process: stdout and stderr.
DRAIN_POOL_WORKERS = 2
# Seconds ``dispose`` waits for in-flight drain tasks.
SHUTDOWN_GRACE_PERIOD = 1.0

DEFAULT_TOOL_BINARY = "bazel"
DEFAULT_PROCESS_TIMEOUT = 600.0
APP_NAME = "blackbox-env"

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BlackBoxConfig:
    """Settings shared by every test of a run"""
    tool_binary: str
    test_tmpdir: Path
    output_user_root: Path
    process_timeout: float
    keep_workspaces: bool
    log_level: str


def get_cache_dir() -> Path:
    """Shared cache directory for the build tool's output user root."""
    return Path(appdirs.user_cache_dir(APP_NAME)) / "output_user_root"


def load_config(environ: Mapping[str, str] | None = None) -> BlackBoxConfig:
    """Build configuration from environment variables."""
    env = os.environ if environ is None else environ

    test_tmpdir = (
        env.get("BLACKBOX_TEST_TMPDIR")
        or env.get("TEST_TMPDIR")
        or tempfile.gettempdir()
    )
    timeout = env.get("BLACKBOX_PROCESS_TIMEOUT")
    try:
        process_timeout = float(timeout) if timeout else DEFAULT_PROCESS_TIMEOUT
    except ValueError as e:
        raise ValueError(f"BLACKBOX_PROCESS_TIMEOUT must be a number, got {timeout!r}") from e
    if process_timeout <= 0:
        raise ValueError("BLACKBOX_PROCESS_TIMEOUT must be positive")

    return BlackBoxConfig(
        tool_binary=env.get("BLACKBOX_TOOL_BINARY", DEFAULT_TOOL_BINARY),
        test_tmpdir=Path(test_tmpdir),
        output_user_root=Path(env["BLACKBOX_OUTPUT_USER_ROOT"])
        if env.get("BLACKBOX_OUTPUT_USER_ROOT")
        else get_cache_dir(),
        process_timeout=process_timeout,
        keep_workspaces=env.get("BLACKBOX_KEEP_WORKSPACES", "").lower() in TRUTHY,
        log_level=env.get("BLACKBOX_LOG_LEVEL", "INFO").upper(),
    )
