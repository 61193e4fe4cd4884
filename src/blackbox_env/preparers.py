"""Local filesystem environment preparation."""
import os
import re
import shutil
import sys
from pathlib import Path
from typing import Sequence

from fuuid import b58_fuuid

from blackbox_env.config import BlackBoxConfig, load_config
from blackbox_env.context import ExecutionContext
from blackbox_env.drain import StreamDrainPool
from blackbox_env.errors import SetupError
from blackbox_env.logging import get_logger
from blackbox_env.types import ToolsSetup, Workspace

logger = get_logger(__name__)

# Variables that would leak the host setup into the build tool under test
STRIPPED_ENV_VARS = [
    "PYTHONPATH",
    "LD_PRELOAD",
    "LD_LIBRARY_PATH",
    "BAZELISK_HOME",
]


def get_system_paths() -> str:
    """Get essential system binary paths for the current platform."""
    match sys.platform:
        case "darwin":
            return "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"
        case "linux":
            return "/usr/local/bin:/usr/bin:/bin:/usr/local/sbin:/usr/sbin:/sbin"
        case _:
            raise RuntimeError(f"Unsupported platform: {sys.platform}")


def sanitize_test_name(test_name: str) -> str:
    """Make a test name usable as a directory name."""
    name = re.sub(r"[^A-Za-z0-9_.-]+", "_", test_name).strip("._")
    return name[:64] or "test"


def create_workspace(base_dir: Path, test_name: str) -> Workspace:
    """Create the directory tree and environment of one test."""
    root = base_dir / f"{sanitize_test_name(test_name)}-{b58_fuuid()}"
    dirs = {
        "work": root / "work",
        "tmp": root / "tmp",
        "home": root / "home",
        "cache": root / "cache",
    }
    for path in dirs.values():
        path.mkdir(parents=True, exist_ok=True)

    env_vars = {k: v for k, v in os.environ.items() if k not in STRIPPED_ENV_VARS}
    env_vars.update(
        {
            "PATH": os.environ.get("PATH") or get_system_paths(),
            "HOME": str(dirs["home"]),
            "TMPDIR": str(dirs["tmp"]),
            "TEST_TMPDIR": str(dirs["tmp"]),
            "XDG_CACHE_HOME": str(dirs["cache"]),
        }
    )

    logger.info(
        {"event": "workspace_created", "root": str(root), "work_dir": str(dirs["work"])}
    )
    return Workspace(
        root=root,
        work_dir=dirs["work"],
        tmp_dir=dirs["tmp"],
        home_dir=dirs["home"],
        cache_dir=dirs["cache"],
        env_vars=env_vars,
    )


class LocalEnvironmentPreparer:
    """Prepares each test in a fresh directory under the configured test tmpdir."""

    def __init__(self, config: BlackBoxConfig | None = None):
        self.config = config or load_config()

    def __call__(
        self,
        test_name: str,
        tools: Sequence[ToolsSetup],
        drain_pool: StreamDrainPool,
    ) -> ExecutionContext:
        try:
            workspace = create_workspace(self.config.test_tmpdir, test_name)
        except OSError as e:
            raise SetupError(
                test_name, f"cannot create workspace: {e}", {"base_dir": str(self.config.test_tmpdir)}
            ) from e

        context = ExecutionContext(
            test_name=test_name,
            workspace=workspace,
            tool_binary=self.config.tool_binary,
            drain_pool=drain_pool,
            timeout=self.config.process_timeout,
            output_user_root=self.config.output_user_root,
        )

        for index, tool in enumerate(tools):
            try:
                tool.apply(context)
            except Exception as e:
                shutil.rmtree(workspace.root, ignore_errors=True)
                raise SetupError(
                    test_name,
                    f"{type(tool).__name__} failed: {e}",
                    {"directive": type(tool).__name__, "index": index},
                ) from e
            logger.debug(
                {"event": "tools_setup_applied", "test": test_name, "directive": type(tool).__name__}
            )

        return context
