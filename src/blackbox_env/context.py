"""Per-test execution context."""
import shutil
from dataclasses import dataclass
from pathlib import Path

from blackbox_env.drain import StreamDrainPool
from blackbox_env.logging import get_logger
from blackbox_env.process import ProcessParameters, ProcessResult, run_process
from blackbox_env.runner import ToolRunner
from blackbox_env.types import Workspace

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """Handle a test uses to work with its workspace and run the build tool.

    The drain pool is shared with every other context of the same
    environment and is only valid until that environment is disposed.
    """
    test_name: str
    workspace: Workspace
    tool_binary: str
    drain_pool: StreamDrainPool
    timeout: float
    output_user_root: Path | None = None

    @property
    def work_dir(self) -> Path:
        return self.workspace.work_dir

    @property
    def tmp_dir(self) -> Path:
        return self.workspace.tmp_dir

    @property
    def env_vars(self) -> dict[str, str]:
        return self.workspace.env_vars

    def path(self, relative_path: str | Path) -> Path:
        """Resolve a path inside the work directory, refusing to escape it."""
        path = (self.work_dir / relative_path).resolve()
        if not path.is_relative_to(self.work_dir.resolve()):
            raise ValueError(f"Path {relative_path} is outside of the work directory")
        return path

    def write(self, relative_path: str | Path, *lines: str) -> Path:
        """Write lines to a file in the work directory, creating parents."""
        path = self.path(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n" if lines else "")
        logger.debug({"event": "file_written", "test": self.test_name, "path": str(path)})
        return path

    def read(self, relative_path: str | Path) -> list[str]:
        return self.path(relative_path).read_text().splitlines()

    def tool(self) -> ToolRunner:
        """Runner for build tool commands in the work directory."""
        return ToolRunner(self)

    def run_binary(
        self, binary: str | Path, *args: str, expected_exit_code: int | None = 0
    ) -> ProcessResult:
        """Run an arbitrary binary in the work directory."""
        params = ProcessParameters(
            name=str(binary),
            arguments=list(args),
            work_dir=self.work_dir,
            env=self.env_vars,
            timeout=self.timeout,
            expected_exit_code=expected_exit_code,
        )
        return run_process(params, self.drain_pool)

    def cleanup(self) -> None:
        """Remove the workspace tree."""
        logger.debug({"event": "cleaning_workspace", "root": str(self.workspace.root)})
        shutil.rmtree(self.workspace.root, ignore_errors=True)
