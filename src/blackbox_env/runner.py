"""Build tool command runner."""
from typing import TYPE_CHECKING, Optional

from blackbox_env.errors import ProcessRunnerError
from blackbox_env.logging import get_logger
from blackbox_env.process import ProcessParameters, ProcessResult, run_process

if TYPE_CHECKING:
    from blackbox_env.context import ExecutionContext

logger = get_logger(__name__)


class ToolRunner:
    """Runs build tool commands for one test.

    Configuration methods return the runner so calls can be chained:

        context.tool().with_flags("--keep_going").should_fail().build("//:broken")
    """

    def __init__(self, context: "ExecutionContext"):
        self.context = context
        self.flags: list[str] = []
        self.env: dict[str, str] = {}
        self.timeout = context.timeout
        self.expected_exit_code: Optional[int] = 0

    def with_flags(self, *flags: str) -> "ToolRunner":
        self.flags.extend(flags)
        return self

    def with_env(self, key: str, value: str) -> "ToolRunner":
        self.env[key] = value
        return self

    def with_timeout(self, seconds: float) -> "ToolRunner":
        if seconds <= 0:
            raise ValueError("Timeout must be positive")
        self.timeout = seconds
        return self

    def should_fail(self) -> "ToolRunner":
        """Accept any non-zero exit code."""
        self.expected_exit_code = None
        return self

    def with_exit_code(self, code: int) -> "ToolRunner":
        self.expected_exit_code = code
        return self

    def startup_options(self) -> list[str]:
        if self.context.output_user_root is None:
            return []
        return [f"--output_user_root={self.context.output_user_root}"]

    def run_command(self, command: str, *args: str) -> ProcessResult:
        """Run ``<tool> [startup options] <command> <flags> <args>``."""
        arguments = [*self.startup_options(), command, *self.flags, *args]
        logger.info(
            {
                "event": "tool_command",
                "test": self.context.test_name,
                "command": command,
                "arguments": arguments,
            }
        )

        params = ProcessParameters(
            name=self.context.tool_binary,
            arguments=arguments,
            work_dir=self.context.work_dir,
            env={**self.context.env_vars, **self.env},
            timeout=self.timeout,
            expected_exit_code=self.expected_exit_code,
        )
        result = run_process(params, self.context.drain_pool)

        if self.expected_exit_code is None and result.exit_code == 0:
            raise ProcessRunnerError(
                self.context.tool_binary,
                f"expected '{command}' to fail",
                result.exit_code,
                result.out_string(),
                result.err_string(),
            )
        return result

    def build(self, *targets: str) -> ProcessResult:
        return self.run_command("build", *targets)

    def test(self, *targets: str) -> ProcessResult:
        return self.run_command("test", *targets)

    def run(self, target: str, *args: str) -> ProcessResult:
        return self.run_command("run", target, *(["--", *args] if args else []))

    def query(self, expression: str) -> ProcessResult:
        return self.run_command("query", expression)

    def info(self, key: Optional[str] = None) -> ProcessResult:
        return self.run_command("info", *([key] if key else []))

    def clean(self) -> ProcessResult:
        return self.run_command("clean")

    def shutdown(self) -> ProcessResult:
        return self.run_command("shutdown")
