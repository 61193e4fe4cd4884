"""Setup steps applied to a test workspace before the build tool runs."""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from blackbox_env.logging import get_logger
from blackbox_env.workspace import get_workspace_with_default_repos

if TYPE_CHECKING:
    from blackbox_env.context import ExecutionContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class DefaultToolsSetup:
    """Writes WORKSPACE with the default repositories, a root BUILD and .bazelrc."""
    extra_rc_lines: tuple[str, ...] = ()

    def apply(self, context: "ExecutionContext") -> None:
        context.write("WORKSPACE", get_workspace_with_default_repos())
        context.write("BUILD")
        context.write(
            ".bazelrc",
            f"startup --host_jvm_args=-Djava.io.tmpdir={context.tmp_dir}",
            "build --announce_rc",
            *self.extra_rc_lines,
        )
        logger.debug({"event": "default_tools_setup", "test": context.test_name})


@dataclass(frozen=True)
class WriteFiles:
    """Writes files given as relative path -> content."""
    files: Mapping[str, str] = field(default_factory=dict)

    def apply(self, context: "ExecutionContext") -> None:
        for relative_path, content in self.files.items():
            context.write(relative_path, *content.splitlines())
