"""Core type definitions"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from blackbox_env.context import ExecutionContext
    from blackbox_env.drain import StreamDrainPool


@dataclass(frozen=True)
class Workspace:
    """Isolated directory tree of a single test"""
    root: Path
    work_dir: Path
    tmp_dir: Path
    home_dir: Path
    cache_dir: Path
    env_vars: dict[str, str]


@runtime_checkable
class ToolsSetup(Protocol):
    """One step of preparing a test workspace before the build tool runs."""

    def apply(self, context: "ExecutionContext") -> None:
        ...


class EnvironmentPreparer(Protocol):
    """Builds a test workspace and the execution context around it.

    May raise SetupError. Must not hold on to ``drain_pool`` beyond the
    returned context.
    """

    def __call__(
        self,
        test_name: str,
        tools: Sequence[ToolsSetup],
        drain_pool: "StreamDrainPool",
    ) -> "ExecutionContext":
        ...
