"""Environment lifecycle management for black-box build tool tests."""

from blackbox_env.types import Workspace, ToolsSetup, EnvironmentPreparer
from blackbox_env.config import BlackBoxConfig, load_config
from blackbox_env.drain import StreamDrainPool
from blackbox_env.context import ExecutionContext
from blackbox_env.environment import BlackBoxEnvironment
from blackbox_env.preparers import LocalEnvironmentPreparer
from blackbox_env.process import ProcessParameters, ProcessResult, run_process
from blackbox_env.runner import ToolRunner
from blackbox_env.tools import DefaultToolsSetup, WriteFiles
from blackbox_env.workspace import get_workspace_with_default_repos
from blackbox_env.errors import (
    BlackBoxError,
    MisuseError,
    SetupError,
    ProcessRunnerError,
    ProcessTimeoutError,
)

__version__ = "0.1.0"

__all__ = [
    # Lifecycle
    "BlackBoxEnvironment",
    "StreamDrainPool",
    "ExecutionContext",

    # Preparation
    "EnvironmentPreparer",
    "LocalEnvironmentPreparer",
    "Workspace",
    "ToolsSetup",
    "DefaultToolsSetup",
    "WriteFiles",
    "get_workspace_with_default_repos",

    # Processes
    "ProcessParameters",
    "ProcessResult",
    "ToolRunner",
    "run_process",

    # Configuration
    "BlackBoxConfig",
    "load_config",

    # Error types
    "BlackBoxError",
    "MisuseError",
    "SetupError",
    "ProcessRunnerError",
    "ProcessTimeoutError",
]
