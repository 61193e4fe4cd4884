import stat
import sys
from pathlib import Path

import pytest

from blackbox_env.config import BlackBoxConfig
from blackbox_env.drain import StreamDrainPool
from blackbox_env.environment import BlackBoxEnvironment
from blackbox_env.preparers import LocalEnvironmentPreparer

FAKE_TOOL = f"""#!{sys.executable}
import os
import sys

print("args:" + " ".join(sys.argv[1:]))
print("cwd:" + os.getcwd())
print("home:" + os.environ.get("HOME", ""))
print("tool stderr", file=sys.stderr)
sys.exit(int(os.environ.get("FAKE_TOOL_EXIT", "0")))
"""


@pytest.fixture
def drain_pool():
    """Drain pool shut down after the test"""
    pool = StreamDrainPool()
    try:
        yield pool
    finally:
        pool.shutdown()


@pytest.fixture
def fake_tool(tmp_path: Path) -> Path:
    """Executable standing in for the build tool: echoes its arguments"""
    tool = tmp_path / "bin" / "fake-tool"
    tool.parent.mkdir()
    tool.write_text(FAKE_TOOL)
    tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return tool


@pytest.fixture
def config(tmp_path: Path, fake_tool: Path) -> BlackBoxConfig:
    return BlackBoxConfig(
        tool_binary=str(fake_tool),
        test_tmpdir=tmp_path / "workspaces",
        output_user_root=None,
        process_timeout=30.0,
        keep_workspaces=False,
        log_level="DEBUG",
    )


@pytest.fixture
def environment(config: BlackBoxConfig):
    """Environment with a local preparer, disposed unless the test did it"""
    env = BlackBoxEnvironment(LocalEnvironmentPreparer(config))
    try:
        yield env
    finally:
        if not env.is_disposed:
            env.dispose()


@pytest.fixture
def context(environment: BlackBoxEnvironment):
    return environment.prepare_environment("test_context", [])
