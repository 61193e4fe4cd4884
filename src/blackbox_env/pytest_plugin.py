"""pytest fixtures for black-box tests.

Registered through the ``pytest11`` entry point. A test module shares one
``BlackBoxEnvironment``; every test gets its own context:

    def test_build(blackbox_context):
        blackbox_context.write("BUILD", "genrule(...)")
        blackbox_context.tool().build("//:all")
"""
import pytest

from blackbox_env.config import load_config
from blackbox_env.environment import BlackBoxEnvironment
from blackbox_env.errors import SetupError, log_error
from blackbox_env.logging import configure_logging
from blackbox_env.preparers import LocalEnvironmentPreparer
from blackbox_env.tools import DefaultToolsSetup


@pytest.fixture(scope="session")
def blackbox_config():
    config = load_config()
    configure_logging(config.log_level)
    return config


@pytest.fixture(scope="module")
def blackbox_environment(blackbox_config):
    """One environment per test module, disposed even when tests fail"""
    environment = BlackBoxEnvironment(LocalEnvironmentPreparer(blackbox_config))
    try:
        yield environment
    finally:
        environment.dispose()


@pytest.fixture
def blackbox_tools():
    """Setup steps for each test; override to customise the workspace"""
    return [DefaultToolsSetup()]


@pytest.fixture
def blackbox_context(request, blackbox_environment, blackbox_tools, blackbox_config):
    try:
        context = blackbox_environment.prepare_environment(request.node.name, blackbox_tools)
    except SetupError as e:
        log_error(e, {"test": request.node.nodeid})
        raise
    try:
        yield context
    finally:
        if not blackbox_config.keep_workspaces:
            context.cleanup()
