"""Test group environment lifecycle management.

One ``BlackBoxEnvironment`` serves a whole group of tests, e.g. a test
module. It owns the stream drain pool every test's child processes use,
and each test obtains its own ``ExecutionContext`` from
``prepare_environment``. ``dispose`` must be called once when the group
finishes, also when some of its tests failed.
"""
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from blackbox_env.config import SHUTDOWN_GRACE_PERIOD
from blackbox_env.context import ExecutionContext
from blackbox_env.drain import StreamDrainPool
from blackbox_env.errors import MisuseError
from blackbox_env.logging import get_logger
from blackbox_env.preparers import LocalEnvironmentPreparer
from blackbox_env.types import EnvironmentPreparer, ToolsSetup
from blackbox_env.workspace import get_workspace_with_default_repos

logger = get_logger(__name__)


@dataclass(frozen=True)
class Active:
    pool: StreamDrainPool


@dataclass(frozen=True)
class Disposed:
    pass


State = Union[Active, Disposed]


class BlackBoxEnvironment:
    """Hands out per-test execution contexts backed by a shared drain pool."""

    def __init__(self, preparer: Optional[EnvironmentPreparer] = None):
        self.preparer = preparer or LocalEnvironmentPreparer()
        self._condition = threading.Condition()
        self._handoffs = 0
        self._state: State = Active(StreamDrainPool())

    @property
    def is_disposed(self) -> bool:
        with self._condition:
            return isinstance(self._state, Disposed)

    def prepare_environment(
        self, test_name: str, tools: Iterable[ToolsSetup] = ()
    ) -> ExecutionContext:
        """Prepare a workspace for ``test_name`` and return its context.

        Raises MisuseError after ``dispose``. Errors from the preparer
        propagate unchanged.
        """
        tools = tuple(tools)
        with self._condition:
            state = self._state
            if not isinstance(state, Active):
                raise MisuseError("prepare_environment", "environment is already disposed")
            self._handoffs += 1

        try:
            context = self.preparer(test_name, tools, state.pool)
        finally:
            with self._condition:
                self._handoffs -= 1
                self._condition.notify_all()

        logger.info(
            {"event": "environment_prepared", "test": test_name, "tools": len(tools)}
        )
        return context

    def dispose(self) -> None:
        """Shut down the drain pool, waiting at most the grace period.

        Raises MisuseError when called more than once.
        """
        deadline = time.monotonic() + SHUTDOWN_GRACE_PERIOD
        with self._condition:
            state = self._state
            if not isinstance(state, Active):
                raise MisuseError("dispose", "environment is already disposed")
            self._state = Disposed()
            # Preparations already past the state check get the pool while it is live.
            handed_off = self._condition.wait_for(
                lambda: self._handoffs == 0, timeout=SHUTDOWN_GRACE_PERIOD
            )
            unfinished = self._handoffs
        if not handed_off:
            logger.warning(
                {"event": "dispose_preparation_timeout", "preparations": unfinished}
            )

        terminated = state.pool.shutdown(timeout=max(0.0, deadline - time.monotonic()))
        logger.info({"event": "environment_disposed", "terminated": terminated})

    def __enter__(self) -> "BlackBoxEnvironment":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    @staticmethod
    def get_workspace_with_default_repos() -> str:
        return get_workspace_with_default_repos()
