"""Worker pool draining the output streams of child processes."""
import queue
import threading
import weakref
from concurrent.futures import Future, wait
from typing import Any, Callable, Optional, TextIO

from blackbox_env.config import DRAIN_POOL_WORKERS, SHUTDOWN_GRACE_PERIOD
from blackbox_env.logging import get_logger

logger = get_logger(__name__)


class _PoolState:
    """Everything the workers and the exit hook share, without the pool itself"""

    def __init__(self, workers: int):
        self.workers = workers
        self.work_queue: queue.SimpleQueue = queue.SimpleQueue()
        self.lock = threading.Lock()
        self.pending: set[Future] = set()
        self.shutdown = False

    def forget(self, future: Future) -> None:
        with self.lock:
            self.pending.discard(future)


def _worker(work_queue: queue.SimpleQueue) -> None:
    while True:
        item = work_queue.get()
        if item is None:
            return
        future, fn, args, kwargs = item
        if not future.set_running_or_notify_cancel():
            continue
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)


def _shutdown_pool(state: _PoolState, timeout: float) -> bool:
    """Stop accepting work and wait up to ``timeout`` seconds for submitted tasks.

    Queued tasks still run if they fit in the timeout. Afterwards queued
    tasks are cancelled and running ones abandoned on their daemon threads.
    Returns True when every task finished.
    """
    with state.lock:
        state.shutdown = True
        outstanding = set(state.pending)
        for _ in range(state.workers):
            state.work_queue.put(None)

    _, not_done = wait(outstanding, timeout=timeout)
    if not_done:
        cancelled = sum(1 for future in not_done if future.cancel())
        logger.warning(
            {
                "event": "drain_pool_shutdown_timeout",
                "abandoned_tasks": len(not_done) - cancelled,
                "cancelled_tasks": cancelled,
                "timeout": timeout,
            }
        )
        return False

    logger.debug({"event": "drain_pool_shutdown", "timeout": timeout})
    return True


def _read_lines(stream: TextIO, sink: Optional[Callable[[str], Any]]) -> list[str]:
    lines = []
    with stream:
        for line in stream:
            line = line.rstrip("\r\n")
            lines.append(line)
            if sink is not None:
                sink(line)
    return lines


class StreamDrainPool:
    """Fixed pool of threads reading child process output streams.

    Two workers, one for stdout and one for stderr, so that a full pipe
    buffer on one stream never blocks the other or the parent. More tasks
    than workers queue up in submission order.

    Workers are daemon threads: tasks abandoned by ``shutdown`` never hold
    up interpreter exit. If the pool is garbage collected or the interpreter
    exits before ``shutdown`` was called, it is shut down with the same
    bounded wait.
    """

    def __init__(
        self,
        workers: int = DRAIN_POOL_WORKERS,
        grace_period: float = SHUTDOWN_GRACE_PERIOD,
    ):
        self.workers = workers
        self.grace_period = grace_period
        self._state = _PoolState(workers)
        for index in range(workers):
            threading.Thread(
                target=_worker,
                args=(self._state.work_queue,),
                name=f"blackbox-drain-{index}",
                daemon=True,
            ).start()
        self._finalizer = weakref.finalize(self, _shutdown_pool, self._state, grace_period)
        logger.debug({"event": "drain_pool_created", "workers": workers})

    @property
    def is_shutdown(self) -> bool:
        return not self._finalizer.alive

    @property
    def pending_count(self) -> int:
        with self._state.lock:
            return len(self._state.pending)

    def submit_all(self, *tasks: tuple) -> list[Future]:
        """Queue ``(fn, *args)`` tasks back to back, with nothing in between.

        Raises RuntimeError once the pool is shut down.
        """
        state = self._state
        futures = []
        with state.lock:
            if state.shutdown:
                raise RuntimeError("cannot schedule new drain tasks after shutdown")
            for fn, *args in tasks:
                future: Future = Future()
                state.pending.add(future)
                state.work_queue.put((future, fn, args, {}))
                futures.append(future)
        for future in futures:
            future.add_done_callback(state.forget)
        return futures

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Queue a task. Raises RuntimeError once the pool is shut down."""
        return self.submit_all((fn, *args))[0]

    def drain_stream(
        self, stream: TextIO, sink: Optional[Callable[[str], Any]] = None
    ) -> "Future[list[str]]":
        """Read ``stream`` until EOF on a worker; the future holds its lines in order."""
        return self.submit(_read_lines, stream, sink)

    def drain_process(
        self, stdout: TextIO, stderr: TextIO
    ) -> tuple["Future[list[str]]", "Future[list[str]]"]:
        """Drain both streams of one process.

        The two readers are queued next to each other, so a worker picking
        up one of them leaves the partner first in line. Processes sharing
        the pool cannot end up with both workers waiting on one stream
        each while their other streams fill up.
        """
        stdout_future, stderr_future = self.submit_all(
            (_read_lines, stdout, None), (_read_lines, stderr, None)
        )
        return stdout_future, stderr_future

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Shut down, waiting at most ``timeout`` (default: grace period) seconds.

        Never raises on timeout. Calling it again returns whether anything is
        still running.
        """
        if self._finalizer.detach() is None:
            return self.pending_count == 0
        return _shutdown_pool(
            self._state, self.grace_period if timeout is None else timeout
        )
