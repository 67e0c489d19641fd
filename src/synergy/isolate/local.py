"""
In-process execution host.

Each handle owns a macrotask queue (callables executed by run_slice), a
microtask queue (continuations settled by checkpoint) and a thread-safe
inbox through which background workers hand results back. Workers never
touch the queues the loop thread reads; they only append to the inbox and
wake the loop.
"""

import time
from collections import deque
from concurrent.futures import Executor, Future
from typing import Any, Callable, Deque, Dict, Optional, Tuple

import structlog

from synergy.errors import HostAllocationError, HostError
from synergy.isolate.host import HostHandle, HostRuntime

logger = structlog.get_logger(__name__)

Task = Tuple[Callable[..., Any], tuple, dict]


class LocalHandle(HostHandle):
    """
    Task-queue execution state for one isolate.

    Attributes:
        isolate_id (str): Owning isolate
        max_checkpoint_units (int): Bound on continuations settled per checkpoint
    """

    def __init__(self, isolate_id: str, wake: Callable[[], None],
                 executor: Optional[Executor] = None,
                 max_checkpoint_units: int = 10_000,
                 base_footprint: int = 0):
        self.isolate_id = isolate_id
        self.max_checkpoint_units = max_checkpoint_units
        self._wake = wake
        self._executor = executor
        self._tasks: Deque[Task] = deque()
        self._microtasks: Deque[Task] = deque()
        self._inbox: Deque[Task] = deque()
        self._memory_bytes = base_footprint
        self._cpu_seconds = 0.0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, fn: Callable[..., Any], *args, **kwargs):
        """Queue a macrotask. Loop thread only."""
        self._ensure_open()
        self._tasks.append((fn, args, kwargs))
        self._wake()

    def post_threadsafe(self, fn: Callable[..., Any], *args, **kwargs):
        """Queue a macrotask from any thread."""
        if self._closed:
            # Late worker results for a released context are dropped.
            return
        self._inbox.append((fn, args, kwargs))
        self._wake()

    def defer(self, fn: Callable[..., Any], *args, **kwargs):
        """Queue a continuation, settled at the next checkpoint."""
        self._ensure_open()
        self._microtasks.append((fn, args, kwargs))

    def run_in_worker(self, fn: Callable[..., Any], *args,
                      callback: Optional[Callable[[Future], Any]] = None) -> Future:
        """
        Run blocking work on the background pool.

        The completed future is handed to ``callback`` as a macrotask on the
        loop thread.
        """
        self._ensure_open()
        if self._executor is None:
            raise HostError(f"No worker pool attached to isolate {self.isolate_id!r}")

        def on_done(fut: Future):
            if callback is not None:
                self.post_threadsafe(callback, fut)
            else:
                self._wake()

        future = self._executor.submit(fn, *args)
        future.add_done_callback(on_done)
        return future

    def adjust_memory(self, delta_bytes: int) -> int:
        """Account an allocation (positive) or release (negative) made by tasks."""
        self._memory_bytes = max(0, self._memory_bytes + int(delta_bytes))
        return self._memory_bytes

    def pending(self) -> int:
        """Macrotasks waiting for a slice, including unsorted inbox entries."""
        return len(self._tasks) + len(self._inbox)

    def pending_microtasks(self) -> int:
        return len(self._microtasks)

    def run_slice(self, max_units: int) -> int:
        self._ensure_open()
        while self._inbox:
            self._tasks.append(self._inbox.popleft())

        executed = 0
        try:
            while self._tasks and executed < max_units:
                fn, args, kwargs = self._tasks.popleft()
                executed += 1
                self._execute(fn, args, kwargs)
        finally:
            if self._tasks:
                # Leftover work; keep the loop from blocking on it.
                self._wake()
        return executed

    def checkpoint(self) -> int:
        self._ensure_open()
        settled = 0
        while self._microtasks and settled < self.max_checkpoint_units:
            fn, args, kwargs = self._microtasks.popleft()
            settled += 1
            self._execute(fn, args, kwargs)

        if self._microtasks:
            logger.warning(
                "checkpoint_budget_exhausted",
                isolate_id=self.isolate_id,
                remaining=len(self._microtasks),
            )
            self._wake()
        return settled

    def memory_usage(self) -> int:
        return self._memory_bytes

    def cpu_time(self) -> float:
        return self._cpu_seconds

    def close(self):
        self._closed = True
        self._tasks.clear()
        self._microtasks.clear()
        self._inbox.clear()

    def _execute(self, fn, args, kwargs):
        started = time.thread_time()
        try:
            fn(*args, **kwargs)
        finally:
            self._cpu_seconds += time.thread_time() - started

    def _ensure_open(self):
        if self._closed:
            raise HostError(f"Host context for {self.isolate_id!r} has been released")

    def __repr__(self):
        return (f"LocalHandle(id={self.isolate_id!r}, tasks={len(self._tasks)}, "
                f"microtasks={len(self._microtasks)}, memory={self._memory_bytes})")


class LocalHostRuntime(HostRuntime):
    """
    Default host: runs Python callables inside the engine's loop thread.

    Args:
        max_handles: Optional cap on live handles; allocation beyond it fails
        max_checkpoint_units: Bound on continuations settled per checkpoint
        base_footprint: Bytes accounted to every fresh handle
    """

    def __init__(self, max_handles: Optional[int] = None,
                 max_checkpoint_units: int = 10_000,
                 base_footprint: int = 0):
        self.max_handles = max_handles
        self.max_checkpoint_units = max_checkpoint_units
        self.base_footprint = base_footprint
        self._handles: Dict[str, LocalHandle] = {}
        self._wake: Optional[Callable[[], None]] = None
        self._executor: Optional[Executor] = None

    @property
    def started(self) -> bool:
        return self._wake is not None

    def start(self, wake: Callable[[], None], executor: Optional[Executor] = None) -> None:
        self._wake = wake
        self._executor = executor
        logger.debug("host_runtime_started", worker_pool=executor is not None)

    def allocate(self, isolate_id: str) -> LocalHandle:
        if not self.started:
            raise HostAllocationError(isolate_id, "host runtime not started")
        if isolate_id in self._handles:
            raise HostAllocationError(isolate_id, "handle already allocated")
        if self.max_handles is not None and len(self._handles) >= self.max_handles:
            raise HostAllocationError(isolate_id, f"handle limit {self.max_handles} reached")

        handle = LocalHandle(
            isolate_id,
            wake=self._wake,
            executor=self._executor,
            max_checkpoint_units=self.max_checkpoint_units,
            base_footprint=self.base_footprint,
        )
        self._handles[isolate_id] = handle
        return handle

    def release(self, handle: HostHandle) -> None:
        if not isinstance(handle, LocalHandle):
            raise HostError(f"Cannot release foreign handle {handle!r}")
        handle.close()
        self._handles.pop(handle.isolate_id, None)

    def handle_count(self) -> int:
        return len(self._handles)

    def shutdown(self) -> None:
        for handle in list(self._handles.values()):
            self.release(handle)
        self._wake = None
        self._executor = None
