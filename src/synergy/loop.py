"""
PhaseLoop: fixed-phase loop driver on top of asyncio.

Each iteration runs, in order and never interleaved:

1. marshaled requests from other threads
2. timer phase, when the tick interval has elapsed
3. idle phase, while the idle handle is active
4. prepare phase
5. I/O wait (asyncio services sockets and worker-pool completions here)
6. check phase

The I/O wait has a zero timeout while idle work or marshaled requests are
pending, otherwise it lasts until the next tick or a wake().
"""

import asyncio
import threading
from collections import deque
from concurrent.futures import Executor, Future
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

Hook = Callable[[], None]


class Phase(str, Enum):
    """Hook points of one loop iteration."""
    TIMER = "timer"
    IDLE = "idle"
    PREPARE = "prepare"
    CHECK = "check"


class PhaseLoop:
    """
    Single-threaded loop driver with prepare/check/timer/idle hooks.

    Hooks are kept in a dispatch table keyed by phase. Only stop(), wake()
    and call_soon_threadsafe() may be used from other threads.
    """

    def __init__(self, tick_interval: float, executor: Optional[Executor] = None):
        if tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {tick_interval}")

        self.tick_interval = tick_interval
        self.iterations = 0
        self._hooks: Dict[Phase, Hook] = {}
        self._loop = asyncio.new_event_loop()
        if executor is not None:
            self._loop.set_default_executor(executor)

        self._requests: Deque[Tuple[Callable[..., Any], tuple, Future]] = deque()
        self._wakeup: Optional[asyncio.Event] = None
        self._stop_requested = threading.Event()
        self._idle_active = False
        self._thread_id: Optional[int] = None

    @property
    def aio_loop(self) -> asyncio.AbstractEventLoop:
        """Underlying asyncio loop, for hosts doing real asynchronous I/O."""
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread_id is not None

    @property
    def closed(self) -> bool:
        return self._loop.is_closed()

    @property
    def idle_active(self) -> bool:
        return self._idle_active

    def in_loop_thread(self) -> bool:
        return self._thread_id == threading.get_ident()

    def set_hook(self, phase: Phase, hook: Hook):
        self._hooks[Phase(phase)] = hook

    def start_idle(self):
        self._idle_active = True

    def stop_idle(self):
        self._idle_active = False

    def call_soon_threadsafe(self, fn: Callable[..., Any], *args) -> Future:
        """
        Marshal ``fn(*args)`` onto the loop thread.

        It runs at the start of the next iteration; the returned future
        carries its result or exception.
        """
        future: Future = Future()
        self._requests.append((fn, args, future))
        self.wake()
        return future

    def wake(self):
        """Cut the current I/O wait short. Thread-safe."""
        if self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._set_wakeup)
        except RuntimeError:
            # Closed concurrently; nothing left to wake.
            pass

    def stop(self):
        """
        Ask the loop to exit once the current iteration completes.

        Called outside run(), the request stays pending and the next run()
        exits after one iteration.
        """
        self._stop_requested.set()
        self.wake()

    def run(self, max_iterations: Optional[int] = None) -> int:
        """
        Drive iterations until stop() or until ``max_iterations`` ran.

        Returns:
            int: 0 when ended by stop(), 1 when the iteration budget ran out
        """
        if self.running:
            raise RuntimeError("loop is already running")
        if max_iterations is not None and max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        return self._loop.run_until_complete(self._drive(max_iterations))

    def close(self):
        if self.running:
            raise RuntimeError("cannot close a running loop")
        if not self._loop.is_closed():
            self._loop.close()

    async def _drive(self, max_iterations: Optional[int]) -> int:
        self._wakeup = asyncio.Event()
        self._thread_id = threading.get_ident()
        next_tick = self._loop.time()
        completed = 0
        try:
            while True:
                self._drain_requests()

                now = self._loop.time()
                if now >= next_tick:
                    self._dispatch(Phase.TIMER)
                    next_tick = now + self.tick_interval

                if self._idle_active:
                    self._dispatch(Phase.IDLE)

                self._dispatch(Phase.PREPARE)
                await self._poll(self._poll_timeout(next_tick))
                self._dispatch(Phase.CHECK)

                completed += 1
                self.iterations += 1
                if self._stop_requested.is_set():
                    return 0
                if max_iterations is not None and completed >= max_iterations:
                    return 1
        finally:
            self._stop_requested.clear()
            self._wakeup = None
            self._thread_id = None

    def _poll_timeout(self, next_tick: float) -> float:
        if self._idle_active or self._requests or self._stop_requested.is_set():
            return 0.0
        return max(0.0, next_tick - self._loop.time())

    async def _poll(self, timeout: float):
        if timeout <= 0:
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except asyncio.TimeoutError:
                pass
        self._wakeup.clear()

    def _set_wakeup(self):
        if self._wakeup is not None:
            self._wakeup.set()

    def _dispatch(self, phase: Phase):
        hook = self._hooks.get(phase)
        if hook is not None:
            hook()

    def _drain_requests(self):
        for _ in range(len(self._requests)):
            fn, args, future = self._requests.popleft()
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
