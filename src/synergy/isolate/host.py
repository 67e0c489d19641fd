"""
Execution host boundary.

The engine never interprets what runs inside an isolate. It only talks to a
host runtime through the capabilities declared here: allocate/release an
opaque per-isolate handle, run one bounded slice of work, checkpoint
deferred continuations, and report resource usage.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import Callable, Optional


class HostHandle(ABC):
    """Opaque per-isolate execution state owned by an IsolateContext."""

    @abstractmethod
    def run_slice(self, max_units: int) -> int:
        """
        Execute up to ``max_units`` units of queued work.

        Must return within a bounded time regardless of ``max_units``.

        Returns:
            int: Units actually executed
        """

    @abstractmethod
    def checkpoint(self) -> int:
        """
        Settle continuations deferred by the previous slice.

        Returns:
            int: Continuations executed
        """

    @abstractmethod
    def memory_usage(self) -> int:
        """Current footprint in bytes. Non-blocking."""

    @abstractmethod
    def cpu_time(self) -> float:
        """Accumulated CPU time in seconds. Non-blocking."""


class HostRuntime(ABC):
    """Allocates and releases host handles for the engine."""

    @abstractmethod
    def start(self, wake: Callable[[], None], executor: Optional[Executor] = None) -> None:
        """
        Prepare the runtime before any allocation.

        Args:
            wake: Thread-safe callable that cuts the loop's I/O wait short
                when new work arrives for some handle
            executor: Background worker pool for host-internal blocking I/O
        """

    @abstractmethod
    def allocate(self, isolate_id: str) -> HostHandle:
        """Allocate a fresh handle. Raises HostAllocationError on failure."""

    @abstractmethod
    def release(self, handle: HostHandle) -> None:
        """Release a handle previously returned by allocate()."""

    def shutdown(self) -> None:
        """Tear down runtime-wide state."""
