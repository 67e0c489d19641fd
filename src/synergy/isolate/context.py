"""
IsolateContext: a named, independently-schedulable execution unit.

Wraps an opaque host handle and owns the context's AttentionValue. The
scheduler and engine only ever use the capabilities defined here.
"""

import time
from typing import Optional

import structlog

from synergy.attention.value import AttentionValue
from synergy.errors import HostError
from synergy.isolate.host import HostHandle

logger = structlog.get_logger(__name__)


class IsolateContext:
    """
    Schedulable execution unit.

    Attributes:
        id (str): Unique, immutable identifier
        attention (AttentionValue): Owned attention value
        slices_run (int): Slices executed so far
        fault_count (int): Slice/checkpoint failures recorded by the engine
        last_error (str): Description of the most recent fault
    """

    def __init__(self, isolate_id: str, handle: Optional[HostHandle],
                 attention: Optional[AttentionValue] = None):
        if not isinstance(isolate_id, str) or not isolate_id:
            raise ValueError("isolate id must be a non-empty string")

        self._id = isolate_id
        self._handle = handle
        self._attention = attention if attention is not None else AttentionValue()

        self._slice_pending = False
        self._memory_sample = 0
        self._cpu_sample = 0.0

        self.slices_run = 0
        self.last_slice_seconds = 0.0
        self.fault_count = 0
        self.last_error: Optional[str] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def handle(self) -> Optional[HostHandle]:
        return self._handle

    @property
    def has_host(self) -> bool:
        return self._handle is not None

    # Attention accessors, used by the scheduler.

    @property
    def attention(self) -> AttentionValue:
        return self._attention

    def get_attention(self) -> AttentionValue:
        return self._attention

    def set_attention(self, attention: AttentionValue):
        self._attention = attention

    @property
    def sti(self) -> float:
        return self._attention.sti

    @sti.setter
    def sti(self, value: float):
        self._attention.sti = value

    @property
    def lti(self) -> float:
        return self._attention.lti

    @lti.setter
    def lti(self, value: float):
        self._attention.lti = value

    # Execution capabilities.

    def run_slice(self, max_units: int) -> int:
        """
        Let the host execute up to ``max_units`` units of queued work.

        A context without host state treats this as a no-op.

        Args:
            max_units: Slice budget, at least 1

        Returns:
            int: Units executed
        """
        if max_units < 1:
            raise ValueError(f"max_units must be at least 1, got {max_units}")
        if self._handle is None:
            return 0

        # A slice that raises is never checkpointed.
        self._slice_pending = False
        started = time.perf_counter()
        try:
            executed = self._handle.run_slice(max_units)
        finally:
            self.last_slice_seconds = time.perf_counter() - started
        self.slices_run += 1
        self._slice_pending = True
        return executed

    def checkpoint(self) -> int:
        """
        Settle continuations deferred by the preceding slice.

        Effective at most once per slice; any other call returns 0.
        """
        if self._handle is None or not self._slice_pending:
            return 0
        self._slice_pending = False
        return self._handle.checkpoint()

    # Resource reporting; best effort, never raises for host failures.

    def report_memory_usage(self) -> int:
        if self._handle is not None:
            try:
                self._memory_sample = max(0, int(self._handle.memory_usage()))
            except HostError as exc:
                logger.debug("memory_sample_unavailable", isolate_id=self._id, error=str(exc))
            except Exception as exc:
                logger.warning("memory_sample_failed", isolate_id=self._id,
                               error=str(exc), error_type=type(exc).__name__)
        return self._memory_sample

    def report_cpu_time(self) -> float:
        if self._handle is not None:
            try:
                self._cpu_sample = max(0.0, float(self._handle.cpu_time()))
            except HostError as exc:
                logger.debug("cpu_sample_unavailable", isolate_id=self._id, error=str(exc))
            except Exception as exc:
                logger.warning("cpu_sample_failed", isolate_id=self._id,
                               error=str(exc), error_type=type(exc).__name__)
        return self._cpu_sample

    # Lifecycle.

    def record_fault(self, phase: str, exc: BaseException):
        self.fault_count += 1
        self.last_error = f"{phase}: {type(exc).__name__}: {exc}"
        self._slice_pending = False

    def detach(self) -> Optional[HostHandle]:
        """Drop the host handle and hand it back for release."""
        handle, self._handle = self._handle, None
        self._slice_pending = False
        return handle

    def __repr__(self):
        return (f"IsolateContext(id={self._id!r}, sti={self._attention.sti:.3f}, "
                f"lti={self._attention.lti:.3f}, host={'attached' if self.has_host else 'none'})")
