"""
Cognitive Synergy Engine: multiplexes isolates over one control loop.

Every loop iteration the scheduler picks one isolate (prepare phase), the
isolate runs one bounded slice, and after the loop's I/O wait the same
isolate settles its deferred continuations (check phase). A timer phase
decays and re-weights attention at its own cadence, and an idle phase runs
low-priority maintenance without ever keeping the loop from blocking.

Threading: the registry and scheduler are owned by the loop thread. Other
threads may only call stop(), wake() and call_soon_threadsafe().
"""

import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

import structlog

from synergy.attention.value import AttentionValue
from synergy.config import EngineConfig
from synergy.errors import HostAllocationError, HostError, NotInitializedError, UnknownIdError
from synergy.isolate.context import IsolateContext
from synergy.isolate.host import HostRuntime
from synergy.isolate.local import LocalHostRuntime
from synergy.loop import Phase, PhaseLoop
from synergy.observability import MetricsCollector
from synergy.scheduler import CognitiveScheduler
from synergy.utils import compute_attention_metrics

logger = structlog.get_logger(__name__)

MaintenanceTask = Callable[[], Any]


class EngineState(str, Enum):
    """Lifecycle of the engine."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"


class CognitiveSynergyEngine:
    """
    Owns the control loop, the isolate registry and the scheduler.

    Destroying an isolate whose slice is in flight (e.g. from inside one of
    its own tasks) is the caller's responsibility to avoid; the engine only
    guarantees that a destroyed isolate is never selected or checkpointed
    afterwards.

    Attributes:
        config (EngineConfig): Engine options
        host (HostRuntime): Execution host collaborator
        scheduler (CognitiveScheduler): Selection and attention policy
        metrics (MetricsCollector): Slice/tick metrics, active when monitoring is on
        attention_history (deque): Per-tick {isolate_id: sti} snapshots when monitoring
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 host: Optional[HostRuntime] = None):
        self.config = config or EngineConfig()
        self.host = host if host is not None else LocalHostRuntime()
        self.scheduler = CognitiveScheduler(
            attention_based=self.config.attention_based_scheduling,
            decay_rate=self.config.decay_rate,
            memory_reference_bytes=self.config.memory_reference_bytes,
            sti_floor=self.config.sti_floor,
        )
        self.metrics = MetricsCollector(enabled=self.config.enable_monitoring)
        self.attention_history: Deque[Dict[str, float]] = deque(maxlen=self.config.history_limit)

        self._isolates: Dict[str, IsolateContext] = {}
        self._maintenance: Deque[MaintenanceTask] = deque()
        self._loop: Optional[PhaseLoop] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._state = EngineState.UNINITIALIZED

        self._current: Optional[IsolateContext] = None
        self._current_faulted = False
        self.ticks = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def loop(self) -> Optional[PhaseLoop]:
        return self._loop

    @property
    def iterations(self) -> int:
        return self._loop.iterations if self._loop is not None else 0

    @property
    def current_isolate(self) -> Optional[IsolateContext]:
        """Context selected in this iteration; only set between prepare and check."""
        return self._current

    def initialize(self) -> bool:
        """
        Acquire the loop, worker pool and host runtime and wire the phase hooks.

        Calling it again on an initialized engine is a no-op.

        Returns:
            bool: False if the infrastructure could not be acquired
        """
        if self._state is not EngineState.UNINITIALIZED:
            return True

        try:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.worker_threads,
                thread_name_prefix="synergy-worker",
            )
            self._loop = PhaseLoop(self.config.tick_interval, executor=self._executor)
            self.host.start(self._loop.wake, self._executor)
        except (OSError, RuntimeError, HostError) as exc:
            logger.error("engine_initialize_failed", error=str(exc))
            self._release_infrastructure()
            return False

        hooks = {
            Phase.PREPARE: self._on_prepare,
            Phase.CHECK: self._on_check,
            Phase.TIMER: self._on_cognitive_tick,
            Phase.IDLE: self._on_idle,
        }
        for phase, hook in hooks.items():
            self._loop.set_hook(phase, hook)

        self._state = EngineState.INITIALIZED
        logger.info(
            "engine_initialized",
            tick_ms=self.config.cognitive_tick_ms,
            worker_threads=self.config.worker_threads,
            attention_based=self.config.attention_based_scheduling,
        )
        return True

    def run(self, max_iterations: Optional[int] = None) -> int:
        """
        Run the control loop on the calling thread until stop().

        Args:
            max_iterations: Optional iteration budget for this call

        Returns:
            int: 0 when ended by stop(), 1 when the budget ran out
        """
        self._require_initialized()
        if self._state is EngineState.RUNNING:
            raise RuntimeError("engine is already running")

        self._state = EngineState.RUNNING
        logger.info("engine_run_started", isolates=len(self._isolates))
        try:
            exit_code = self._loop.run(max_iterations)
        finally:
            self._state = EngineState.STOPPED
            self._current = None
        logger.info("engine_run_finished", exit_code=exit_code, iterations=self.iterations)
        return exit_code

    def stop(self):
        """
        Ask the loop to exit at the end of the current iteration.

        Safe from any thread; never touches isolate state. A stop issued
        while the engine is not running stays pending, so the next run()
        exits after its first iteration.
        """
        if self._loop is not None:
            self._loop.stop()

    def wake(self):
        """Cut the current I/O wait short. Thread-safe."""
        if self._loop is not None:
            self._loop.wake()

    def call_soon_threadsafe(self, fn: Callable[..., Any], *args) -> Future:
        """Marshal a call (e.g. create_isolate) onto the loop thread."""
        self._require_initialized()
        return self._loop.call_soon_threadsafe(fn, *args)

    def close(self):
        """Destroy every isolate and release the loop infrastructure."""
        if self._state is EngineState.RUNNING:
            raise RuntimeError("cannot close a running engine; stop() it first")
        if self._state is EngineState.UNINITIALIZED:
            return

        for isolate_id in list(self._isolates):
            self.destroy_isolate(isolate_id)
        self._maintenance.clear()
        self.host.shutdown()
        self._release_infrastructure()
        self._state = EngineState.UNINITIALIZED
        logger.info("engine_closed")

    def __enter__(self):
        if not self.initialize():
            raise RuntimeError("Failed to initialize cognitive synergy engine")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Isolate management
    # ------------------------------------------------------------------

    def create_isolate(self, isolate_id: str, sti: Optional[float] = None,
                       lti: Optional[float] = None) -> Optional[IsolateContext]:
        """
        Allocate a host context, wrap it and register it with the scheduler.

        Args:
            isolate_id: Unique identifier
            sti: Initial short-term importance (config default if omitted)
            lti: Initial long-term importance (config default if omitted)

        Returns:
            IsolateContext, or None if the id exists or allocation failed

        Raises:
            ValueError: If the id is not a non-empty string
        """
        self._require_initialized()
        self._require_loop_thread("create_isolate")

        if not isinstance(isolate_id, str) or not isolate_id:
            raise ValueError("isolate id must be a non-empty string")

        if isolate_id in self._isolates:
            logger.warning("isolate_create_rejected", isolate_id=isolate_id, reason="duplicate id")
            return None

        attention = AttentionValue(
            sti=self.config.default_sti if sti is None else sti,
            lti=self.config.default_lti if lti is None else lti,
            floor=self.config.sti_floor,
        )

        try:
            handle = self.host.allocate(isolate_id)
        except HostAllocationError as exc:
            logger.warning("isolate_allocation_failed", isolate_id=isolate_id, error=str(exc))
            return None

        context = IsolateContext(isolate_id, handle, attention)
        self._isolates[isolate_id] = context
        self.scheduler.register_isolate(context)

        self.metrics.set_gauge("isolates", len(self._isolates))
        logger.info("isolate_created", isolate_id=isolate_id, sti=attention.sti, lti=attention.lti)
        return context

    def destroy_isolate(self, isolate_id: str):
        """
        Unregister an isolate, then release its host context.

        Unknown ids are ignored.
        """
        self._require_loop_thread("destroy_isolate")

        context = self._isolates.get(isolate_id)
        if context is None:
            return

        self.scheduler.unregister_isolate(isolate_id)
        del self._isolates[isolate_id]
        if self._current is context:
            self._current = None

        handle = context.detach()
        if handle is not None:
            self.host.release(handle)

        self.metrics.set_gauge("isolates", len(self._isolates))
        logger.info("isolate_destroyed", isolate_id=isolate_id)

    def get_isolate(self, isolate_id: str) -> Optional[IsolateContext]:
        return self._isolates.get(isolate_id)

    def require_isolate(self, isolate_id: str) -> IsolateContext:
        context = self._isolates.get(isolate_id)
        if context is None:
            raise UnknownIdError(isolate_id)
        return context

    def isolate_ids(self) -> List[str]:
        return list(self._isolates)

    # ------------------------------------------------------------------
    # Attention accessors; unknown ids read as 0 and writes are ignored
    # ------------------------------------------------------------------

    def get_sti(self, isolate_id: str) -> float:
        context = self._isolates.get(isolate_id)
        return context.sti if context is not None else 0.0

    def set_sti(self, isolate_id: str, value: float):
        context = self._isolates.get(isolate_id)
        if context is not None:
            context.sti = value

    def get_lti(self, isolate_id: str) -> float:
        context = self._isolates.get(isolate_id)
        return context.lti if context is not None else 0.0

    def set_lti(self, isolate_id: str, value: float):
        context = self._isolates.get(isolate_id)
        if context is not None:
            context.lti = value

    def get_memory_usage(self, isolate_id: str) -> int:
        context = self._isolates.get(isolate_id)
        return context.report_memory_usage() if context is not None else 0

    def get_isolate_count(self) -> int:
        return self.scheduler.isolate_count()

    # ------------------------------------------------------------------
    # Maintenance and introspection
    # ------------------------------------------------------------------

    def schedule_maintenance(self, task: MaintenanceTask):
        """
        Queue low-priority work for the idle phase.

        One task runs per idle phase. A task that returns a truthy value is
        queued again; the idle phase switches itself off once the queue is
        empty.
        """
        self._require_initialized()
        self._require_loop_thread("schedule_maintenance")
        self._maintenance.append(task)
        self._loop.start_idle()
        self._loop.wake()

    def pending_maintenance(self) -> int:
        return len(self._maintenance)

    def get_stats(self) -> Dict[str, Any]:
        """
        Snapshot of engine state.

        Returns:
            dict: state, counters, per-isolate attention/faults, attention
            metrics and (when monitoring) the metrics summary
        """
        contexts = self.scheduler.candidates()
        sti = self.scheduler.sti_vector()
        memory = [c.report_memory_usage() for c in contexts]

        stats = {
            "state": self._state.value,
            "isolateCount": len(contexts),
            "iterations": self.iterations,
            "ticks": self.ticks,
            "attentionBased": self.scheduler.attention_based,
            "isolates": {
                c.id: {
                    "sti": c.sti,
                    "lti": c.lti,
                    "memory": m,
                    "cpuTime": c.report_cpu_time(),
                    "slices": c.slices_run,
                    "faults": c.fault_count,
                    "lastError": c.last_error,
                }
                for c, m in zip(contexts, memory)
            },
            "attention": compute_attention_metrics(sti, memory),
        }
        if self.config.enable_monitoring:
            stats["metrics"] = self.metrics.get_metrics_summary()
        return stats

    # ------------------------------------------------------------------
    # Phase hooks
    # ------------------------------------------------------------------

    def _on_prepare(self):
        context = self.scheduler.select_next()
        self._current = context
        self._current_faulted = False
        if context is None:
            return

        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(isolate_id=context.id):
            try:
                context.run_slice(self.config.max_microtasks_per_slice)
            except Exception as exc:
                self._record_fault(context, "run_slice", exc)
                return

        self.metrics.record_latency("slice", (time.perf_counter() - started) * 1000.0)
        self.metrics.increment_counter("slices")

    def _on_check(self):
        context, self._current = self._current, None
        if context is None or self._current_faulted:
            return
        if self._isolates.get(context.id) is not context:
            return

        with structlog.contextvars.bound_contextvars(isolate_id=context.id):
            try:
                context.checkpoint()
            except Exception as exc:
                self._record_fault(context, "checkpoint", exc)

    def _on_cognitive_tick(self):
        # Decay first so one memory sample is never applied twice without it.
        self.scheduler.decay_attention()
        self.scheduler.update_attention()
        self.ticks += 1

        if self.config.enable_monitoring:
            self.metrics.increment_counter("ticks")
            self.attention_history.append(
                {isolate_id: sti for isolate_id, (sti, _) in self.scheduler.snapshot().items()}
            )

    def _on_idle(self):
        if not self._maintenance:
            self._loop.stop_idle()
            return

        task = self._maintenance.popleft()
        try:
            more = task()
        except Exception as exc:
            logger.warning("maintenance_task_failed", task=repr(task), error=str(exc))
            more = False

        if more:
            self._maintenance.append(task)
        if not self._maintenance:
            self._loop.stop_idle()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record_fault(self, context: IsolateContext, phase: str, exc: Exception):
        self._current_faulted = True
        context.record_fault(phase, exc)
        self.metrics.increment_counter("faults")
        logger.warning(
            "isolate_fault",
            isolate_id=context.id,
            phase=phase,
            error=str(exc),
            error_type=type(exc).__name__,
            faults=context.fault_count,
        )

    def _require_initialized(self):
        if self._state is EngineState.UNINITIALIZED:
            raise NotInitializedError()

    def _require_loop_thread(self, operation: str):
        if self._loop is not None and self._loop.running and not self._loop.in_loop_thread():
            raise RuntimeError(
                f"{operation} must run on the loop thread; use call_soon_threadsafe()"
            )

    def _release_infrastructure(self):
        if self._loop is not None:
            self._loop.close()
            self._loop = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __repr__(self):
        return (f"CognitiveSynergyEngine(state={self._state.value}, "
                f"isolates={len(self._isolates)}, ticks={self.ticks})")
