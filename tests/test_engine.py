"""
Integration tests for the cognitive synergy engine.

Drives the real loop with the in-process host and checks lifecycle,
isolate management, the run-then-settle protocol, attention ticks, fault
isolation and cross-thread marshaling.
"""

import threading
import time

import numpy as np
import pytest
from synergy.config import EngineConfig
from synergy.engine import CognitiveSynergyEngine, EngineState
from synergy.errors import HostError, NotInitializedError, UnknownIdError
from synergy.isolate import LocalHostRuntime

MiB = 1024 * 1024


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.001)


def make_engine(**options):
    host = options.pop("host", None)
    options.setdefault("cognitive_tick_ms", 1)
    options.setdefault("worker_threads", 1)
    engine = CognitiveSynergyEngine(EngineConfig(**options), host=host)
    assert engine.initialize()
    return engine


@pytest.fixture
def engine():
    eng = make_engine()
    yield eng
    eng.close()


def repost(handle, log, label):
    """Task that records itself and queues itself again."""
    def task():
        log.append(label)
        handle.post(task)
    return task


class FailingHost(LocalHostRuntime):
    def start(self, wake, executor=None):
        raise HostError("platform unavailable")


class TestLifecycle:
    """Test engine state transitions."""

    def test_initialize_is_idempotent(self):
        eng = CognitiveSynergyEngine(EngineConfig())
        assert eng.state is EngineState.UNINITIALIZED

        assert eng.initialize()
        loop = eng.loop
        assert eng.initialize()

        assert eng.loop is loop
        assert eng.state is EngineState.INITIALIZED
        eng.close()
        assert eng.state is EngineState.UNINITIALIZED

    def test_operations_require_initialize(self):
        eng = CognitiveSynergyEngine(EngineConfig())

        with pytest.raises(NotInitializedError):
            eng.create_isolate("a")
        with pytest.raises(NotInitializedError):
            eng.run()
        with pytest.raises(NotInitializedError):
            eng.schedule_maintenance(lambda: None)

    def test_initialize_failure_is_reported(self):
        """Test failure to acquire infrastructure surfaces as False."""
        eng = CognitiveSynergyEngine(EngineConfig(), host=FailingHost())

        assert eng.initialize() is False
        assert eng.state is EngineState.UNINITIALIZED
        assert eng.loop is None

    def test_run_returns_budget_exit_code(self, engine):
        assert engine.run(max_iterations=2) == 1
        assert engine.state is EngineState.STOPPED
        assert engine.iterations == 2

    def test_stop_from_task(self, engine):
        """Test stop requested inside a slice ends the loop after that iteration."""
        ctx = engine.create_isolate("main")
        ctx.handle.post(engine.stop)

        assert engine.run() == 0
        assert engine.state is EngineState.STOPPED
        assert engine.iterations == 1

    def test_run_again_after_stop(self, engine):
        """Test a stop issued while not running is honoured by the next run only."""
        engine.stop()
        assert engine.run() == 0
        assert engine.run(max_iterations=1) == 1

    def test_stop_from_other_thread(self):
        eng = make_engine(cognitive_tick_ms=60_000)
        worker = threading.Thread(target=eng.run)
        worker.start()
        wait_until(lambda: eng.loop.running)

        eng.stop()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert eng.state is EngineState.STOPPED
        eng.close()

    def test_close_running_engine_rejected(self, engine):
        def attempt():
            with pytest.raises(RuntimeError):
                engine.close()
            engine.stop()

        ctx = engine.create_isolate("main")
        ctx.handle.post(attempt)
        assert engine.run() == 0

    def test_context_manager(self):
        runtime = LocalHostRuntime()
        with CognitiveSynergyEngine(EngineConfig(), host=runtime) as eng:
            eng.create_isolate("a")
            assert runtime.handle_count() == 1

        assert runtime.handle_count() == 0
        assert eng.state is EngineState.UNINITIALIZED


class TestIsolateManagement:
    """Test create/destroy/get."""

    def test_create_and_get(self, engine):
        ctx = engine.create_isolate("main", sti=100, lti=90)

        assert engine.get_isolate("main") is ctx
        assert engine.get_isolate_count() == 1
        assert engine.get_sti("main") == 100
        assert engine.get_lti("main") == 90
        assert ctx.has_host

    def test_config_defaults_apply(self):
        eng = make_engine(default_sti=33.0, default_lti=44.0)
        ctx = eng.create_isolate("a")

        assert ctx.attention.as_tuple() == (33.0, 44.0)
        eng.close()

    def test_duplicate_returns_none(self, engine):
        first = engine.create_isolate("main")

        assert engine.create_isolate("main") is None
        assert engine.get_isolate("main") is first
        assert engine.get_isolate_count() == 1

    def test_allocation_failure_returns_none(self):
        """Test host allocation failure is recovered locally."""
        eng = make_engine(host=LocalHostRuntime(max_handles=1))
        assert eng.create_isolate("a") is not None

        assert eng.create_isolate("b") is None
        assert eng.get_isolate_count() == 1
        assert eng.get_isolate("b") is None
        eng.close()

    def test_invalid_id_allocates_nothing(self):
        """Test a rejected id never reaches the host."""
        runtime = LocalHostRuntime()
        eng = make_engine(host=runtime)

        for bad_id in ["", None, 42]:
            with pytest.raises(ValueError):
                eng.create_isolate(bad_id)

        assert runtime.handle_count() == 0
        assert eng.get_isolate_count() == 0
        eng.close()

    def test_destroy_unregisters_then_releases(self):
        runtime = LocalHostRuntime()
        eng = make_engine(host=runtime)
        ctx = eng.create_isolate("a")
        handle = ctx.handle

        eng.destroy_isolate("a")

        assert "a" not in eng.scheduler
        assert eng.get_isolate("a") is None
        assert handle.closed
        assert runtime.handle_count() == 0
        assert not ctx.has_host
        eng.close()

    def test_destroy_unknown_is_noop(self, engine):
        engine.create_isolate("a")

        engine.destroy_isolate("missing")
        engine.destroy_isolate("missing")

        assert engine.get_isolate_count() == 1

    def test_destroy_is_idempotent(self, engine):
        engine.create_isolate("a")
        engine.destroy_isolate("a")
        engine.destroy_isolate("a")

        assert engine.get_isolate_count() == 0

    def test_destroyed_isolate_never_selected(self, engine):
        engine.create_isolate("a", sti=100)
        engine.create_isolate("b", sti=10)
        engine.destroy_isolate("a")

        assert engine.scheduler.select_next().id == "b"


class TestAccessors:
    """Test the attention query surface."""

    def test_unknown_ids_are_neutral(self, engine):
        assert engine.get_sti("missing") == 0.0
        assert engine.get_lti("missing") == 0.0
        assert engine.get_memory_usage("missing") == 0

        engine.set_sti("missing", 10.0)
        engine.set_lti("missing", 10.0)
        assert engine.get_isolate_count() == 0

    def test_require_isolate(self, engine):
        with pytest.raises(UnknownIdError):
            engine.require_isolate("missing")

    def test_set_and_get(self, engine):
        engine.create_isolate("a")
        engine.set_sti("a", 100)
        engine.set_lti("a", 80)

        assert engine.get_sti("a") == 100
        assert engine.get_lti("a") == 80

    def test_memory_usage(self, engine):
        ctx = engine.create_isolate("a")
        ctx.handle.adjust_memory(5 * MiB)

        assert engine.get_memory_usage("a") == 5 * MiB


class TestControlLoop:
    """Test the per-iteration protocol."""

    def test_highest_attention_runs(self, engine):
        log = []
        high = engine.create_isolate("high", sti=100)
        low = engine.create_isolate("low", sti=10)
        for _ in range(5):
            high.handle.post(log.append, "high")
            low.handle.post(log.append, "low")

        engine.run(max_iterations=3)

        assert log == ["high"] * 5
        assert low.handle.pending() == 5

    def test_slice_budget(self):
        eng = make_engine(max_microtasks_per_slice=2)
        ctx = eng.create_isolate("a")
        log = []
        for i in range(5):
            ctx.handle.post(log.append, i)

        eng.run(max_iterations=1)

        assert log == [0, 1]
        eng.close()

    def test_run_then_settle(self, engine):
        """Test every slice is checkpointed within its own iteration."""
        ctx = engine.create_isolate("a")
        handle = ctx.handle
        log = []

        def task():
            assert engine.current_isolate is ctx
            log.append("slice")
            handle.defer(log.append, "settled")

        handle.post(task)
        engine.run(max_iterations=1)

        assert log == ["slice", "settled"]
        assert engine.current_isolate is None

    def test_round_robin(self):
        eng = make_engine(attention_based_scheduling=False, max_microtasks_per_slice=1)
        log = []
        for isolate_id in ["a", "b", "c"]:
            ctx = eng.create_isolate(isolate_id)
            ctx.handle.post(repost(ctx.handle, log, isolate_id))

        eng.run(max_iterations=6)

        assert log == ["a", "b", "c", "a", "b", "c"]
        eng.close()

    def test_worker_results_observed_on_loop_thread(self, engine):
        """Test pool results come back through the slice, not the worker."""
        ctx = engine.create_isolate("io")
        seen = []

        def on_result(fut):
            seen.append((fut.result(), threading.get_ident()))
            engine.stop()

        ctx.handle.post(lambda: ctx.handle.run_in_worker(sum, [1, 2, 3], callback=on_result))

        assert engine.run() == 0
        assert seen == [(6, threading.get_ident())]


class TestFaultIsolation:
    """Test that one broken isolate never halts the loop."""

    def test_slice_failure_is_isolated(self, engine):
        bad = engine.create_isolate("bad", sti=100)
        good = engine.create_isolate("good", sti=50)
        bad_handle = bad.handle

        def broken():
            bad_handle.defer(lambda: None)
            raise RuntimeError("boom")

        bad_handle.post(broken)
        assert engine.run(max_iterations=1) == 1

        assert bad.fault_count == 1
        assert "RuntimeError" in bad.last_error
        # Skipped for the rest of the iteration: its continuation is still queued.
        assert bad_handle.pending_microtasks() == 1
        assert good.fault_count == 0
        assert engine.metrics.get_metrics_summary()["faults"] == 1

    def test_loop_continues_after_fault(self, engine):
        bad = engine.create_isolate("bad", sti=100)
        bad.handle.post(lambda: 1 / 0)
        ran = []
        bad.handle.post(ran.append, "after")

        assert engine.run(max_iterations=3) == 1
        assert ran == ["after"]
        assert bad.fault_count == 1

    def test_checkpoint_failure_is_recorded(self, engine):
        ctx = engine.create_isolate("a")

        def task():
            ctx.handle.defer(lambda: {}["missing"])

        ctx.handle.post(task)
        engine.run(max_iterations=1)

        assert ctx.fault_count == 1
        assert ctx.last_error.startswith("checkpoint")

    def test_broken_memory_sampling_keeps_loop_running(self, engine, monkeypatch):
        """Test a host whose heap statistics fail cannot halt the tick phase."""
        ctx = engine.create_isolate("a", sti=20)
        ran = []
        ctx.handle.post(ran.append, "task")

        def unavailable():
            raise RuntimeError("heap stats unavailable")

        monkeypatch.setattr(ctx.handle, "memory_usage", unavailable)

        assert engine.run(max_iterations=5) == 1
        assert ran == ["task"]
        assert engine.ticks >= 1
        assert 1.0 <= ctx.sti < 20
        assert engine.get_stats()["isolates"]["a"]["memory"] == 0

    def test_negative_memory_reading_is_harmless(self, engine, monkeypatch):
        ctx = engine.create_isolate("a", sti=20)
        monkeypatch.setattr(ctx.handle, "memory_usage", lambda: -5 * MiB)

        assert engine.run(max_iterations=2) == 1
        assert engine.get_memory_usage("a") == 0
        assert ctx.sti <= 20

    def test_isolate_without_host_is_harmless(self, engine):
        ctx = engine.create_isolate("a")
        engine.host.release(ctx.detach())

        assert engine.run(max_iterations=2) == 1
        assert ctx.fault_count == 0


class TestAttentionTick:
    """Test the timer phase."""

    def test_decay_then_update(self, engine):
        """Test one tick decays first, then applies memory pressure."""
        ctx = engine.create_isolate("a", sti=20)
        ctx.handle.adjust_memory(100 * MiB)

        engine.run(max_iterations=1)

        assert engine.ticks == 1
        assert np.isclose(ctx.sti, 20 * 0.99 * 0.5)

    def test_floor_over_many_ticks(self, engine):
        ctx = engine.create_isolate("a", sti=20)
        ctx.handle.adjust_memory(100 * MiB)

        for _ in range(50):
            engine._on_cognitive_tick()

        assert ctx.sti == 1.0

    def test_history_when_monitoring(self, engine):
        engine.create_isolate("a", sti=20)
        engine.run(max_iterations=1)

        assert len(engine.attention_history) == 1
        assert np.isclose(engine.attention_history[0]["a"], 19.8)

    def test_no_history_without_monitoring(self):
        eng = make_engine(enable_monitoring=False)
        eng.create_isolate("a")
        eng.run(max_iterations=1)

        assert len(eng.attention_history) == 0
        assert "metrics" not in eng.get_stats()
        eng.close()


class TestMaintenance:
    """Test the idle phase."""

    def test_requeue_until_done(self):
        eng = make_engine()
        calls = []

        def flush():
            calls.append(1)
            return len(calls) < 3

        eng.schedule_maintenance(flush)
        assert eng.run(max_iterations=3) == 1

        assert len(calls) == 3
        assert eng.pending_maintenance() == 0
        assert not eng.loop.idle_active
        eng.close()

    def test_failure_does_not_abort(self):
        eng = make_engine()

        def broken():
            raise ValueError("bad delta")

        eng.schedule_maintenance(broken)
        assert eng.run(max_iterations=1) == 1
        assert not eng.loop.idle_active
        eng.close()


class TestMarshaling:
    """Test the loop-thread ownership rule."""

    def test_foreign_thread_mutation_rejected(self):
        eng = make_engine(cognitive_tick_ms=60_000)
        worker = threading.Thread(target=eng.run)
        worker.start()
        wait_until(lambda: eng.loop.running)

        try:
            with pytest.raises(RuntimeError):
                eng.create_isolate("x")

            ctx = eng.call_soon_threadsafe(eng.create_isolate, "x").result(timeout=5)
            assert ctx is not None
            assert ctx.id == "x"

            eng.call_soon_threadsafe(eng.destroy_isolate, "x").result(timeout=5)
            assert eng.get_isolate("x") is None
        finally:
            eng.stop()
            worker.join(timeout=5)
        eng.close()


class TestStats:
    def test_stats_shape(self, engine):
        engine.create_isolate("a", sti=80)
        engine.create_isolate("b", sti=20)
        engine.run(max_iterations=2)

        stats = engine.get_stats()

        assert stats["isolateCount"] == 2
        assert stats["state"] == "stopped"
        assert set(stats["isolates"]) == {"a", "b"}
        assert stats["isolates"]["a"]["slices"] == 2
        assert 0 < stats["attention"]["fairness"] <= 1
        assert stats["metrics"]["latency.slice"]["count"] == 2
