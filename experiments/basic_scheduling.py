"""
Basic scheduling experiment for the Cognitive Synergy Engine.

Runs a handful of isolates with different attention and memory profiles,
demonstrating:
- Attention-based selection of the highest-STI isolate
- Decay pulling attention towards the floor over time
- Memory pressure penalising heavy isolates
- Background work handed back through the worker pool

Optionally compares against round-robin scheduling on the same workload.
"""

import time
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from synergy import CognitiveSynergyEngine, EngineConfig
from synergy.utils import compute_attention_metrics, selection_shares

MiB = 1024 * 1024

WORKLOAD = [
    # (isolate id, initial STI, bytes allocated per task)
    ('planner', 100.0, 0),
    ('perception', 80.0, 2 * MiB),
    ('memory-consolidation', 60.0, 8 * MiB),
    ('logger', 20.0, 0),
]


def _busy_task(context, selections, alloc_bytes):
    """Task that records its slice, grows the heap and queues itself again."""
    handle = context.handle

    def task():
        selections.append(context.id)
        handle.adjust_memory(alloc_bytes)
        sum(i * i for i in range(2000))
        handle.defer(handle.adjust_memory, -(alloc_bytes // 2))
        handle.post(task)

    return task


def _io_task(context, selections, results):
    """Task that offloads blocking work and re-arms itself with the result."""
    handle = context.handle

    def on_result(fut):
        selections.append(context.id)
        results.append(fut.result())
        handle.post(task)

    def task():
        handle.run_in_worker(time.sleep, 0.002, callback=on_result)

    return task


def run_basic_scheduling(iterations: int = 2000,
                         tick_ms: float = 1.0,
                         attention_based: bool = True,
                         with_io: bool = True,
                         verbose: bool = True,
                         base_config: Optional[EngineConfig] = None):
    """
    Run one scheduling experiment.

    Args:
        iterations: Loop iterations to drive
        tick_ms: Attention tick interval in milliseconds
        attention_based: Attention (True) or round-robin (False) selection
        with_io: Add an isolate whose work runs on the worker pool
        verbose: Whether to print progress
        base_config: Config the run options are applied on top of
            (e.g. loaded with EngineConfig.from_env)

    Returns:
        dict: Configuration, timing, selection shares and final engine stats
    """
    mode = 'attention' if attention_based else 'round-robin'
    if verbose:
        print("=" * 70)
        print(f"COGNITIVE SYNERGY ENGINE - Basic Scheduling ({mode})")
        print("=" * 70)
        print(f"  Iterations: {iterations}")
        print(f"  Tick: {tick_ms} ms")
        print(f"  Isolates: {', '.join(i for i, _, _ in WORKLOAD)}"
              f"{', io' if with_io else ''}")
        print("=" * 70)

    config = (base_config or EngineConfig()).model_copy(update={
        'cognitive_tick_ms': tick_ms,
        'attention_based_scheduling': attention_based,
        'max_microtasks_per_slice': 10,
    })
    selections = []
    io_results = []

    with CognitiveSynergyEngine(config) as engine:
        for isolate_id, sti, alloc in WORKLOAD:
            context = engine.create_isolate(isolate_id, sti=sti)
            context.handle.post(_busy_task(context, selections, alloc))

        if with_io:
            context = engine.create_isolate('io', sti=40.0)
            context.handle.post(_io_task(context, selections, io_results))

        start_time = time.time()
        exit_code = engine.run(max_iterations=iterations)
        elapsed = time.time() - start_time

        stats = engine.get_stats()
        history = list(engine.attention_history)
        isolate_ids = engine.isolate_ids()

    shares = selection_shares(selections, isolate_ids)
    final_sti = [stats['isolates'][i]['sti'] for i in isolate_ids]
    final_memory = [stats['isolates'][i]['memory'] for i in isolate_ids]

    results = {
        'config': {
            'iterations': iterations,
            'tick_ms': tick_ms,
            'mode': mode,
        },
        'timing': {
            'total': elapsed,
            'iterations_per_second': iterations / elapsed if elapsed > 0 else 0.0,
        },
        'exit_code': exit_code,
        'selections': selections,
        'shares': shares,
        'history': history,
        'isolate_ids': isolate_ids,
        'io_completions': len(io_results),
        'attention': compute_attention_metrics(final_sti, final_memory),
        'stats': stats,
    }

    if verbose:
        print(f"\n  ✓ Ran {stats['iterations']} iterations, {stats['ticks']} ticks "
              f"in {elapsed:.2f}s")
        print("\nSlice shares:")
        for isolate_id in isolate_ids:
            info = stats['isolates'][isolate_id]
            print(f"  {isolate_id:<22} share={shares[isolate_id]:.3f} "
                  f"sti={info['sti']:8.3f} memory={info['memory'] / MiB:7.1f} MiB "
                  f"faults={info['faults']}")
        if with_io:
            print(f"\nWorker-pool completions: {len(io_results)}")
        print(f"Fairness (Jain): {results['attention']['fairness']:.3f}")
        print("=" * 70)

    return results


def main():
    """Main entry point for the scheduling experiment."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Run Cognitive Synergy Engine basic scheduling experiment'
    )
    parser.add_argument('--iterations', '-n', type=int, default=2000,
                        help='Loop iterations (default: 2000)')
    parser.add_argument('--tick-ms', type=float, default=1.0,
                        help='Attention tick in ms (default: 1.0)')
    parser.add_argument('--round-robin', action='store_true',
                        help='Use round-robin instead of attention-based selection')
    parser.add_argument('--compare', action='store_true',
                        help='Run both modes on the same workload')
    parser.add_argument('--no-io', action='store_true',
                        help='Skip the worker-pool isolate')
    parser.add_argument('--log-level', default=None,
                        help='Engine log level (default: SYNERGY_LOG_LEVEL or INFO)')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress output')

    args = parser.parse_args()
    settings = EngineConfig.from_env()
    if args.log_level:
        settings = settings.model_copy(update={'log_level': args.log_level})
    settings.configure_logging()

    modes = [True, False] if args.compare else [not args.round_robin]
    results = [
        run_basic_scheduling(
            iterations=args.iterations,
            tick_ms=args.tick_ms,
            attention_based=attention_based,
            with_io=not args.no_io,
            verbose=not args.quiet,
            base_config=settings,
        )
        for attention_based in modes
    ]

    return results


if __name__ == '__main__':
    main()
