"""
Visualize results from a Cognitive Synergy Engine scheduling run.

Runs the basic scheduling workload and saves plots of the attention
history, the slice shares and (with --compare) attention vs round-robin.
"""

import os
import sys
from pathlib import Path
import matplotlib.pyplot as plt

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))
sys.path.insert(0, str(Path(__file__).parent.parent))

from experiments.basic_scheduling import run_basic_scheduling
from synergy.attention import STI_FLOOR
from synergy.config import EngineConfig
from visualization.attention_plots import (
    plot_attention_history,
    plot_mode_comparison,
    plot_selection_shares
)


def visualize_results(results, output_dir='./results'):
    """
    Create all plots for one scheduling run.

    Args:
        results: Output of run_basic_scheduling
        output_dir: Directory to save plots
    """
    os.makedirs(output_dir, exist_ok=True)
    mode = results['config']['mode']

    print(f"\n📊 Generating visualizations ({mode})...")

    print("  [1/2] Attention history...")
    fig = plot_attention_history(
        results['history'],
        results['isolate_ids'],
        sti_floor=STI_FLOOR,
        log_scale=True,
        save_path=f'{output_dir}/attention_history_{mode}.png'
    )
    plt.close(fig)

    print("  [2/2] Slice shares...")
    fig = plot_selection_shares(
        results['shares'],
        title=f"Slice Shares ({mode})",
        save_path=f'{output_dir}/selection_shares_{mode}.png'
    )
    plt.close(fig)

    print(f"  ✓ Saved to {output_dir}")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Visualize Cognitive Synergy Engine scheduling results',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Attention-based run
  python visualize_results.py

  # Compare against round-robin with a slower tick
  python visualize_results.py --compare --tick-ms 5 --iterations 5000
        """
    )

    parser.add_argument('--iterations', '-n', type=int, default=2000,
                        help='Loop iterations (default: 2000)')
    parser.add_argument('--tick-ms', type=float, default=1.0,
                        help='Attention tick in ms (default: 1.0)')
    parser.add_argument('--compare', action='store_true',
                        help='Also run round-robin and plot both')
    parser.add_argument('--output', '-o', type=str, default='./results',
                        help='Output directory for plots (default: ./results)')

    args = parser.parse_args()
    settings = EngineConfig.from_env()
    settings.configure_logging()

    modes = [True, False] if args.compare else [True]
    all_results = []
    for attention_based in modes:
        results = run_basic_scheduling(
            iterations=args.iterations,
            tick_ms=args.tick_ms,
            attention_based=attention_based,
            base_config=settings,
        )
        visualize_results(results, output_dir=args.output)
        all_results.append(results)

    if args.compare:
        fig = plot_mode_comparison(
            all_results,
            save_path=f'{args.output}/mode_comparison.png'
        )
        plt.close(fig)
        print(f"  ✓ Comparison saved to {args.output}/mode_comparison.png")


if __name__ == '__main__':
    main()
