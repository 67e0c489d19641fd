"""
Attention visualization for the Cognitive Synergy Engine.

Plots STI trajectories from the engine's attention history, the share of
slices each isolate received, and a side-by-side comparison of scheduling
modes.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Dict, List, Mapping, Optional, Sequence

from synergy.utils import history_matrix


def plot_attention_history(history: Sequence[Mapping[str, float]],
                           isolate_ids: List[str],
                           sti_floor: float = 1.0,
                           title: str = "Attention (STI) Evolution",
                           figsize: tuple = (10, 6),
                           log_scale: bool = False,
                           save_path: Optional[str] = None):
    """
    Plot STI per isolate over attention ticks.

    Args:
        history: Per-tick {isolate_id: sti} snapshots (engine.attention_history)
        isolate_ids: Isolates to plot, in legend order
        sti_floor: Floor drawn as a reference line
        title: Plot title
        figsize: Figure size
        log_scale: Use a logarithmic y axis
        save_path: Optional path to save figure
    """
    matrix = history_matrix(history, isolate_ids)
    ticks = np.arange(matrix.shape[0])

    fig, ax = plt.subplots(figsize=figsize)

    for col, isolate_id in enumerate(isolate_ids):
        ax.plot(ticks, matrix[:, col], linewidth=2, label=isolate_id)

    ax.axhline(sti_floor, color='gray', linestyle='--', linewidth=1, label='STI floor')
    if log_scale:
        ax.set_yscale('log')

    ax.set_xlabel('Attention Tick', fontsize=12)
    ax.set_ylabel('Short-Term Importance', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')

    return fig


def plot_selection_shares(shares: Dict[str, float],
                          title: str = "Slice Shares",
                          figsize: tuple = (8, 5),
                          save_path: Optional[str] = None):
    """
    Bar chart of the fraction of slices each isolate received.

    Args:
        shares: isolate id -> share (see synergy.utils.selection_shares)
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure
    """
    labels = list(shares)
    values = [shares[label] for label in labels]

    fig, ax = plt.subplots(figsize=figsize)
    bars = ax.bar(labels, values, color='#2E86AB', alpha=0.8)

    for bar, value in zip(bars, values):
        ax.annotate(f'{value:.2f}',
                    xy=(bar.get_x() + bar.get_width() / 2, value),
                    xytext=(0, 3), textcoords='offset points',
                    ha='center', fontsize=10)

    ax.set_ylim(0, 1)
    ax.set_ylabel('Share of Slices', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3, axis='y')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')

    return fig


def plot_mode_comparison(results: List[Dict],
                         title: str = "Attention vs Round-Robin",
                         figsize: tuple = (12, 5),
                         save_path: Optional[str] = None):
    """
    Compare slice shares of several experiment runs side by side.

    Args:
        results: Outputs of experiments.basic_scheduling.run_basic_scheduling
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure
    """
    isolate_ids = results[0]['isolate_ids']
    x = np.arange(len(isolate_ids))
    width = 0.8 / len(results)

    fig, ax = plt.subplots(figsize=figsize)

    for k, result in enumerate(results):
        values = [result['shares'].get(i, 0.0) for i in isolate_ids]
        ax.bar(x + k * width, values, width,
               label=f"{result['config']['mode']} "
                     f"(J={result['attention']['fairness']:.2f})",
               alpha=0.8)

    ax.set_xticks(x + width * (len(results) - 1) / 2)
    ax.set_xticklabels(isolate_ids, rotation=20)
    ax.set_ylabel('Share of Slices', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3, axis='y')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')

    return fig
