"""
Visualization tools for the Cognitive Synergy Engine.

Static matplotlib plots of attention dynamics and slice allocation.
"""

from visualization.attention_plots import (
    plot_attention_history,
    plot_selection_shares,
    plot_mode_comparison
)

__all__ = [
    'plot_attention_history',
    'plot_selection_shares',
    'plot_mode_comparison',
]
