"""
Utility functions for the cognitive scheduler.

Includes attention metrics for monitoring and analysis tools over the
attention history collected by the engine.
"""

import numpy as np
from typing import Dict, Iterable, List, Mapping, Sequence, Union


def jain_fairness(values: Union[Sequence[float], np.ndarray]) -> float:
    """
    Jain's fairness index of a non-negative allocation.

    J = (Σ x_i)² / (n · Σ x_i²), 1.0 for a perfectly even allocation,
    1/n when one context holds everything.

    Args:
        values: Allocation per context

    Returns:
        float: Index in [1/n, 1], 1.0 for empty or all-zero input
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return 1.0
    denominator = x.size * np.sum(x ** 2)
    if denominator == 0:
        return 1.0
    return float(np.sum(x) ** 2 / denominator)


def compute_attention_metrics(sti: Union[Sequence[float], np.ndarray],
                              memory: Union[Sequence[int], np.ndarray]) -> Dict[str, float]:
    """
    Compute scheduler metrics for monitoring and analysis.

    Metrics include:
    - STI mean/std/min/max across contexts
    - Fairness: Jain's index of STI
    - Top share: fraction of total STI held by the leading context
    - Total memory footprint

    Args:
        sti: STI per context
        memory: Memory footprint per context in bytes

    Returns:
        dict: Computed metrics
    """
    sti = np.asarray(sti, dtype=float)
    memory = np.asarray(memory, dtype=float)

    if sti.size == 0:
        return {
            'sti_mean': 0.0,
            'sti_std': 0.0,
            'sti_min': 0.0,
            'sti_max': 0.0,
            'fairness': 1.0,
            'top_share': 0.0,
            'memory_total': 0.0,
        }

    total = np.sum(sti)
    return {
        'sti_mean': float(np.mean(sti)),
        'sti_std': float(np.std(sti)),
        'sti_min': float(np.min(sti)),
        'sti_max': float(np.max(sti)),
        'fairness': jain_fairness(np.clip(sti, 0.0, None)),
        'top_share': float(np.max(sti) / total) if total > 0 else 0.0,
        'memory_total': float(np.sum(memory)),
    }


def history_matrix(history: Iterable[Mapping[str, float]],
                   isolate_ids: List[str]) -> np.ndarray:
    """
    Turn per-tick STI snapshots into a (ticks, isolates) matrix.

    Contexts absent from a snapshot (not yet created or already destroyed)
    are NaN in that row.
    """
    rows = [[snapshot.get(i, np.nan) for i in isolate_ids] for snapshot in history]
    if not rows:
        return np.empty((0, len(isolate_ids)))
    return np.array(rows, dtype=float)


def selection_shares(selections: Sequence[str], isolate_ids: List[str]) -> Dict[str, float]:
    """
    Fraction of slices granted to each context.

    Args:
        selections: Isolate id per slice, in order
        isolate_ids: Contexts to report on

    Returns:
        dict: isolate id -> share in [0, 1]
    """
    if not selections:
        return {i: 0.0 for i in isolate_ids}
    labels = np.asarray(selections)
    return {i: float(np.mean(labels == i)) for i in isolate_ids}
