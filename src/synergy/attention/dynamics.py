"""
Attention dynamics for the cognitive scheduler.

Two feedback signals act on short-term importance (STI):

Passive decay (time-driven):
sti ← max(rate · sti, floor)

Memory pressure (resource-driven):
factor = clip(1 - m / m_ref, f_min, 1)
sti ← max(factor · sti, min(sti, floor))

All functions are pure and accept scalars or numpy arrays, so a snapshot
of every context's attention and memory readings can be replayed in bulk.
"""

import numpy as np
from typing import Union

ArrayLike = Union[float, np.ndarray]


def decay_sti(sti: ArrayLike, rate: float, floor: float) -> ArrayLike:
    """
    Apply one passive decay step.

    Args:
        sti: Current short-term importance (scalar or array)
        rate: Multiplicative retention per step (0.99 keeps 99%)
        floor: Minimum attention after the step

    Returns:
        Decayed STI, never below ``floor``
    """
    return np.maximum(np.asarray(sti, dtype=float) * rate, floor)


def memory_pressure_factor(memory_bytes: ArrayLike, reference_bytes: float,
                           min_factor: float = 0.5) -> ArrayLike:
    """
    Compute the multiplicative penalty for a memory footprint.

    A context using nothing keeps its attention (factor 1.0); one at or above
    the reference footprint loses at most ``1 - min_factor`` of it per step.

    Args:
        memory_bytes: Memory footprint(s) in bytes
        reference_bytes: Footprint at which the maximum penalty applies
        min_factor: Lower bound of the factor

    Returns:
        Factor(s) in [min_factor, 1.0]
    """
    ratio = np.asarray(memory_bytes, dtype=float) / float(reference_bytes)
    return np.clip(1.0 - ratio, min_factor, 1.0)


def apply_memory_pressure(sti: ArrayLike, memory_bytes: ArrayLike,
                          reference_bytes: float, floor: float,
                          min_factor: float = 0.5) -> ArrayLike:
    """
    Scale STI by the memory pressure factor.

    The step never increases STI, and never pushes a value that sits at or
    above ``floor`` below it.
    """
    sti = np.asarray(sti, dtype=float)
    factor = memory_pressure_factor(memory_bytes, reference_bytes, min_factor)
    return np.maximum(sti * factor, np.minimum(sti, floor))


def project_decay(sti: ArrayLike, rate: float, steps: int, floor: float) -> ArrayLike:
    """
    Closed form of ``steps`` consecutive decay steps.

    Valid because the floor is absorbing for rate <= 1. With ``steps == 0``
    values below the floor are lifted to it.
    """
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")
    return np.maximum(np.asarray(sti, dtype=float) * rate ** steps, floor)
