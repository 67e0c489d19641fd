"""Attention values and their decay/feedback dynamics."""

from synergy.attention.dynamics import (
    apply_memory_pressure,
    decay_sti,
    memory_pressure_factor,
    project_decay,
)
from synergy.attention.value import (
    DEFAULT_DECAY_RATE,
    DEFAULT_LTI,
    DEFAULT_STI,
    MEMORY_REFERENCE_BYTES,
    MIN_PRESSURE_FACTOR,
    STI_FLOOR,
    AttentionValue,
)

__all__ = [
    "AttentionValue",
    "decay_sti",
    "memory_pressure_factor",
    "apply_memory_pressure",
    "project_decay",
    "STI_FLOOR",
    "DEFAULT_DECAY_RATE",
    "MEMORY_REFERENCE_BYTES",
    "MIN_PRESSURE_FACTOR",
    "DEFAULT_STI",
    "DEFAULT_LTI",
]
