"""
AttentionValue: per-context short-term / long-term importance.

STI drives immediate scheduling priority and changes every tick. LTI moves
on longer timescales and informs priority without gating selection.
"""

import math
from typing import Tuple

from synergy.attention.dynamics import apply_memory_pressure, decay_sti, memory_pressure_factor

STI_FLOOR = 1.0
DEFAULT_DECAY_RATE = 0.99
MEMORY_REFERENCE_BYTES = 100 * 1024 * 1024
MIN_PRESSURE_FACTOR = 0.5
DEFAULT_STI = 50.0
DEFAULT_LTI = 50.0


def _finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


class AttentionValue:
    """
    Mutable (STI, LTI) pair with decay and memory-pressure arithmetic.

    After any decay or adjustment step STI is at least ``floor``, unless it
    was explicitly set below the floor and only pressure has been applied
    since (pressure never increases STI).

    Attributes:
        sti (float): Short-term importance
        lti (float): Long-term importance
        floor (float): Lower bound enforced by decay/adjustment
    """

    __slots__ = ("_sti", "_lti", "floor")

    def __init__(self, sti: float = DEFAULT_STI, lti: float = DEFAULT_LTI,
                 floor: float = STI_FLOOR):
        self._sti = _finite("sti", sti)
        self._lti = _finite("lti", lti)
        self.floor = _finite("floor", floor)

    @property
    def sti(self) -> float:
        return self._sti

    @sti.setter
    def sti(self, value: float):
        self._sti = _finite("sti", value)

    @property
    def lti(self) -> float:
        return self._lti

    @lti.setter
    def lti(self, value: float):
        self._lti = _finite("lti", value)

    def decay(self, rate: float = DEFAULT_DECAY_RATE) -> float:
        """
        Multiply STI by ``rate`` and clamp to the floor.

        Args:
            rate: Retention per decay tick, must be > 0

        Returns:
            float: New STI
        """
        rate = _finite("rate", rate)
        if rate <= 0:
            raise ValueError(f"decay rate must be positive, got {rate}")
        self._sti = float(decay_sti(self._sti, rate, self.floor))
        return self._sti

    def adjust_for_memory_pressure(self, memory_bytes: int,
                                   reference_bytes: int = MEMORY_REFERENCE_BYTES) -> float:
        """
        Penalize STI by the context's memory footprint.

        Args:
            memory_bytes: Current footprint in bytes
            reference_bytes: Footprint that halves STI

        Returns:
            float: The factor that was applied
        """
        if reference_bytes <= 0:
            raise ValueError(f"reference_bytes must be positive, got {reference_bytes}")
        if memory_bytes < 0:
            raise ValueError(f"memory_bytes must be non-negative, got {memory_bytes}")

        factor = float(memory_pressure_factor(memory_bytes, reference_bytes, MIN_PRESSURE_FACTOR))
        self._sti = float(apply_memory_pressure(
            self._sti, memory_bytes, reference_bytes, self.floor, MIN_PRESSURE_FACTOR
        ))
        return factor

    def copy(self) -> "AttentionValue":
        return AttentionValue(self._sti, self._lti, self.floor)

    def as_tuple(self) -> Tuple[float, float]:
        return (self._sti, self._lti)

    def __eq__(self, other):
        if not isinstance(other, AttentionValue):
            return NotImplemented
        return self.as_tuple() == other.as_tuple() and self.floor == other.floor

    def __repr__(self):
        return f"AttentionValue(sti={self._sti:.4f}, lti={self._lti:.4f})"
