"""
Cognitive scheduler: decides which isolate runs next.

Holds the candidate set in registration order and implements two selection
policies (attention and round-robin) plus the two attention feedback
signals (time-driven decay, resource-driven update). The scheduler does no
locking; it must only be touched from the loop thread.
"""

import numpy as np
from typing import Dict, List, Optional, Tuple

import structlog

from synergy.attention.value import DEFAULT_DECAY_RATE, MEMORY_REFERENCE_BYTES, STI_FLOOR
from synergy.errors import DuplicateIdError
from synergy.isolate.context import IsolateContext

logger = structlog.get_logger(__name__)


class CognitiveScheduler:
    """
    Attention-driven selection over registered isolate contexts.

    Attributes:
        decay_rate (float): Retention per decay tick
        memory_reference_bytes (int): Footprint that halves STI
        sti_floor (float): Floor enforced on newly registered contexts' attention
    """

    def __init__(self, attention_based: bool = True,
                 decay_rate: float = DEFAULT_DECAY_RATE,
                 memory_reference_bytes: int = MEMORY_REFERENCE_BYTES,
                 sti_floor: float = STI_FLOOR):
        if not 0 < decay_rate <= 1:
            raise ValueError(f"decay_rate must be in (0, 1], got {decay_rate}")
        if memory_reference_bytes <= 0:
            raise ValueError("memory_reference_bytes must be positive")

        self.decay_rate = decay_rate
        self.memory_reference_bytes = memory_reference_bytes
        self.sti_floor = sti_floor

        self._isolates: List[IsolateContext] = []
        self._ids: Dict[str, IsolateContext] = {}
        self._attention_based = attention_based
        self.current_index = 0

    @property
    def attention_based(self) -> bool:
        return self._attention_based

    @attention_based.setter
    def attention_based(self, enabled: bool):
        if self._attention_based and not enabled:
            self.current_index = 0
        self._attention_based = enabled

    def register_isolate(self, context: IsolateContext):
        """
        Append a context to the candidate set.

        Raises:
            DuplicateIdError: If a context with the same id is registered
        """
        if context.id in self._ids:
            raise DuplicateIdError(context.id)

        context.attention.floor = self.sti_floor
        self._isolates.append(context)
        self._ids[context.id] = context
        logger.debug("isolate_registered", isolate_id=context.id, candidates=len(self._isolates))

    def unregister_isolate(self, isolate_id: str) -> bool:
        """
        Remove a context by id. Unknown ids are ignored.

        Returns:
            bool: Whether a context was removed
        """
        context = self._ids.pop(isolate_id, None)
        if context is None:
            return False

        position = self._isolates.index(context)
        del self._isolates[position]

        # Keep the round-robin cursor on the same upcoming candidate.
        if position < self.current_index:
            self.current_index -= 1
        self.current_index = self.current_index % len(self._isolates) if self._isolates else 0

        logger.debug("isolate_unregistered", isolate_id=isolate_id, candidates=len(self._isolates))
        return True

    def select_next(self) -> Optional[IsolateContext]:
        """
        Pick the context that runs in the next slice.

        Attention mode returns the context with the greatest STI, the
        earliest registered one on ties. Round-robin mode cycles through
        the candidates in registration order.

        Returns:
            IsolateContext or None if no context is registered
        """
        if not self._isolates:
            return None

        if not self._attention_based:
            self.current_index %= len(self._isolates)
            selected = self._isolates[self.current_index]
            self.current_index = (self.current_index + 1) % len(self._isolates)
            return selected

        sti = self.sti_vector()
        # argmax returns the first maximum, i.e. registration order on ties
        return self._isolates[int(np.argmax(sti))]

    def update_attention(self):
        """Re-weight every candidate's STI by its current memory footprint."""
        for context in self._isolates:
            memory = context.report_memory_usage()
            context.attention.adjust_for_memory_pressure(memory, self.memory_reference_bytes)

    def decay_attention(self):
        """Apply one passive decay step to every candidate."""
        for context in self._isolates:
            context.attention.decay(self.decay_rate)

    def isolate_count(self) -> int:
        return len(self._isolates)

    def candidates(self) -> List[IsolateContext]:
        return list(self._isolates)

    def sti_vector(self) -> np.ndarray:
        """STI of every candidate, in registration order."""
        return np.fromiter((c.attention.sti for c in self._isolates),
                           dtype=float, count=len(self._isolates))

    def snapshot(self) -> Dict[str, Tuple[float, float]]:
        """(STI, LTI) per candidate; enough to reproduce the next decision."""
        return {c.id: c.attention.as_tuple() for c in self._isolates}

    def __len__(self):
        return len(self._isolates)

    def __contains__(self, isolate_id):
        return isolate_id in self._ids

    def __repr__(self):
        mode = "attention" if self._attention_based else "round_robin"
        return f"CognitiveScheduler(mode={mode}, isolates={len(self._isolates)})"
