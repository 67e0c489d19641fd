"""
Cognitive Synergy: attention-driven scheduling of isolated execution contexts.

Several independent, stateful execution contexts ("isolates") are
multiplexed over one single-threaded control loop. On every loop iteration
a scheduler picks which isolate runs, based on a continuously updated
priority signal (attention) rather than static priorities:

- Prepare: the isolate with the highest short-term importance runs one slice
- Check: the same isolate settles the continuations its slice deferred
- Tick: attention decays and is re-weighted by memory pressure
- Idle: low-priority maintenance that never keeps the loop from blocking
"""

__version__ = "0.1.0"

from synergy.attention import AttentionValue
from synergy.bridge import EngineBinding, IsolateHandle
from synergy.config import EngineConfig
from synergy.engine import CognitiveSynergyEngine, EngineState
from synergy.errors import (
    DuplicateIdError,
    EngineInitError,
    HostAllocationError,
    HostError,
    NotInitializedError,
    SynergyError,
    UnknownIdError,
)
from synergy.isolate import IsolateContext, LocalHostRuntime
from synergy.scheduler import CognitiveScheduler

__all__ = [
    "AttentionValue",
    "IsolateContext",
    "LocalHostRuntime",
    "CognitiveScheduler",
    "CognitiveSynergyEngine",
    "EngineState",
    "EngineConfig",
    "EngineBinding",
    "IsolateHandle",
    "SynergyError",
    "DuplicateIdError",
    "UnknownIdError",
    "HostError",
    "HostAllocationError",
    "NotInitializedError",
    "EngineInitError",
]
