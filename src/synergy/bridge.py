"""
Binding surface for a host-language runtime.

EngineBinding holds at most one engine, created and destroyed explicitly.
IsolateHandle is the per-isolate object handed out to callers; it refers to
the isolate by id, so it goes stale (UnknownIdError) once the isolate has
been destroyed.
"""

from typing import Any, Dict, Mapping, Optional, Union

import structlog

from synergy.config import EngineConfig
from synergy.engine import CognitiveSynergyEngine
from synergy.errors import (
    DuplicateIdError,
    EngineInitError,
    HostAllocationError,
    NotInitializedError,
)
from synergy.isolate.host import HostRuntime

logger = structlog.get_logger(__name__)


class IsolateHandle:
    """Caller-facing view of one isolate."""

    def __init__(self, binding: "EngineBinding", isolate_id: str):
        self._binding = binding
        self._id = isolate_id

    @property
    def id(self) -> str:
        return self._id

    @property
    def alive(self) -> bool:
        engine = self._binding.engine
        return engine is not None and engine.get_isolate(self._id) is not None

    @property
    def sti(self) -> float:
        return self._context().sti

    @sti.setter
    def sti(self, value: float):
        self._context().sti = value

    @property
    def lti(self) -> float:
        return self._context().lti

    @lti.setter
    def lti(self, value: float):
        self._context().lti = value

    @property
    def memory_usage(self) -> int:
        return self._context().report_memory_usage()

    def boost(self, amount: float = 10.0) -> float:
        """Increase STI by ``amount``."""
        context = self._context()
        context.sti = context.sti + amount
        return context.sti

    def decay(self, amount: float = 5.0) -> float:
        """Decrease STI by ``amount``, never below the attention floor."""
        context = self._context()
        context.sti = max(context.attention.floor, context.sti - amount)
        return context.sti

    def _context(self):
        return self._binding.require_engine().require_isolate(self._id)

    def __repr__(self):
        return f"IsolateHandle(id={self._id!r}, alive={self.alive})"


class EngineBinding:
    """
    Holds the optional engine reference of one binding layer.

    Args:
        host_factory: Optional callable returning a HostRuntime for each new
            engine; the engine default is used when omitted
    """

    def __init__(self, host_factory=None):
        self._engine: Optional[CognitiveSynergyEngine] = None
        self._host_factory = host_factory

    @property
    def engine(self) -> Optional[CognitiveSynergyEngine]:
        return self._engine

    def has_engine(self) -> bool:
        return self._engine is not None

    def create_engine(self, config: Union[None, EngineConfig, Mapping[str, Any]] = None) -> bool:
        """
        Create and initialize a fresh engine, replacing any existing one.

        Raises:
            EngineInitError: If the engine failed to initialize
        """
        if not isinstance(config, EngineConfig):
            config = EngineConfig.from_mapping(config)

        if self._engine is not None:
            logger.info("engine_replaced")
            self.destroy_engine()

        host: Optional[HostRuntime] = self._host_factory() if self._host_factory else None
        engine = CognitiveSynergyEngine(config, host=host)
        if not engine.initialize():
            raise EngineInitError("Failed to initialize cognitive synergy engine")

        self._engine = engine
        return True

    def destroy_engine(self) -> bool:
        if self._engine is not None:
            self._engine.close()
            self._engine = None
        return True

    def require_engine(self) -> CognitiveSynergyEngine:
        if self._engine is None:
            raise NotInitializedError()
        return self._engine

    def create_isolate(self, isolate_id: str, sti: Optional[float] = None,
                       lti: Optional[float] = None) -> IsolateHandle:
        """
        Create an isolate and return its handle.

        Raises:
            DuplicateIdError: If the id already exists
            HostAllocationError: If the host could not allocate it
        """
        engine = self.require_engine()
        if engine.get_isolate(isolate_id) is not None:
            raise DuplicateIdError(isolate_id)
        if engine.create_isolate(isolate_id, sti=sti, lti=lti) is None:
            raise HostAllocationError(isolate_id)
        return IsolateHandle(self, isolate_id)

    def destroy_isolate(self, isolate_id: str) -> bool:
        self.require_engine().destroy_isolate(isolate_id)
        return True

    def get_isolate(self, isolate_id: str) -> Optional[IsolateHandle]:
        if self.require_engine().get_isolate(isolate_id) is None:
            return None
        return IsolateHandle(self, isolate_id)

    def set_sti(self, isolate_id: str, value: float) -> bool:
        self.require_engine().set_sti(isolate_id, value)
        return True

    def get_sti(self, isolate_id: str) -> float:
        return self.require_engine().get_sti(isolate_id)

    def set_lti(self, isolate_id: str, value: float) -> bool:
        self.require_engine().set_lti(isolate_id, value)
        return True

    def get_lti(self, isolate_id: str) -> float:
        return self.require_engine().get_lti(isolate_id)

    def get_memory_usage(self, isolate_id: str) -> int:
        return self.require_engine().get_memory_usage(isolate_id)

    def get_isolate_count(self) -> int:
        return self.require_engine().get_isolate_count()

    def get_stats(self) -> Dict[str, Any]:
        return self.require_engine().get_stats()
