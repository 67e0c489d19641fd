"""Exception taxonomy for the cognitive synergy engine."""

from typing import Optional


class SynergyError(Exception):
    """Base class for every error raised by the engine."""


class DuplicateIdError(SynergyError):
    """An isolate with the same id is already registered."""

    def __init__(self, isolate_id: str):
        super().__init__(f"Isolate {isolate_id!r} already exists")
        self.isolate_id = isolate_id


class UnknownIdError(SynergyError):
    """An operation referenced an isolate id that is not registered."""

    def __init__(self, isolate_id: str):
        super().__init__(f"Unknown isolate {isolate_id!r}")
        self.isolate_id = isolate_id


class HostError(SynergyError):
    """The execution host failed to carry out an operation."""


class HostAllocationError(HostError):
    """The execution host could not allocate a context."""

    def __init__(self, isolate_id: str, reason: Optional[str] = None):
        message = f"Failed to allocate host context for {isolate_id!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.isolate_id = isolate_id


class NotInitializedError(SynergyError):
    """Engine operation invoked before initialize()."""

    def __init__(self, message: str = "Engine not initialized"):
        super().__init__(message)


class EngineInitError(SynergyError):
    """The loop or timer infrastructure could not be acquired."""
