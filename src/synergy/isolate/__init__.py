"""Isolate contexts and the execution host boundary."""

from synergy.isolate.context import IsolateContext
from synergy.isolate.host import HostHandle, HostRuntime
from synergy.isolate.local import LocalHandle, LocalHostRuntime

__all__ = ["IsolateContext", "HostHandle", "HostRuntime", "LocalHandle", "LocalHostRuntime"]
