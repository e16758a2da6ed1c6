"""
Embedding table maintenance: compatibility checks, rebuilds and migrations.
"""

from semantic_stash.maintenance.compatibility import CompatibilityMonitor
from semantic_stash.maintenance.migrations import SCHEMA_VERSION, migrate
from semantic_stash.maintenance.rebuild import (
    CallbackRebuildEventSink,
    NullRebuildEventSink,
    RebuildEventSink,
    RebuildLock,
    RebuildOrchestrator,
    RebuildState,
)

__all__ = [
    "CompatibilityMonitor",
    "RebuildOrchestrator",
    "RebuildLock",
    "RebuildState",
    "RebuildEventSink",
    "NullRebuildEventSink",
    "CallbackRebuildEventSink",
    "SCHEMA_VERSION",
    "migrate",
]
