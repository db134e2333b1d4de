"""
Sync Module - Orchestration of synchronization between local storage and the workspace.
"""

from .orchestrator import (
    SyncOrchestrator,
    SyncResult,
    SyncStatus,
    OrchestratorState,
    FailedEntity,
    TypeSummary,
    RunContext,
)
from .dirty_tracker import DirtyTracker, DirtySnapshot
from .sequencer import (
    DependencySequencer,
    EntityDescriptor,
    ParentRef,
    ReferenceList,
    SequencerError,
    DEFAULT_TYPE_ORDER,
)
from .mapper import RemoteMapper

__all__ = [
    "SyncOrchestrator",
    "SyncResult",
    "SyncStatus",
    "OrchestratorState",
    "FailedEntity",
    "TypeSummary",
    "RunContext",
    "DirtyTracker",
    "DirtySnapshot",
    "DependencySequencer",
    "EntityDescriptor",
    "ParentRef",
    "ReferenceList",
    "SequencerError",
    "DEFAULT_TYPE_ORDER",
    "RemoteMapper",
]
