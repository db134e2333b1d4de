"""
Application Layer - Use cases, commands, and orchestration.

This layer contains:
- commands/: Individual operations (PushEntity, ArchiveNode)
- sync/: Dirty tracking, sequencing, mapping and the sync orchestrator
"""

from .sync import SyncOrchestrator, SyncResult, SyncStatus, RemoteMapper
from .commands import (
    Command,
    CommandResult,
    CommandBatch,
    FailureKind,
    PushEntityCommand,
    ArchiveNodeCommand,
)

__all__ = [
    "SyncOrchestrator",
    "SyncResult",
    "SyncStatus",
    "RemoteMapper",
    "Command",
    "CommandResult",
    "CommandBatch",
    "FailureKind",
    "PushEntityCommand",
    "ArchiveNodeCommand",
]
