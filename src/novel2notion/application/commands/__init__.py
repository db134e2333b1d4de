"""
Commands - Individual operations that can be executed.

Commands represent write operations and:
- Validate their input
- Honour dry-run mode
- Return explicit results instead of raising
"""

from .base import Command, CommandResult, CommandBatch, FailureKind, classify_failure
from .entity_commands import (
    PushEntityCommand,
    ArchiveNodeCommand,
    PushOutcome,
    placeholder_remote_id,
)

__all__ = [
    "Command",
    "CommandResult",
    "CommandBatch",
    "FailureKind",
    "classify_failure",
    "PushEntityCommand",
    "ArchiveNodeCommand",
    "PushOutcome",
    "placeholder_remote_id",
]
