"""
Command Base - Write operations that report explicit results.

Commands never raise: every outcome, including a failure, comes back as a
CommandResult carrying a classified failure kind.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ...core.ports.workspace import PartialCreateError, RetryExhaustedError, WorkspaceError


class FailureKind(Enum):
    """Why a per-entity operation failed."""

    TERMINAL = "terminal"
    RETRY_EXHAUSTED = "retry_exhausted"
    PARENT_UNAVAILABLE = "parent_unavailable"
    UNCLASSIFIED = "unclassified"


def classify_failure(error: Exception) -> FailureKind:
    """Map an exception to a failure kind."""
    if isinstance(error, PartialCreateError) and isinstance(error.cause, Exception):
        return classify_failure(error.cause)
    if isinstance(error, RetryExhaustedError):
        return FailureKind.RETRY_EXHAUSTED
    if isinstance(error, WorkspaceError):
        # Retryable errors only reach here if the client gave up on them
        return FailureKind.RETRY_EXHAUSTED if error.retryable else FailureKind.TERMINAL
    return FailureKind.UNCLASSIFIED


@dataclass
class CommandResult:
    """Result of executing a command."""

    success: bool = True
    data: Any = None
    error: Optional[str] = None
    dry_run: bool = False
    skipped: bool = False
    failure_kind: Optional[FailureKind] = None

    @classmethod
    def ok(cls, data: Any = None, dry_run: bool = False) -> "CommandResult":
        return cls(success=True, data=data, dry_run=dry_run)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: FailureKind = FailureKind.TERMINAL,
        data: Any = None,
    ) -> "CommandResult":
        return cls(success=False, error=error, failure_kind=kind, data=data)

    @classmethod
    def skip(cls, reason: str, data: Any = None) -> "CommandResult":
        return cls(success=True, skipped=True, error=reason, data=data)


class Command(ABC):
    """
    Abstract base for commands.

    Subclasses implement ``_execute`` and ``description``; ``execute``
    handles validation, dry-run and error classification.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable description, e.g. "create character 'Ann'"."""
        ...

    def validate(self) -> Optional[str]:
        """Return an error message if the command cannot run."""
        return None

    def execute(self) -> CommandResult:
        error = self.validate()
        if error:
            return CommandResult.fail(error)

        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would {self.description}")
            return self._dry_run_result()

        try:
            return self._execute()
        except WorkspaceError as e:
            kind = classify_failure(e)
            self.logger.error(f"Failed to {self.description}: {e}")
            return CommandResult.fail(str(e), kind=kind)
        except Exception as e:
            self.logger.exception(f"Unexpected error while trying to {self.description} ({self.context()})")
            return CommandResult.fail(f"{type(e).__name__}: {e}", kind=FailureKind.UNCLASSIFIED)

    @abstractmethod
    def _execute(self) -> CommandResult:
        ...

    def _dry_run_result(self) -> CommandResult:
        return CommandResult.ok(dry_run=True)

    def context(self) -> str:
        """Diagnostic context for unexpected errors."""
        return self.description


@dataclass
class CommandBatch:
    """Executes commands in order, optionally stopping at the first failure."""

    stop_on_error: bool = False
    commands: list[Command] = field(default_factory=list)
    results: list[CommandResult] = field(default_factory=list)

    def add(self, command: Command) -> "CommandBatch":
        self.commands.append(command)
        return self

    def execute_all(self) -> list[CommandResult]:
        self.results = []
        for command in self.commands:
            result = command.execute()
            self.results.append(result)
            if not result.success and self.stop_on_error:
                break
        return self.results

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def executed_count(self) -> int:
        return sum(1 for r in self.results if r.success and not r.skipped and not r.dry_run)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)
