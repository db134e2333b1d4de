"""
Domain Events - Things that happened in the domain.

Events are immutable records of something that occurred. The sync engine
publishes exactly three kinds per run (started, succeeded, failed); the
EventBus delivers them to whatever progress reporter is subscribed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from uuid import uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__


@dataclass(frozen=True)
class SyncStarted(DomainEvent):
    """Event: A sync run started."""

    run_id: str = ""
    dry_run: bool = False


@dataclass(frozen=True)
class SyncSucceeded(DomainEvent):
    """Event: A sync run finished without entity failures."""

    run_id: str = ""
    summary: str = ""
    succeeded: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class SyncFailed(DomainEvent):
    """Event: A sync run was aborted or finished with entity failures."""

    run_id: str = ""
    message: str = ""
    failed: int = 0


class EventBus:
    """
    Simple event bus for publishing and subscribing to domain events.

    Delivery is fire-and-forget: a failing handler is logged and never
    propagates into the publisher.
    """

    def __init__(self):
        self._handlers: dict[type, list[Callable]] = {}
        self._history: list[DomainEvent] = []
        self.logger = logging.getLogger("EventBus")

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers."""
        self._history.append(event)

        handlers = list(self._handlers.get(type(event), []))
        # Catch-all handlers
        handlers.extend(self._handlers.get(DomainEvent, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Handler for {event.event_type} failed: {e}")

    def get_history(self) -> list[DomainEvent]:
        """Get all published events."""
        return self._history.copy()

    def clear_history(self) -> None:
        """Clear event history."""
        self._history.clear()
