"""
Event Model for the Deadlock Prediction & Resolution Simulator.

Defines event types for tracking simulation actions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(Enum):
    """Types of events in the simulation."""
    GRANT = "grant"
    RELEASE = "release"
    REQUEST = "request"
    DEADLOCK = "deadlock"
    PREDICTION = "prediction"
    PREEMPTION = "preemption"
    ABORT = "abort"
    RESET = "reset"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        tick: Tick when event occurred
        event_type: Type of event
        process_id: Process involved in event (None for system-wide events)
        resource_id: Resource involved (if applicable)
        message: Human-readable description
        risk_percent: Predicted deadlock likelihood (prediction events only)
    """
    tick: int
    event_type: EventType
    process_id: Optional[str] = None
    resource_id: Optional[str] = None
    message: str = ""
    risk_percent: Optional[int] = None

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Tick {self.tick}:"

        if self.event_type == EventType.GRANT:
            return f"{base} {self.process_id} acquired {self.resource_id}"
        elif self.event_type == EventType.RELEASE:
            return f"{base} {self.process_id} released {self.resource_id}"
        elif self.event_type == EventType.REQUEST:
            return f"{base} {self.process_id} requested {self.resource_id}"
        elif self.event_type == EventType.DEADLOCK:
            return f"{base} DEADLOCK DETECTED ({self.message})"
        elif self.event_type == EventType.PREDICTION:
            return f"{base} PREDICTION {self.risk_percent}% ({self.message})"
        elif self.event_type == EventType.PREEMPTION:
            return f"{base} RESOLUTION - preempted {self.resource_id} from {self.process_id}"
        elif self.event_type == EventType.ABORT:
            return f"{base} RESOLUTION - aborted {self.process_id}"
        else:
            return f"{base} {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """
    Collection of simulation events.

    With max_entries set, only the most recent events are kept.
    """
    events: list = None
    max_entries: Optional[int] = None

    def __post_init__(self):
        if self.events is None:
            self.events = []

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)
        if self.max_entries is not None and len(self.events) > self.max_entries:
            del self.events[:len(self.events) - self.max_entries]

    def extend(self, events) -> None:
        """Add several events in order."""
        for event in events:
            self.add(event)

    def clear(self) -> None:
        """Drop every recorded event."""
        self.events = []

    def recent(self, count: int) -> list:
        """Most recent events first, like a notification feed."""
        return list(reversed(self.events[-count:])) if count > 0 else []

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_tick(self, tick: int) -> list:
        """Get all events from a specific tick."""
        return [e for e in self.events if e.tick == tick]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
