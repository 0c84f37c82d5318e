"""
Event Model for the Railway Deadlock Simulator.

Defines event types for tracking session actions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events in a session."""
    SCENARIO_LOADED = "scenario_loaded"
    REQUEST_GRANTED = "request_granted"
    REQUEST_DENIED = "request_denied"
    DETECTION = "detection"
    TERMINATION = "termination"
    PREEMPTION = "preemption"
    RECOVERY = "recovery"
    CHECKPOINT_SAVED = "checkpoint_saved"
    CHECKPOINT_RESTORED = "checkpoint_restored"
    EXPORT = "export"


@dataclass
class SessionEvent:
    """
    Represents a single action taken in a session.

    Attributes:
        step: Session step when event occurred
        event_type: Type of event
        train_id: Train involved in event (-1 for system-wide events)
        amounts: Units involved per track (if applicable)
        message: Human-readable description
        reason: Reason for denial/recovery action (if applicable)
    """
    step: int
    event_type: EventType
    train_id: int = -1
    amounts: Optional[List[int]] = None
    message: str = ""
    reason: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Step {self.step}: T{self.train_id}" if self.train_id >= 0 else f"Step {self.step}:"

        if self.event_type == EventType.REQUEST_GRANTED:
            return f"{base} requests {self.amounts} - GRANTED ({self.reason})"
        elif self.event_type == EventType.REQUEST_DENIED:
            return f"{base} requests {self.amounts} - DENIED ({self.reason})"
        elif self.event_type == EventType.TERMINATION:
            return f"{base} - TERMINATED ({self.message})"
        elif self.event_type == EventType.PREEMPTION:
            return f"{base} - PREEMPTED {self.amounts} ({self.message})"
        elif self.event_type == EventType.DETECTION:
            return f"{base} DETECTION ({self.message})"
        else:
            return f"{base} {self.event_type.value}: {self.message}"


class EventLog:
    """Ordered record of session events."""

    def __init__(self):
        self.events: List[SessionEvent] = []

    def __len__(self) -> int:
        return len(self.events)

    def add(self, event: SessionEvent) -> None:
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> List[SessionEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_step(self, step: int) -> List[SessionEvent]:
        """Events recorded at step."""
        return [e for e in self.events if e.step == step]

    def display(self, step: Optional[int] = None) -> str:
        """
        Format events one per line.

        Args:
            step: Only show this step (all steps when None)
        """
        events = self.events if step is None else self.get_events_by_step(step)
        if not events:
            return "No events recorded."
        return "\n".join(str(event) for event in events)
