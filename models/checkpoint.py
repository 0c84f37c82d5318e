"""
Checkpoint Store for the Railway Deadlock Simulator.

Fixed number of single-use slots, each holding a labelled deep copy of a
RailwayState. Restoring a slot consumes it.
"""

from dataclasses import dataclass
from typing import List, Optional

from config import DEFAULT_CHECKPOINT_NOTE, DEFAULT_LIMITS, Limits
from models.errors import ErrorKind
from models.railway_state import RailwayState, is_index


@dataclass(frozen=True)
class Checkpoint:
    """
    Saved copy of the railway state.

    Attributes:
        slot: Slot index the checkpoint occupies
        state: Owned deep copy of the state at save time
        note: Free-text label
    """
    slot: int
    state: RailwayState
    note: str


def _detached(checkpoint: Checkpoint) -> Checkpoint:
    return Checkpoint(slot=checkpoint.slot, state=checkpoint.state.copy(), note=checkpoint.note)


@dataclass
class CheckpointResult:
    """Outcome of a save or restore."""
    ok: bool
    slot: int = -1
    note: str = ""
    error: Optional[ErrorKind] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


class CheckpointStore:
    """
    Bounded collection of checkpoint slots.

    The store owns every checkpoint copy. The live state is untouched until
    restore() is called.
    """

    def __init__(self, capacity: Optional[int] = None, limits: Limits = DEFAULT_LIMITS):
        """
        Initialize an empty store.

        Args:
            capacity: Number of slots (defaults to limits.max_checkpoints)
            limits: Capacity limits (also used to clip notes)
        """
        self.limits = limits
        self.capacity = capacity if capacity is not None else limits.max_checkpoints
        if self.capacity < 1:
            raise ValueError(f"Checkpoint capacity must be positive (got {self.capacity})")
        self._slots: List[Optional[Checkpoint]] = [None] * self.capacity

    @property
    def free_slots(self) -> int:
        return sum(1 for cp in self._slots if cp is None)

    def is_occupied(self, slot: int) -> bool:
        return is_index(slot) and 0 <= slot < self.capacity and self._slots[slot] is not None

    def get(self, slot: int) -> Optional[Checkpoint]:
        """Return a private copy of the checkpoint in slot without consuming it."""
        if not self.is_occupied(slot):
            return None
        return _detached(self._slots[slot])

    def save(self, state: RailwayState, note: str = "") -> CheckpointResult:
        """
        Copy state into the first empty slot.

        Args:
            state: Live state to snapshot
            note: Label; empty notes become "checkpoint"

        Returns:
            CheckpointResult with the slot index, or NO_FREE_CHECKPOINT_SLOT
        """
        note = note.strip() if note else ""
        note = (note or DEFAULT_CHECKPOINT_NOTE)[:self.limits.max_note_len - 1]

        for slot, existing in enumerate(self._slots):
            if existing is None:
                self._slots[slot] = Checkpoint(slot=slot, state=state.copy(), note=note)
                return CheckpointResult(ok=True, slot=slot, note=note, reason=f"Saved checkpoint {slot} ({note})")

        return CheckpointResult(
            ok=False,
            note=note,
            error=ErrorKind.NO_FREE_CHECKPOINT_SLOT,
            reason=f"No free checkpoint slots (capacity {self.capacity})"
        )

    def restore(self, state: RailwayState, slot: int) -> CheckpointResult:
        """
        Overwrite state with the copy held in slot and free the slot.

        Args:
            state: Live state to overwrite in place
            slot: Slot index to restore

        Returns:
            CheckpointResult, or INVALID_OR_EMPTY_CHECKPOINT_SLOT
        """
        if not self.is_occupied(slot):
            return CheckpointResult(
                ok=False,
                slot=slot,
                error=ErrorKind.INVALID_OR_EMPTY_CHECKPOINT_SLOT,
                reason=f"Restore failed (invalid or unused index {slot})"
            )

        checkpoint = self._slots[slot]
        state.overwrite_from(checkpoint.state)
        self._slots[slot] = None
        return CheckpointResult(ok=True, slot=slot, note=checkpoint.note, reason=f"Restored checkpoint {slot} ({checkpoint.note})")

    def list_checkpoints(self) -> List[Checkpoint]:
        """Occupied checkpoints in slot order."""
        return [_detached(cp) for cp in self._slots if cp is not None]

    def clear(self) -> None:
        """Empty every slot."""
        self._slots = [None] * self.capacity
