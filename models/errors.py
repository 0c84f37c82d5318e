"""
Error taxonomy for the Railway Deadlock Simulator.

Every core operation reports recoverable failures through a result object
tagged with an ErrorKind. Only contract violations raise.
"""

from enum import Enum


class ErrorKind(Enum):
    """Reasons a core operation can fail."""
    INVALID_INDEX = "InvalidIndex"
    INVALID_SIZE = "InvalidSize"
    INVALID_AMOUNT = "InvalidAmount"
    REQUEST_EXCEEDS_NEED = "RequestExceedsNeed"
    REQUEST_EXCEEDS_AVAILABLE = "RequestExceedsAvailable"
    UNSAFE_STATE = "UnsafeState"
    NO_FREE_CHECKPOINT_SLOT = "NoFreeCheckpointSlot"
    INVALID_OR_EMPTY_CHECKPOINT_SLOT = "InvalidOrEmptyCheckpointSlot"


class StateSizeError(ValueError):
    """Raised when a state is constructed with out-of-bounds train/track counts."""

    def __init__(self, message: str):
        super().__init__(message)
        self.kind = ErrorKind.INVALID_SIZE
