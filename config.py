"""
Central configuration for the Railway Deadlock Simulator.

Capacity limits are enforced when a RailwayState or CheckpointStore is
constructed. Tune DEFAULT_LIMITS to allow larger networks.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Limits:
    """
    Hard capacity limits for a simulation session.

    Attributes:
        max_trains: Upper bound on the number of trains (actors)
        max_tracks: Upper bound on the number of track sections (resource classes)
        max_checkpoints: Number of checkpoint slots in the store
        max_name_len: Display names are clipped to max_name_len - 1 characters
        max_note_len: Checkpoint notes are clipped to max_note_len - 1 characters
    """
    max_trains: int = 32
    max_tracks: int = 64
    max_checkpoints: int = 16
    max_name_len: int = 32
    max_note_len: int = 128

    def __post_init__(self):
        for name in ('max_trains', 'max_tracks', 'max_checkpoints', 'max_name_len', 'max_note_len'):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"Limits.{name} must be positive (got {value})")


DEFAULT_LIMITS = Limits()

# --- Naming ---
TRAIN_NAME_TEMPLATE = "Train{}"
TRACK_NAME_TEMPLATE = "Track{}"
REMOVED_TRAIN_NAME = "(REMOVED)"
DEFAULT_CHECKPOINT_NOTE = "checkpoint"

# --- Random scenario generator ---
DEFAULT_RANDOM_UNITS = 2    # Max units per track handed out by random_railway()
