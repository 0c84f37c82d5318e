"""
Deadlock Avoidance Algorithm (Banker's Algorithm) for the Simulator.

Implements the safety algorithm and the Banker's request protocol that keeps
the railway network out of unsafe states.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from models.errors import ErrorKind
from models.railway_state import RailwayState


@dataclass
class RequestResult:
    """
    Outcome of a Banker's request.

    Attributes:
        granted: True if the allocation was committed
        error: Failure reason, None when granted
        reason: Human-readable explanation
        safe_sequence: Completion order proving safety (granted requests only)
    """
    granted: bool
    error: Optional[ErrorKind] = None
    reason: str = ""
    safe_sequence: Optional[List[int]] = None

    def __bool__(self) -> bool:
        return self.granted


def _safety_scan(state: RailwayState) -> Tuple[np.ndarray, List[int]]:
    """
    Run the Work/Finish scan and return (finish, completion order).

    The scan restarts from train 0 after every train it finishes, so the
    lowest-index runnable train is always picked next.
    """
    # Work = copy of Available (prevents modification of original)
    work = state.available.copy()
    finish = np.zeros(state.num_trains, dtype=bool)
    sequence = []

    made_progress = True
    while made_progress:
        made_progress = False

        for i in range(state.num_trains):
            if finish[i]:
                continue

            # Need[i] <= Work for all track sections
            if np.all(state.need[i] <= work):
                work += state.allocation[i]
                finish[i] = True
                sequence.append(i)
                made_progress = True
                break  # Restart search from beginning for determinism

    return finish, sequence


def is_safe_state(state: RailwayState) -> Tuple[bool, Optional[List[int]]]:
    """
    Check if the railway is in a safe state using Banker's Algorithm.

    Algorithm:
    1. Initialize Work = Available, Finish = [False] * num_trains
    2. Find the lowest-index train i where Finish[i] == False and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], append i, go to 2
    4. Stop when no train is runnable; SAFE iff every train finished

    Time Complexity: O(N²×M)

    Args:
        state: Current railway state (never modified)

    Returns:
        Tuple of (is_safe, safe_sequence if safe else None)
    """
    finish, sequence = _safety_scan(state)
    if np.all(finish):
        return True, sequence
    return False, None


def unfinishable_trains(state: RailwayState) -> List[int]:
    """Trains that the safety scan cannot finish (empty iff the state is safe)."""
    finish, _ = _safety_scan(state)
    return [int(i) for i in np.flatnonzero(~finish)]


def verify_safe_sequence(state: RailwayState, sequence: Sequence[int]) -> bool:
    """
    Replay a completion order against the state.

    Each train must appear exactly once, and its need must fit the running
    Work vector at its turn.
    """
    if sorted(sequence) != list(range(state.num_trains)):
        return False

    work = state.available.copy()
    for i in sequence:
        if not np.all(state.need[i] <= work):
            return False
        work += state.allocation[i]
    return True


def _apply_delta(state: RailwayState, train_id: int, delta: np.ndarray, sign: int) -> None:
    """Move delta units from Available to a train (sign=+1) or back (sign=-1)."""
    state.available -= sign * delta
    state.allocation[train_id] += sign * delta
    state.need[train_id] -= sign * delta


def apply_transaction(
    state: RailwayState,
    train_id: int,
    delta: np.ndarray,
    predicate: Callable[[RailwayState], bool]
) -> bool:
    """
    Apply delta to train_id, keep it if predicate holds, otherwise undo it.

    The rollback applies the exact inverse delta, so a rejected transaction
    leaves the state identical to before the call. This also holds when
    predicate raises; the exception propagates after the rollback.

    Returns:
        True if the delta was committed
    """
    _apply_delta(state, train_id, delta, +1)
    committed = False
    try:
        committed = bool(predicate(state))
    finally:
        if not committed:
            _apply_delta(state, train_id, delta, -1)
    return committed


def bankers_request(state: RailwayState, train_id: int, request: Sequence[int]) -> RequestResult:
    """
    Handle a track request using Banker's Algorithm.

    Steps:
    1. Validate: train id in range, request vector well formed
    2. Validate: request <= need (declared ceiling)
    3. Check: request <= available (current supply)
    4. Tentatively allocate and run the safety algorithm
    5. If safe: commit. If unsafe: roll back exactly and deny

    No mutation happens when any check in steps 1-3 fails.

    Args:
        state: Current railway state
        train_id: Requesting train
        request: [m] Units requested per track section

    Returns:
        RequestResult
    """
    if not state.is_valid_train(train_id):
        return RequestResult(False, ErrorKind.INVALID_INDEX, f"Invalid train id {train_id}")

    delta = state.units_vector(request)
    if delta is None:
        return RequestResult(
            False, ErrorKind.INVALID_AMOUNT,
            f"Request must list {state.num_tracks} whole-number track amounts (got {request!r})"
        )
    if np.any(delta < 0):
        return RequestResult(False, ErrorKind.INVALID_AMOUNT, f"Negative request amount: {list(delta)}")

    need = state.need[train_id]
    if np.any(delta > need):
        return RequestResult(
            False, ErrorKind.REQUEST_EXCEEDS_NEED,
            f"Request exceeds need (requested: {list(delta)}, need: {list(need)})"
        )

    if np.any(delta > state.available):
        return RequestResult(
            False, ErrorKind.REQUEST_EXCEEDS_AVAILABLE,
            f"Insufficient tracks (requested: {list(delta)}, available: {list(state.available)})"
        )

    safe_sequence = []

    def _record_safety(candidate: RailwayState) -> bool:
        safe, sequence = is_safe_state(candidate)
        if safe:
            safe_sequence.extend(sequence)
        return safe

    if apply_transaction(state, train_id, delta, _record_safety):
        seq_str = " -> ".join(state.train_names[i] for i in safe_sequence)
        return RequestResult(True, None, f"GRANTED (Safe state maintained, sequence: {seq_str})", safe_sequence)

    return RequestResult(False, ErrorKind.UNSAFE_STATE, "DENIED (Unsafe state detected) - allocation rolled back")
