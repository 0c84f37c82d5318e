"""
Deadlock Recovery Algorithm for the Railway Deadlock Simulator.

Implements train termination and track preemption. Both are unconditional:
they never consult the safety check.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import REMOVED_TRAIN_NAME
from models.errors import ErrorKind
from models.railway_state import RailwayState


VICTIM_STRATEGIES = ("fewest_resources", "most_resources", "highest_index")


@dataclass
class RecoveryResult:
    """
    Outcome of a termination or preemption.

    Attributes:
        ok: True if the action was applied
        released: [m] Units returned to Available (None on failure)
        error: Failure reason, None on success
        reason: Human-readable explanation
    """
    ok: bool
    released: Optional[List[int]] = None
    error: Optional[ErrorKind] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


def _describe_units(state: RailwayState, units: Sequence[int]) -> str:
    held = [f"{state.track_names[j]}[{int(units[j])}]" for j in range(state.num_tracks) if units[j] > 0]
    return ", ".join(held) if held else "nothing"


def terminate_train(state: RailwayState, train_id: int) -> RecoveryResult:
    """
    Terminate a train and release all its tracks.

    Train termination:
    - Return every held unit to Available
    - Zero the train's Maximum, Allocation and Need rows
    - Rename the train to mark it inert (the slot stays allocated)

    Args:
        state: Current railway state
        train_id: Train to terminate

    Returns:
        RecoveryResult with the released units
    """
    if not state.is_valid_train(train_id):
        return RecoveryResult(False, error=ErrorKind.INVALID_INDEX, reason=f"Invalid train id {train_id}")

    released = state.allocation[train_id].copy()
    old_name = state.train_names[train_id]

    state.available += released
    state.allocation[train_id] = 0
    state.maximum[train_id] = 0
    state.need[train_id] = 0
    state.rename_train(train_id, REMOVED_TRAIN_NAME)

    message = f"Terminated T{train_id} ({old_name}), released {_describe_units(state, released)}"
    return RecoveryResult(True, released=[int(v) for v in released], reason=message)


def preempt_from_train(state: RailwayState, train_id: int, amounts: Sequence[int]) -> RecoveryResult:
    """
    Forcibly take tracks back from a train.

    Each requested take is clamped to [0, allocation[train_id][j]] before it
    is moved to Available. Need is recomputed afterwards.

    Args:
        state: Current railway state
        train_id: Victim train
        amounts: [m] Units to preempt per track section

    Returns:
        RecoveryResult with the units actually taken
    """
    if not state.is_valid_train(train_id):
        return RecoveryResult(False, error=ErrorKind.INVALID_INDEX, reason=f"Invalid train id {train_id}")

    take = state.units_vector(amounts)
    if take is None:
        return RecoveryResult(
            False, error=ErrorKind.INVALID_AMOUNT,
            reason=f"Preemption must list {state.num_tracks} whole-number track amounts (got {amounts!r})"
        )

    take = np.clip(take, 0, state.allocation[train_id])

    state.allocation[train_id] -= take
    state.available += take
    state.recompute_need()

    message = f"Preempted {_describe_units(state, take)} from T{train_id} ({state.train_names[train_id]})"
    return RecoveryResult(True, released=[int(v) for v in take], reason=message)


def select_victim(candidates: List[int], state: RailwayState, strategy: str = "fewest_resources") -> int:
    """
    Select victim train for termination.

    Strategies:
    - "fewest_resources": Train holding the fewest units (minimize waste)
    - "most_resources": Train holding the most units (free the most supply)
    - "highest_index": Train with the highest index

    Ties go to the lowest index.

    Args:
        candidates: Trains eligible for termination
        state: Current railway state
        strategy: Selection strategy

    Returns:
        Train id of selected victim, or -1 if there are no candidates
    """
    if not candidates:
        return -1

    if strategy == "fewest_resources":
        return min(sorted(candidates), key=lambda i: int(state.allocation[i].sum()))
    elif strategy == "most_resources":
        return max(sorted(candidates), key=lambda i: int(state.allocation[i].sum()))
    elif strategy == "highest_index":
        return max(candidates)
    else:
        raise ValueError(f"Unknown victim strategy: {strategy}")


def recover_from_deadlock(state: RailwayState, strategy: str = "fewest_resources") -> Tuple[bool, List[str]]:
    """
    Terminate victims until the Wait-For Graph has no cycle.

    Each round diagnoses the state, picks a victim from the current cycle
    and terminates it.

    Args:
        state: Current railway state
        strategy: Victim selection strategy

    Returns:
        Tuple of (success, list of action messages)
    """
    from algorithms.detection import build_wait_for_graph, detect_cycle

    actions = []

    cycle_found, cycle = detect_cycle(build_wait_for_graph(state))
    if not cycle_found:
        return False, ["No deadlock to recover from"]

    # Each round terminates one train, so at most num_trains rounds
    for _ in range(state.num_trains):
        victim = select_victim(cycle, state, strategy)
        result = terminate_train(state, victim)
        if not result:
            actions.append(f"FAILED: {result.reason}")
            return False, actions
        actions.append(f"RECOVERY: {result.reason}")

        cycle_found, cycle = detect_cycle(build_wait_for_graph(state))
        if not cycle_found:
            actions.append("Deadlock resolved - no cycle remains in the Wait-For Graph")
            return True, actions

    actions.append("FAILED: cycle persists after terminating every candidate")
    return False, actions
