"""
Recovery Tests

Tests train termination, track preemption, victim selection, and the
automatic recovery loop.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import REMOVED_TRAIN_NAME
from models.errors import ErrorKind
from models.railway_state import RailwayState
from algorithms.detection import build_wait_for_graph, detect_cycle
from algorithms.recovery import preempt_from_train, recover_from_deadlock, select_victim, terminate_train
from utils.scenario_loader import random_railway


def crossing_state() -> RailwayState:
    return RailwayState.from_matrices(
        available=[0, 0],
        maximum=[[1, 1], [1, 1]],
        allocation=[[1, 0], [0, 1]],
        train_names=["Express", "Freight"]
    )


def test_terminate_releases_everything():
    print("\n" + "="*60)
    print("TEST: Train termination")
    print("="*60)

    state = random_railway(4, 3, max_units=3, seed=7)
    totals = state.total_capacity()
    victim = 2
    held = state.allocation[victim].copy()
    available_before = state.available.copy()

    result = terminate_train(state, victim)
    print(f"  {result.reason}")

    assert result.ok
    assert result.released == held.tolist()
    assert (state.available == available_before + held).all()
    assert not state.allocation[victim].any()
    assert not state.maximum[victim].any()
    assert not state.need[victim].any()
    assert state.train_names[victim] == REMOVED_TRAIN_NAME
    assert state.num_trains == 4, "Slot stays allocated"
    state.check_invariants("after terminate")
    state.assert_resource_conservation(totals, "after terminate")
    print("  ✓ All tracks released, row zeroed, name marked")


def test_terminate_breaks_crossing_deadlock():
    state = crossing_state()

    assert terminate_train(state, 0)
    assert state.available.tolist() == [1, 0]
    assert detect_cycle(build_wait_for_graph(state)) == (False, [])


def test_terminate_invalid_id():
    state = crossing_state()
    before = state.copy()

    result = terminate_train(state, 2)

    assert not result.ok
    assert result.error == ErrorKind.INVALID_INDEX
    assert state.same_as(before)


def test_preempt_clamps_and_recomputes_need():
    state = RailwayState.from_matrices(
        available=[0, 1, 0],
        maximum=[[3, 2, 2], [1, 1, 1]],
        allocation=[[2, 1, 0], [1, 0, 1]]
    )
    totals = state.total_capacity()

    # Take too much of track 0, a negative amount of track 1, nothing held on track 2
    result = preempt_from_train(state, 0, [5, -3, 4])

    assert result.ok
    assert result.released == [2, 0, 0]
    assert state.allocation[0].tolist() == [0, 1, 0]
    assert state.available.tolist() == [2, 1, 0]
    assert state.need[0].tolist() == [3, 1, 2]
    state.check_invariants("after preempt")
    state.assert_resource_conservation(totals, "after preempt")


def test_preempt_invalid_input():
    state = crossing_state()
    before = state.copy()

    assert preempt_from_train(state, -1, [1, 1]).error == ErrorKind.INVALID_INDEX
    assert preempt_from_train(state, 0, [1]).error == ErrorKind.INVALID_AMOUNT
    assert state.same_as(before)


def test_select_victim_strategies():
    state = RailwayState.from_matrices(
        available=[0, 0],
        maximum=[[2, 2], [2, 2], [2, 2]],
        allocation=[[2, 1], [1, 0], [0, 1]]
    )

    assert select_victim([0, 1, 2], state, "fewest_resources") == 1
    assert select_victim([0, 1, 2], state, "most_resources") == 0
    assert select_victim([0, 1, 2], state, "highest_index") == 2
    assert select_victim([], state) == -1
    with pytest.raises(ValueError):
        select_victim([0], state, "random")


def test_select_victim_ties_go_to_lowest_index():
    state = crossing_state()

    assert select_victim([1, 0], state, "fewest_resources") == 0
    assert select_victim([1, 0], state, "most_resources") == 0


def test_recover_from_deadlock():
    state = crossing_state()
    totals = state.total_capacity()

    success, actions = recover_from_deadlock(state)
    for action in actions:
        print(f"  {action}")

    assert success
    assert actions[0].startswith("RECOVERY: Terminated T0")
    assert state.train_names == [REMOVED_TRAIN_NAME, "Freight"]
    assert detect_cycle(build_wait_for_graph(state)) == (False, [])
    state.assert_resource_conservation(totals, "after recovery")


def test_recover_without_deadlock_is_noop():
    state = RailwayState.from_matrices(available=[1], maximum=[[1]], allocation=[[0]])
    before = state.copy()

    success, actions = recover_from_deadlock(state)

    assert not success
    assert actions == ["No deadlock to recover from"]
    assert state.same_as(before)


def test_recovery_operations_reject_non_integer_input():
    state = crossing_state()
    before = state.copy()

    assert terminate_train(state, 0.5).error == ErrorKind.INVALID_INDEX
    assert terminate_train(state, "1").error == ErrorKind.INVALID_INDEX
    assert preempt_from_train(state, 1.5, [1, 1]).error == ErrorKind.INVALID_INDEX
    assert preempt_from_train(state, 0, [0.5, 0]).error == ErrorKind.INVALID_AMOUNT
    assert preempt_from_train(state, 0, ["all", 0]).error == ErrorKind.INVALID_AMOUNT
    assert state.same_as(before)
