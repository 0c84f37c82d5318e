"""
Banker's Algorithm Tests

Tests the safety check and the request protocol, including exact rollback
of denied requests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.errors import ErrorKind
from models.railway_state import RailwayState
from algorithms.avoidance import (
    apply_transaction,
    bankers_request,
    is_safe_state,
    unfinishable_trains,
    verify_safe_sequence,
)
from utils.scenario_loader import random_railway, sample_railway


def classic_state() -> RailwayState:
    """Textbook 5-train, 3-track Banker's example."""
    return RailwayState.from_matrices(
        available=[3, 3, 2],
        maximum=[[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
        allocation=[[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
        train_names=["A", "B", "C", "D", "E"]
    )


def test_safe_state_sequence():
    """Lowest-index runnable train is chosen after every restart."""
    print("\n" + "="*60)
    print("TEST: Safety algorithm on classic state")
    print("="*60)

    state = classic_state()
    before = state.copy()

    safe, sequence = is_safe_state(state)
    print(f"  Safe: {safe}, sequence: {sequence}")

    assert safe
    assert sequence == [1, 3, 0, 2, 4]
    assert verify_safe_sequence(state, sequence)
    assert state.same_as(before), "Safety check must not mutate the state"
    assert unfinishable_trains(state) == []
    print("  ✓ Safe sequence found and replays cleanly")


def test_sample_network_is_unsafe():
    """
    The sample network has no completion order: track T4 has no units at
    all while C and E both still need one, and A needs T2 held by C.
    """
    state = sample_railway()

    safe, sequence = is_safe_state(state)

    assert not safe
    assert sequence is None
    assert unfinishable_trains(state) == [0, 2, 4]


def test_verify_safe_sequence_rejects_bad_orders():
    state = classic_state()

    assert not verify_safe_sequence(state, [0, 1, 2, 3, 4])   # A cannot go first
    assert not verify_safe_sequence(state, [1, 3, 0, 2])      # E missing
    assert not verify_safe_sequence(state, [1, 1, 3, 0, 2])   # duplicate


def test_request_granted_keeps_state_safe():
    state = classic_state()

    result = bankers_request(state, 1, [1, 0, 2])
    print(f"  {result.reason}")

    assert result.granted and result
    assert result.error is None
    assert result.safe_sequence == [1, 3, 0, 2, 4]
    assert state.available.tolist() == [2, 3, 0]
    assert state.allocation[1].tolist() == [3, 0, 2]
    assert state.need[1].tolist() == [0, 2, 0]
    assert is_safe_state(state)[0]
    state.check_invariants("after grant")


def test_unsafe_request_rolled_back_exactly():
    state = classic_state()
    assert bankers_request(state, 1, [1, 0, 2]).granted
    before = state.copy()

    result = bankers_request(state, 0, [0, 2, 0])

    assert not result.granted
    assert result.error == ErrorKind.UNSAFE_STATE
    assert result.safe_sequence is None
    assert state.same_as(before), "Denied request must leave state unchanged"
    print("  ✓ Unsafe request denied and rolled back")


def test_request_exceeds_need_regardless_of_available():
    state = classic_state()
    state.available[:] = [50, 50, 50]
    before = state.copy()

    result = bankers_request(state, 1, [2, 0, 0])   # need is [1, 2, 2]

    assert result.error == ErrorKind.REQUEST_EXCEEDS_NEED
    assert state.same_as(before)


def test_request_exceeds_available():
    state = classic_state()
    assert bankers_request(state, 1, [1, 0, 2]).granted
    before = state.copy()

    result = bankers_request(state, 4, [3, 3, 0])

    assert result.error == ErrorKind.REQUEST_EXCEEDS_AVAILABLE
    assert state.same_as(before)


def test_need_checked_before_available():
    state = classic_state()

    # Exceeds both need [1, 2, 2] and available [3, 3, 2]
    result = bankers_request(state, 1, [4, 0, 0])

    assert result.error == ErrorKind.REQUEST_EXCEEDS_NEED


def test_invalid_train_and_amounts():
    state = classic_state()
    before = state.copy()

    assert bankers_request(state, 5, [0, 0, 0]).error == ErrorKind.INVALID_INDEX
    assert bankers_request(state, -1, [0, 0, 0]).error == ErrorKind.INVALID_INDEX
    assert bankers_request(state, 0, [1, 0]).error == ErrorKind.INVALID_AMOUNT
    assert bankers_request(state, 0, [-1, 0, 0]).error == ErrorKind.INVALID_AMOUNT
    assert state.same_as(before)


def test_non_integer_train_id_rejected():
    state = classic_state()
    before = state.copy()

    for train_id in (1.5, 1.0, "1", None, True):
        result = bankers_request(state, train_id, [0, 0, 0])
        assert result.error == ErrorKind.INVALID_INDEX, train_id
    assert bankers_request(state, np.int64(1), [1, 0, 2]).granted
    before.allocation[1] += [1, 0, 2]
    before.available -= [1, 0, 2]
    before.recompute_need()
    assert state.same_as(before)


def test_fractional_and_non_numeric_amounts_rejected():
    """Amounts are never truncated: a fraction is an error, not a smaller grant."""
    state = classic_state()
    before = state.copy()

    for request in ([0.9, 0, 0], [1.9, 0, 2], ["x", 0, 0], [True, False, False], [[1], [0, 1], [2]], 3, None):
        result = bankers_request(state, 1, request)
        assert not result.granted
        assert result.error == ErrorKind.INVALID_AMOUNT, request
    assert state.same_as(before)


def test_zero_request_follows_current_safety():
    safe_state = classic_state()
    assert bankers_request(safe_state, 0, [0, 0, 0]).granted

    unsafe_state = sample_railway()
    before = unsafe_state.copy()
    result = bankers_request(unsafe_state, 1, [0, 0, 0, 0, 0])
    assert result.error == ErrorKind.UNSAFE_STATE
    assert unsafe_state.same_as(before)


def test_apply_transaction_undoes_on_false_predicate():
    state = classic_state()
    before = state.copy()
    delta = np.array([1, 1, 1])

    assert not apply_transaction(state, 3, delta, lambda s: False)
    assert state.same_as(before)

    assert apply_transaction(state, 3, delta, lambda s: True)
    assert state.allocation[3].tolist() == [3, 2, 2]
    assert state.available.tolist() == [2, 2, 1]


def test_apply_transaction_undoes_when_predicate_raises():
    state = classic_state()
    before = state.copy()

    def failing_check(candidate):
        raise RuntimeError("safety check failed")

    with pytest.raises(RuntimeError):
        apply_transaction(state, 3, np.array([1, 1, 1]), failing_check)
    assert state.same_as(before)


def test_random_requests_preserve_invariants():
    """
    Drive random networks with many requests: Need stays in sync, totals are
    conserved, denials change nothing, grants leave the state safe.
    """
    print("\n" + "="*60)
    print("TEST: Random request sequences")
    print("="*60)

    granted_total = 0
    for seed in range(15):
        state = random_railway(5, 4, max_units=2, seed=seed)
        totals = state.total_capacity()
        rng = np.random.default_rng(1000 + seed)

        for _ in range(40):
            train_id = int(rng.integers(0, state.num_trains))
            request = rng.integers(0, 3, size=state.num_tracks)
            before = state.copy()

            result = bankers_request(state, train_id, request)

            state.check_invariants(f"seed {seed}")
            state.assert_resource_conservation(totals, f"seed {seed}")
            if result.granted:
                granted_total += 1
                assert is_safe_state(state)[0]
            else:
                assert state.same_as(before)

    print(f"  ✓ {granted_total} grants, invariants held throughout")
