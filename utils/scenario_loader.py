"""
Scenario Loader for the Railway Deadlock Simulator.

Builds initial railway states: the fixed sample network, randomized
multi-unit networks, and JSON scenario files with an optional event list.
"""

import json
import numpy as np
from typing import Any, Dict, List, Optional, Tuple

from config import DEFAULT_LIMITS, DEFAULT_RANDOM_UNITS, Limits
from models.errors import StateSizeError
from models.railway_state import RailwayState, is_index
from algorithms.recovery import VICTIM_STRATEGIES


EVENT_TYPES = ('request', 'terminate', 'preempt', 'detect', 'recover', 'checkpoint', 'restore', 'export')


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


def sample_railway() -> RailwayState:
    """
    Fixed 5-train, 5-track sample network (mostly single-unit tracks).

    Returns:
        RailwayState with trains A-E and tracks T0-T4
    """
    return RailwayState.from_matrices(
        available=[1, 1, 0, 1, 0],
        maximum=[
            [1, 1, 1, 0, 0],
            [0, 1, 0, 1, 0],
            [0, 0, 1, 0, 1],
            [0, 1, 0, 1, 0],
            [1, 0, 0, 0, 1],
        ],
        allocation=[
            [0, 0, 0, 0, 0],
            [0, 1, 0, 0, 0],
            [0, 0, 1, 0, 0],
            [0, 0, 0, 0, 0],
            [1, 0, 0, 0, 0],
        ],
        train_names=["A", "B", "C", "D", "E"],
        track_names=["T0", "T1", "T2", "T3", "T4"]
    )


def random_railway(
    num_trains: int,
    num_tracks: int,
    max_units: int = DEFAULT_RANDOM_UNITS,
    seed: Optional[int] = None,
    limits: Limits = DEFAULT_LIMITS
) -> RailwayState:
    """
    Randomized multi-unit network.

    Per track: 1..max_units free units, a random share of a generous pool
    handed out to trains, then Maximum = Allocation + 0..max_units extra.

    Args:
        num_trains: Number of trains
        num_tracks: Number of track sections
        max_units: Upper bound on free units and extra demand per track
        seed: Seed for reproducible scenarios
        limits: Capacity limits

    Returns:
        RailwayState satisfying all state invariants

    Raises:
        StateSizeError: If sizes are out of range
        ValueError: If max_units < 1
    """
    if max_units < 1:
        raise ValueError(f"max_units must be at least 1 (got {max_units})")

    state = RailwayState.empty(num_trains, num_tracks, limits)
    rng = np.random.default_rng(seed)

    state.available = rng.integers(1, max_units + 1, size=num_tracks)

    for j in range(num_tracks):
        cap = int(state.available[j]) + num_trains * max_units
        remaining = int(rng.integers(0, cap + 1))
        for i in range(num_trains):
            take = int(rng.integers(0, remaining + 1)) if remaining else 0
            state.allocation[i][j] = take
            remaining -= take

    state.maximum = state.allocation + rng.integers(0, max_units + 1, size=(num_trains, num_tracks))
    state.recompute_need()
    return state


def load_scenario(file_path: str, limits: Limits = DEFAULT_LIMITS) -> Tuple[RailwayState, List[Dict]]:
    """
    Load scenario from JSON file.

    Format:
        {
          "description": "...",
          "tracks": [{"name": "T0", "available": 1}, ...],
          "trains": [{"name": "A", "maximum": [...], "allocation": [...]}, ...],
          "events": [{"type": "request", "train": 0, "amounts": [...]}, ...]
        }

    Args:
        file_path: Path to scenario JSON file
        limits: Capacity limits

    Returns:
        Tuple of (RailwayState, events in file order)

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    return scenario_from_dict(data, limits)


def scenario_from_dict(data: Dict[str, Any], limits: Limits = DEFAULT_LIMITS) -> Tuple[RailwayState, List[Dict]]:
    """Build a state and event list from already-parsed scenario data."""
    if 'tracks' not in data:
        raise ScenarioLoadError("Scenario missing 'tracks' field")
    if 'trains' not in data:
        raise ScenarioLoadError("Scenario missing 'trains' field")

    tracks = data['tracks']
    trains = data['trains']
    num_tracks = len(tracks)

    available = []
    track_names = []
    for j, track in enumerate(tracks):
        if 'available' not in track:
            raise ScenarioLoadError(f"Track {j} missing 'available'")
        if not is_index(track['available']):
            raise ScenarioLoadError(f"Track {j}: available units must be a whole number")
        if track['available'] < 0:
            raise ScenarioLoadError(f"Track {j}: available units cannot be negative")
        available.append(track['available'])
        track_names.append(track.get('name', ''))

    maximum = []
    allocation = []
    train_names = []
    for i, train in enumerate(trains):
        _validate_train(i, train, num_tracks)
        maximum.append(train['maximum'])
        allocation.append(train.get('allocation', [0] * num_tracks))
        train_names.append(train.get('name', ''))

    if not trains or not tracks:
        raise ScenarioLoadError("Scenario needs at least one train and one track")

    # Default names fill in any blanks
    try:
        state = RailwayState.from_matrices(available, maximum, allocation, limits=limits)
    except StateSizeError as e:
        raise ScenarioLoadError(f"Invalid scenario size: {e}")

    for i, name in enumerate(train_names):
        if name:
            state.rename_train(i, name)
    for j, name in enumerate(track_names):
        if name:
            state.rename_track(j, name)

    events = data.get('events', [])
    for index, event in enumerate(events):
        _validate_event(index, event)

    return state, list(events)


def _validate_train(index: int, train: Dict, num_tracks: int) -> None:
    """
    Validate a single train entry.

    Raises:
        ScenarioLoadError: If the entry is invalid
    """
    if 'maximum' not in train:
        raise ScenarioLoadError(f"Train {index} missing required field: maximum")

    maximum = train['maximum']
    allocation = train.get('allocation', [0] * num_tracks)

    if len(maximum) != num_tracks:
        raise ScenarioLoadError(
            f"Train {index}: maximum length ({len(maximum)}) does not match track count ({num_tracks})"
        )
    if len(allocation) != num_tracks:
        raise ScenarioLoadError(f"Train {index}: allocation length mismatch")

    for j, (alloc, max_d) in enumerate(zip(allocation, maximum)):
        if not (is_index(alloc) and is_index(max_d)):
            raise ScenarioLoadError(f"Train {index}: entries for track {j} must be whole numbers")
        if alloc < 0:
            raise ScenarioLoadError(f"Train {index}: allocation[{j}] cannot be negative")
        if alloc > max_d:
            raise ScenarioLoadError(
                f"Train {index}: allocation[{j}] ({alloc}) exceeds maximum[{j}] ({max_d})"
            )


def _validate_event(index: int, event: Dict) -> None:
    """
    Validate one scripted event.

    Raises:
        ScenarioLoadError: If event is invalid
    """
    if 'type' not in event:
        raise ScenarioLoadError(f"Event {index} missing 'type' field")

    event_type = event['type']
    if event_type not in EVENT_TYPES:
        raise ScenarioLoadError(f"Event {index}: unknown event type '{event_type}'")

    if event_type in ('request', 'terminate', 'preempt') and 'train' not in event:
        raise ScenarioLoadError(f"Event {index}: {event_type} event missing 'train'")
    if event_type in ('request', 'preempt') and 'amounts' not in event:
        raise ScenarioLoadError(f"Event {index}: {event_type} event missing 'amounts'")
    if event_type == 'restore' and 'slot' not in event:
        raise ScenarioLoadError(f"Event {index}: restore event missing 'slot'")
    if 'train' in event and not is_index(event['train']):
        raise ScenarioLoadError(f"Event {index}: train must be a whole number")
    if 'amounts' in event and not isinstance(event['amounts'], list):
        raise ScenarioLoadError(f"Event {index}: amounts must be a list")
    if 'slot' in event and not is_index(event['slot']):
        raise ScenarioLoadError(f"Event {index}: slot must be a whole number")
    if event_type == 'export' and 'path' not in event:
        raise ScenarioLoadError(f"Event {index}: export event missing 'path'")
    if event_type == 'recover' and event.get('strategy', 'fewest_resources') not in VICTIM_STRATEGIES:
        raise ScenarioLoadError(f"Event {index}: unknown victim strategy '{event['strategy']}'")


def scenario_to_dict(state: RailwayState, description: str = "") -> Dict[str, Any]:
    """Serialize a state into the scenario file format (no events)."""
    return {
        'description': description,
        'tracks': [
            {'name': state.track_names[j], 'available': int(state.available[j])}
            for j in range(state.num_tracks)
        ],
        'trains': [
            {
                'name': state.train_names[i],
                'maximum': [int(v) for v in state.maximum[i]],
                'allocation': [int(v) for v in state.allocation[i]],
            }
            for i in range(state.num_trains)
        ],
    }


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Returns:
        Description string, or empty string if not present or unreadable
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data.get('description', '')
    except (OSError, json.JSONDecodeError):
        return ''
