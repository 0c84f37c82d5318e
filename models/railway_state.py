"""
Railway State model for the Railway Deadlock Simulator.

Holds the Available vector and the Maximum / Allocation / Need matrices
shared by the avoidance, detection and recovery algorithms.
"""

import numpy as np
from typing import List, Optional, Sequence
from dataclasses import dataclass, field

from config import DEFAULT_LIMITS, Limits, TRAIN_NAME_TEMPLATE, TRACK_NAME_TEMPLATE
from models.errors import StateSizeError


def is_index(value) -> bool:
    """True for Python or numpy integers; bool is not an index."""
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass(eq=False)
class RailwayState:
    """
    Resource-allocation state of the railway network.

    Trains are the competing actors, track sections are the multi-unit
    resource classes.

    Attributes:
        num_trains: Number of trains [n]
        num_tracks: Number of track sections [m]
        train_names: Display name per train [n]
        track_names: Display name per track section [m]
        available: [m] Free units per track section
        maximum: [n][m] Declared ceiling demand of each train
        allocation: [n][m] Units currently held by each train
        need: [n][m] Maximum - Allocation
        limits: Capacity limits the state was validated against

    Invariants:
        need == maximum - allocation
        0 <= allocation <= maximum
        available[j] + sum(allocation[:, j]) is constant outside scenario setup
    """
    num_trains: int
    num_tracks: int
    train_names: List[str] = field(default_factory=list)
    track_names: List[str] = field(default_factory=list)
    available: Optional[np.ndarray] = None
    maximum: Optional[np.ndarray] = None
    allocation: Optional[np.ndarray] = None
    need: Optional[np.ndarray] = None
    limits: Limits = DEFAULT_LIMITS

    def __post_init__(self):
        """Validate sizes and fill in zeroed matrices and default names."""
        if not 1 <= self.num_trains <= self.limits.max_trains:
            raise StateSizeError(
                f"Number of trains must be in [1, {self.limits.max_trains}] (got {self.num_trains})"
            )
        if not 1 <= self.num_tracks <= self.limits.max_tracks:
            raise StateSizeError(
                f"Number of tracks must be in [1, {self.limits.max_tracks}] (got {self.num_tracks})"
            )

        n, m = self.num_trains, self.num_tracks
        if self.available is None:
            self.available = np.zeros(m, dtype=int)
        if self.maximum is None:
            self.maximum = np.zeros((n, m), dtype=int)
        if self.allocation is None:
            self.allocation = np.zeros((n, m), dtype=int)
        if self.need is None:
            self.need = np.zeros((n, m), dtype=int)

        if not self.train_names:
            self.train_names = [TRAIN_NAME_TEMPLATE.format(i) for i in range(n)]
        if not self.track_names:
            self.track_names = [TRACK_NAME_TEMPLATE.format(j) for j in range(m)]
        self.train_names = [self._clip_name(name) for name in self.train_names]
        self.track_names = [self._clip_name(name) for name in self.track_names]

        self._check_shapes()

    @classmethod
    def empty(cls, num_trains: int, num_tracks: int, limits: Limits = DEFAULT_LIMITS) -> 'RailwayState':
        """
        Create a zero-initialized state with default names.

        Raises:
            StateSizeError: If num_trains or num_tracks is outside [1, limit]
        """
        return cls(num_trains=num_trains, num_tracks=num_tracks, limits=limits)

    @classmethod
    def from_matrices(
        cls,
        available: Sequence[int],
        maximum: Sequence[Sequence[int]],
        allocation: Sequence[Sequence[int]],
        train_names: Optional[List[str]] = None,
        track_names: Optional[List[str]] = None,
        limits: Limits = DEFAULT_LIMITS
    ) -> 'RailwayState':
        """
        Build a state from explicit matrices and recompute Need.

        Args:
            available: [m] Free units per track
            maximum: [n][m] Ceiling demand per train
            allocation: [n][m] Held units per train
            train_names: Optional display names [n]
            track_names: Optional display names [m]
            limits: Capacity limits

        Returns:
            New RailwayState
        """
        available_arr = np.array(available, dtype=int)
        maximum_arr = np.array(maximum, dtype=int)
        allocation_arr = np.array(allocation, dtype=int)

        if maximum_arr.ndim != 2:
            raise StateSizeError("Maximum matrix must be two-dimensional")
        num_trains, num_tracks = maximum_arr.shape

        state = cls(
            num_trains=num_trains,
            num_tracks=num_tracks,
            train_names=list(train_names) if train_names else [],
            track_names=list(track_names) if track_names else [],
            available=available_arr,
            maximum=maximum_arr,
            allocation=allocation_arr,
            limits=limits
        )
        state.recompute_need()
        return state

    def _check_shapes(self) -> None:
        n, m = self.num_trains, self.num_tracks
        if self.available.shape != (m,):
            raise StateSizeError(f"Available vector must have shape ({m},), got {self.available.shape}")
        for label, matrix in (('Maximum', self.maximum), ('Allocation', self.allocation), ('Need', self.need)):
            if matrix.shape != (n, m):
                raise StateSizeError(f"{label} matrix must have shape ({n}, {m}), got {matrix.shape}")
        if len(self.train_names) != n:
            raise StateSizeError(f"Expected {n} train names, got {len(self.train_names)}")
        if len(self.track_names) != m:
            raise StateSizeError(f"Expected {m} track names, got {len(self.track_names)}")

    def _clip_name(self, name: str) -> str:
        return str(name)[:self.limits.max_name_len - 1]

    def recompute_need(self) -> None:
        """
        Recompute Need = Maximum - Allocation for every train.

        Must be called after any direct edit of maximum or allocation.
        Calling it repeatedly yields the same matrix.
        """
        self.need = self.maximum - self.allocation

    def copy(self) -> 'RailwayState':
        """Return a deep copy that shares no arrays or name lists with this state."""
        return RailwayState(
            num_trains=self.num_trains,
            num_tracks=self.num_tracks,
            train_names=list(self.train_names),
            track_names=list(self.track_names),
            available=self.available.copy(),
            maximum=self.maximum.copy(),
            allocation=self.allocation.copy(),
            need=self.need.copy(),
            limits=self.limits
        )

    def overwrite_from(self, other: 'RailwayState') -> None:
        """Replace every field of this state with a private copy of other's fields."""
        snapshot = other.copy()
        self.num_trains = snapshot.num_trains
        self.num_tracks = snapshot.num_tracks
        self.train_names = snapshot.train_names
        self.track_names = snapshot.track_names
        self.available = snapshot.available
        self.maximum = snapshot.maximum
        self.allocation = snapshot.allocation
        self.need = snapshot.need
        self.limits = snapshot.limits

    def same_as(self, other: 'RailwayState') -> bool:
        """Field-by-field comparison with another state."""
        return (
            self.num_trains == other.num_trains
            and self.num_tracks == other.num_tracks
            and self.train_names == other.train_names
            and self.track_names == other.track_names
            and np.array_equal(self.available, other.available)
            and np.array_equal(self.maximum, other.maximum)
            and np.array_equal(self.allocation, other.allocation)
            and np.array_equal(self.need, other.need)
        )

    def total_capacity(self) -> np.ndarray:
        """Total units per track: available + sum of allocations."""
        return self.available + self.allocation.sum(axis=0)

    def is_valid_train(self, train_id: int) -> bool:
        return is_index(train_id) and 0 <= train_id < self.num_trains

    def is_valid_track(self, track_id: int) -> bool:
        return is_index(track_id) and 0 <= track_id < self.num_tracks

    def units_vector(self, values: Sequence[int]) -> Optional[np.ndarray]:
        """
        Convert per-track amounts to an integer vector.

        Returns:
            [m] int array, or None unless values holds exactly one whole
            number per track (floats, strings and booleans are rejected)
        """
        try:
            vector = np.asarray(values)
        except (ValueError, TypeError):
            return None
        if vector.shape != (self.num_tracks,) or not np.issubdtype(vector.dtype, np.integer):
            return None
        return vector.astype(int)

    def rename_train(self, train_id: int, name: str) -> bool:
        """Set a train's display name. Returns False on an invalid id."""
        if not self.is_valid_train(train_id):
            return False
        self.train_names[train_id] = self._clip_name(name)
        return True

    def rename_track(self, track_id: int, name: str) -> bool:
        """Set a track's display name. Returns False on an invalid id."""
        if not self.is_valid_track(track_id):
            return False
        self.track_names[track_id] = self._clip_name(name)
        return True

    def check_invariants(self, context: str = "") -> None:
        """
        Verify the structural invariants of the state.

        Raises:
            AssertionError: If any invariant is violated
        """
        assert np.all(self.available >= 0), (
            f"Negative available units {context}\n  Available: {list(self.available)}"
        )
        assert np.all(self.allocation >= 0), f"Negative allocation {context}"
        assert np.all(self.allocation <= self.maximum), (
            f"Allocation exceeds maximum {context}"
        )
        assert np.array_equal(self.need, self.maximum - self.allocation), (
            f"Need matrix out of sync with Maximum - Allocation {context}"
        )
        assert np.all(self.need >= 0), f"Negative need {context}"

    def assert_resource_conservation(self, expected_totals: Sequence[int], context: str = "") -> None:
        """
        Verify resource conservation: allocated + available = total for all tracks.

        Args:
            expected_totals: Total units per track captured after scenario setup
            context: Description of when this check is being run (for error messages)

        Raises:
            AssertionError: If resource conservation is violated
        """
        totals = self.total_capacity()
        for j in range(self.num_tracks):
            allocated = self.allocation[:, j].sum()
            available = self.available[j]
            assert totals[j] == expected_totals[j], (
                f"Resource conservation violated for {self.track_names[j]} {context}\n"
                f"  Allocated: {allocated}, Available: {available}, Total: {expected_totals[j]}\n"
                f"  Allocated + Available = {totals[j]} != {expected_totals[j]}"
            )
            assert available >= 0, (
                f"Negative available units for {self.track_names[j]} {context}\n"
                f"  Available: {available}"
            )

    def display(self) -> str:
        """
        Generate readable string representation of the railway state.

        Returns:
            Formatted table of Alloc / Max / Need per train plus the Available vector
        """
        m = self.num_tracks
        headers = " ".join(f"R{j:<2}" for j in range(m))
        width = 20 + 3 * (4 * m + 3)

        output = []
        output.append(f"Trains: {self.num_trains}    Track Sections: {m}")
        output.append("-" * width)
        output.append(f"{'ID':<4} {'Train':<12} | {'Alloc':<{4 * m}}| {'Max':<{4 * m}}| Need")
        output.append(f"{'':<4} {'':<12} | {headers} | {headers} | {headers}")
        output.append("-" * width)
        for i in range(self.num_trains):
            alloc = " ".join(f"{v:3}" for v in self.allocation[i])
            maximum = " ".join(f"{v:3}" for v in self.maximum[i])
            need = " ".join(f"{v:3}" for v in self.need[i])
            output.append(f"{i:3}  {self.train_names[i][:12]:<12} | {alloc} | {maximum} | {need}")
        output.append("-" * width)
        avail = " ".join(f"{self.track_names[j]}={self.available[j]}" for j in range(m))
        output.append(f"Available tracks: {avail}")
        return "\n".join(output)
