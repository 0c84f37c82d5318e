"""
Wait-For Graph model for the Railway Deadlock Simulator.

Edge (i, j) means train i is blocked on a fully exhausted track section
currently held by train j. Built fresh from a RailwayState on every query.
"""

import numpy as np
from typing import List, Optional, Tuple
from dataclasses import dataclass


@dataclass(eq=False)
class WaitForGraph:
    """
    Directed train -> train graph stored as an [n][n] boolean adjacency matrix.

    Attributes:
        num_trains: Number of nodes
        adjacency: adjacency[i][j] is True if train i waits for train j
    """
    num_trains: int
    adjacency: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.adjacency is None:
            self.adjacency = np.zeros((self.num_trains, self.num_trains), dtype=bool)

    def add_edge(self, waiter: int, holder: int) -> None:
        """Add edge waiter -> holder. Adding an existing edge is a no-op."""
        self.adjacency[waiter][holder] = True

    def has_edge(self, waiter: int, holder: int) -> bool:
        return bool(self.adjacency[waiter][holder])

    def successors(self, train_id: int) -> List[int]:
        """Trains that train_id waits for, in index order."""
        return [int(j) for j in np.flatnonzero(self.adjacency[train_id])]

    def edges(self) -> List[Tuple[int, int]]:
        """All edges as (waiter, holder) pairs in row-major order."""
        return [(int(i), int(j)) for i, j in zip(*np.nonzero(self.adjacency))]

    @property
    def edge_count(self) -> int:
        return int(self.adjacency.sum())

    def describe(self, train_names: List[str]) -> str:
        """
        Render the graph one train per line.

        Args:
            train_names: Display names indexed by train id

        Returns:
            Lines of the form "T0 (A) waits for: T2 (C)" or "... waits for: none"
        """
        output = ["Wait-For Graph (train -> train):"]
        for i in range(self.num_trains):
            targets = [f"T{j} ({train_names[j]})" for j in self.successors(i)]
            output.append(f"T{i} ({train_names[i]}) waits for: {' '.join(targets) if targets else 'none'}")
        return "\n".join(output)
