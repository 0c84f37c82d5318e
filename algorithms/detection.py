"""
Deadlock Detection Algorithm for the Railway Deadlock Simulator.

Builds the Wait-For Graph from the railway state and searches it for a
cycle. The Banker's safety check is run alongside as the stronger
diagnostic for multi-unit tracks.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models.railway_state import RailwayState
from models.wait_for_graph import WaitForGraph
from algorithms.avoidance import _safety_scan


@dataclass
class DeadlockReport:
    """
    Result of a full diagnosis of the railway state.

    Attributes:
        graph: Wait-For Graph the cycle search ran over
        cycle_found: True if the graph has a cycle
        cycle: Trains on the cycle in wait-for order (empty if none)
        safe: Banker's safety verdict
        safe_sequence: Completion order when safe, else None
        unfinishable: Trains the safety scan could not finish
    """
    graph: WaitForGraph
    cycle_found: bool
    cycle: List[int] = field(default_factory=list)
    safe: bool = True
    safe_sequence: Optional[List[int]] = None
    unfinishable: List[int] = field(default_factory=list)

    @property
    def deadlocked(self) -> bool:
        return self.cycle_found

    def describe(self, train_names: List[str]) -> str:
        """Human-readable verdict lines for the front-end."""
        lines = [self.graph.describe(train_names), ""]
        if self.cycle_found:
            path = " -> ".join(train_names[i] for i in self.cycle + self.cycle[:1])
            lines.append(f"Deadlock detected! Cycle: {path}")
        else:
            lines.append("No deadlock detected by WFG (or system is in a safe/avoidable state).")
        if self.safe:
            lines.append("System is in a SAFE state (Banker's Check).")
        else:
            lines.append("System is in an UNSAFE state (Banker's Check).")
        return "\n".join(lines)


def build_wait_for_graph(state: RailwayState) -> WaitForGraph:
    """
    Derive the Wait-For Graph from the current allocation state.

    Edge i -> j exists when train i still needs some track r, track r has
    no free units, and train j (j != i) holds units of r. A track with free
    units never produces an edge, even if some train needs it.

    Time Complexity: O(N²×M)

    Args:
        state: Current railway state (never modified)

    Returns:
        Fresh WaitForGraph
    """
    graph = WaitForGraph(num_trains=state.num_trains)

    for i in range(state.num_trains):
        # Train i has no outstanding request
        if not (state.need[i] > 0).any():
            continue

        for r in range(state.num_tracks):
            if state.need[i][r] <= 0:
                continue

            # Satisfiable from free supply: wanting more is not waiting
            if state.available[r] > 0:
                continue

            for j in range(state.num_trains):
                if j != i and state.allocation[j][r] > 0:
                    graph.add_edge(i, j)

    return graph


def detect_cycle(graph: WaitForGraph) -> Tuple[bool, List[int]]:
    """
    Search the Wait-For Graph for a cycle with an iterative depth-first search.

    Roots are tried in index order and neighbours are expanded in index
    order. When an edge reaches a train already on the active path, the
    cycle is the slice of that path from the edge target to the current
    train. The result reads in wait-for order: each train waits for the
    next one, and the last waits for the first.

    Args:
        graph: Wait-For Graph

    Returns:
        Tuple of (cycle_found, cycle trains or [] if none)
    """
    n = graph.num_trains
    visited = [False] * n
    on_stack = [False] * n

    for root in range(n):
        if visited[root]:
            continue

        path = [root]
        frames = [(root, iter(graph.successors(root)))]
        visited[root] = True
        on_stack[root] = True

        while frames:
            node, neighbours = frames[-1]
            advanced = False

            for v in neighbours:
                if on_stack[v]:
                    # Back edge: cycle runs from v through the current node
                    return True, path[path.index(v):]
                if not visited[v]:
                    visited[v] = True
                    on_stack[v] = True
                    path.append(v)
                    frames.append((v, iter(graph.successors(v))))
                    advanced = True
                    break

            if not advanced:
                frames.pop()
                path.pop()
                on_stack[node] = False

    return False, []


def diagnose(state: RailwayState) -> DeadlockReport:
    """
    Run cycle detection and the Banker's safety check over the same state.

    A cycle is a sufficient deadlock signal only for single-unit tracks;
    the safety verdict is reported alongside for the multi-unit case.
    """
    graph = build_wait_for_graph(state)
    cycle_found, cycle = detect_cycle(graph)

    finish, sequence = _safety_scan(state)
    safe = bool(finish.all())

    return DeadlockReport(
        graph=graph,
        cycle_found=cycle_found,
        cycle=cycle,
        safe=safe,
        safe_sequence=sequence if safe else None,
        unfinishable=[i for i in range(state.num_trains) if not finish[i]]
    )
