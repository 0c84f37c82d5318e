"""
Graphviz export for the Railway Deadlock Simulator.

Serializes the Resource Allocation Graph and the Wait-For Graph into one
DOT digraph. Read-only with respect to the state and graph.
"""

from typing import Tuple

from models.railway_state import RailwayState
from models.wait_for_graph import WaitForGraph


def _quote(label: str) -> str:
    return label.replace('\\', '\\\\').replace('"', '\\"')


def to_dot(state: RailwayState, graph: WaitForGraph) -> str:
    """
    Render state and graph as DOT.

    Nodes: trains T<i> (circles), tracks R<j> (boxes, with available units).
    Edges: allocation R -> T (solid, units), request T -> R (dashed, need),
    wait-for T -> T (red).
    """
    lines = ["digraph RailwayRAG {", "\trankdir=LR;"]

    for i in range(state.num_trains):
        lines.append(f'\tT{i} [shape=circle,label="{_quote(state.train_names[i])}"];')
    for j in range(state.num_tracks):
        lines.append(
            f'\tR{j} [shape=box,label="{_quote(state.track_names[j])}\\n(av:{int(state.available[j])})"];'
        )

    for i in range(state.num_trains):
        for j in range(state.num_tracks):
            if state.allocation[i][j] > 0:
                lines.append(f'\tR{j} -> T{i} [label="{int(state.allocation[i][j])}"];')
            if state.need[i][j] > 0:
                lines.append(f'\tT{i} -> R{j} [label="need:{int(state.need[i][j])}", style=dashed];')

    for i, j in graph.edges():
        lines.append(f"\tT{i} -> T{j} [color=red];")

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_dot(state: RailwayState, graph: WaitForGraph, filename: str) -> Tuple[bool, str]:
    """
    Write the DOT rendering to filename.

    Returns:
        Tuple of (success, message)
    """
    try:
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(to_dot(state, graph))
    except OSError as e:
        return False, f"Cannot open {filename}: {e.strerror or e}"

    return True, f"DOT exported to {filename}. Use 'dot -Tpng {filename} -o out.png' (Graphviz) to render."
