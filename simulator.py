#!/usr/bin/env python3
"""
Railway Deadlock Simulator
Main entry point for the simulation system.

Trains compete for multi-unit track sections. Deadlocks are avoided with
Banker's Algorithm or detected on the Wait-For Graph and recovered from by
terminating or preempting trains. Checkpoints make every action undoable.
"""

import argparse
import json
import sys
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config import DEFAULT_LIMITS, DEFAULT_RANDOM_UNITS, Limits
from models.checkpoint import CheckpointResult, CheckpointStore
from models.errors import StateSizeError
from models.railway_state import RailwayState, is_index
from algorithms.avoidance import RequestResult, bankers_request
from algorithms.detection import DeadlockReport, build_wait_for_graph, diagnose
from algorithms.recovery import (
    VICTIM_STRATEGIES,
    RecoveryResult,
    preempt_from_train,
    recover_from_deadlock,
    terminate_train,
)
from analysis.events import EventLog, EventType, SessionEvent
from utils.dot_export import export_dot
from utils.logger import SimulatorLogger
from utils.scenario_loader import (
    ScenarioLoadError,
    get_scenario_description,
    load_scenario,
    random_railway,
    sample_railway,
    scenario_to_dict,
)


class RailwaySession:
    """
    Owns the live railway state, the checkpoint store and the session log.

    Every front-end action goes through a session method so that
    conservation is checked and the action is logged in one place.
    """

    def __init__(
        self,
        state: Optional[RailwayState] = None,
        logger: Optional[SimulatorLogger] = None,
        limits: Limits = DEFAULT_LIMITS,
        auto_checkpoint: bool = True
    ):
        """
        Initialize a session.

        Args:
            state: Initial state (defaults to the sample network)
            logger: Logger instance (defaults to a quiet console logger)
            limits: Capacity limits for states and checkpoints
            auto_checkpoint: Save a checkpoint before request/terminate/preempt/recover
        """
        self.limits = limits
        self.logger = logger or SimulatorLogger()
        self.event_log = EventLog()
        self.checkpoints = CheckpointStore(limits=limits)
        self.auto_checkpoint = auto_checkpoint
        self.step = 0
        self.state: Optional[RailwayState] = None
        self.capacity = None
        self.load_state(state if state is not None else sample_railway(), "sample scenario")

    # --- Scenario loading ---

    def load_state(self, state: RailwayState, label: str = "scenario") -> None:
        """Install a new live state and capture its total capacity."""
        state.check_invariants(f"when loading {label}")
        self.state = state
        self.capacity = state.total_capacity()
        self._record(EventType.SCENARIO_LOADED, message=f"{label} loaded")
        self.logger.log(f"{label.capitalize()} loaded ({state.num_trains} trains, {state.num_tracks} tracks).", "success")

    def load_sample(self) -> None:
        self.load_state(sample_railway(), "sample scenario")

    def load_random(self, num_trains: int, num_tracks: int, max_units: int = DEFAULT_RANDOM_UNITS,
                    seed: Optional[int] = None) -> None:
        self.load_state(random_railway(num_trains, num_tracks, max_units, seed, self.limits), "random scenario")

    def load_file(self, path: str) -> List[Dict]:
        """
        Load a JSON scenario.

        Returns:
            Scripted events from the file

        Raises:
            ScenarioLoadError: If the file is missing or invalid
        """
        state, events = load_scenario(path, self.limits)
        self.load_state(state, f"scenario {path}")
        description = get_scenario_description(path)
        if description:
            self.logger.log(f"  {description}")
        return events

    # --- Avoidance ---

    def request(self, train_id: int, amounts: Sequence[int]) -> RequestResult:
        """Run a Banker's request for train_id."""
        if self.auto_checkpoint:
            self._auto_checkpoint("pre-bankers")

        result = bankers_request(self.state, train_id, amounts)
        step = self._next_step()
        self.logger.log_request(step, self._train_label(train_id), list(amounts), result.granted, result.reason)
        self._record(
            EventType.REQUEST_GRANTED if result.granted else EventType.REQUEST_DENIED,
            train_id=train_id,
            amounts=list(amounts),
            reason=result.reason,
            step=step
        )
        if result.granted:
            self._verify(f"after granting {list(amounts)} to T{train_id}")
            self.logger.log_system_state(step, self.state.display())
        return result

    # --- Detection ---

    def detect(self) -> DeadlockReport:
        """Build the Wait-For Graph, search for a cycle and run the safety check."""
        report = diagnose(self.state)
        step = self._next_step()
        self.logger.log(report.graph.describe(self.state.train_names), "debug")
        self.logger.log_detection(step, [self.state.train_names[i] for i in report.cycle], report.safe)
        self._record(
            EventType.DETECTION,
            message=f"cycle={report.cycle} safe={report.safe}",
            step=step
        )
        return report

    # --- Recovery ---

    def terminate(self, train_id: int) -> RecoveryResult:
        """Terminate train_id and release its tracks."""
        if self.auto_checkpoint:
            self._auto_checkpoint("pre-terminate")

        result = terminate_train(self.state, train_id)
        step = self._next_step()
        if result:
            self.logger.log_recovery(step, result.reason)
            self._record(EventType.TERMINATION, train_id=train_id, amounts=result.released,
                         message=result.reason, step=step)
            self._verify(f"after terminating T{train_id}")
        else:
            self.logger.log_step(step, f"Termination failed ({result.reason})", "error")
        return result

    def preempt(self, train_id: int, amounts: Sequence[int]) -> RecoveryResult:
        """Preempt up to amounts units from train_id."""
        if self.auto_checkpoint:
            self._auto_checkpoint("pre-preempt")

        result = preempt_from_train(self.state, train_id, amounts)
        step = self._next_step()
        if result:
            self.logger.log_recovery(step, result.reason)
            self._record(EventType.PREEMPTION, train_id=train_id, amounts=result.released,
                         message=result.reason, step=step)
            self._verify(f"after preempting from T{train_id}")
        else:
            self.logger.log_step(step, f"Preemption failed ({result.reason})", "error")
        return result

    def recover(self, strategy: str = "fewest_resources") -> Tuple[bool, List[str]]:
        """Terminate victims chosen by strategy until no wait-for cycle remains."""
        if self.auto_checkpoint:
            self._auto_checkpoint("pre-recover")

        success, actions = recover_from_deadlock(self.state, strategy)
        step = self._next_step()
        for action in actions:
            self.logger.log_recovery(step, action)
            if action.startswith("RECOVERY:"):
                self._record(EventType.RECOVERY, message=action, step=step)
        self._verify("after recovery")
        self.logger.log_system_state(step, self.state.display())
        return success, actions

    # --- Checkpoints ---

    def save_checkpoint(self, note: str = "") -> CheckpointResult:
        result = self.checkpoints.save(self.state, note)
        step = self._next_step()
        self.logger.log_checkpoint(step, result.reason, result.ok)
        if result:
            self._record(EventType.CHECKPOINT_SAVED, message=result.reason, step=step)
        return result

    def restore_checkpoint(self, slot: int) -> CheckpointResult:
        """Restore slot into the live state; the slot is consumed."""
        result = self.checkpoints.restore(self.state, slot)
        step = self._next_step()
        self.logger.log_checkpoint(step, result.reason, result.ok)
        if result:
            # The snapshot may predate a scenario change
            self.capacity = self.state.total_capacity()
            self._record(EventType.CHECKPOINT_RESTORED, message=result.reason, step=step)
        return result

    # --- Export ---

    def export(self, path: str) -> Tuple[bool, str]:
        """Write the allocation and wait-for graphs as a Graphviz DOT file."""
        ok, message = export_dot(self.state, build_wait_for_graph(self.state), path)
        step = self._next_step()
        self.logger.log_step(step, message, "info" if ok else "error")
        if ok:
            self._record(EventType.EXPORT, message=path, step=step)
        return ok, message

    def show(self) -> str:
        return self.state.display()

    # --- Internals ---

    def _auto_checkpoint(self, note: str) -> None:
        result = self.checkpoints.save(self.state, note)
        if result:
            self.logger.log(f"  {result.reason}", "debug")
        else:
            self.logger.log(f"Automatic checkpoint '{note}' skipped: {result.reason}", "warning")

    def _verify(self, context: str) -> None:
        self.state.check_invariants(context)
        self.state.assert_resource_conservation(self.capacity, context)

    def _next_step(self) -> int:
        self.step += 1
        return self.step

    def _train_label(self, train_id: int) -> str:
        if self.state.is_valid_train(train_id):
            return self.state.train_names[train_id]
        return f"#{train_id}"

    def _record(self, event_type: EventType, train_id: int = -1, amounts: Optional[List[int]] = None,
                message: str = "", reason: str = "", step: Optional[int] = None) -> None:
        self.event_log.add(SessionEvent(
            step=self.step if step is None else step,
            event_type=event_type,
            train_id=train_id if is_index(train_id) else -1,
            amounts=amounts,
            message=message,
            reason=reason
        ))


def run_events(session: RailwaySession, events: List[Dict]) -> List[object]:
    """
    Replay scripted scenario events in order.

    Args:
        session: Session to act on
        events: Validated events from load_scenario()

    Returns:
        One result object per event
    """
    results = []
    for event in events:
        event_type = event['type']

        if event_type == 'request':
            results.append(session.request(event['train'], event['amounts']))
        elif event_type == 'terminate':
            results.append(session.terminate(event['train']))
        elif event_type == 'preempt':
            results.append(session.preempt(event['train'], event['amounts']))
        elif event_type == 'detect':
            results.append(session.detect())
        elif event_type == 'recover':
            results.append(session.recover(event.get('strategy', 'fewest_resources')))
        elif event_type == 'checkpoint':
            results.append(session.save_checkpoint(event.get('note', '')))
        elif event_type == 'restore':
            results.append(session.restore_checkpoint(event['slot']))
        elif event_type == 'export':
            results.append(session.export(event['path']))

    return results


# --- Interactive menu ---

MENU = """
RAILWAY MODE - MENU
----------------------------------
1) Load sample railway scenario
2) Generate random railway scenario
3) Manual input
4) Show current state
5) Try Banker's request for a train (Deadlock Avoidance)
6) Detect deadlock (Wait-For Graph & Safety Check)
7) Recover: terminate train
8) Recover: preempt tracks from train
9) Save checkpoint
10) Restore checkpoint
11) Export DOT for Graphviz
12) Automatic recovery
13) Save scenario to JSON
14) Show session log
q) Quit"""


def _read_int(input_fn: Callable[[str], str], prompt: str) -> Optional[int]:
    """Prompt for an integer; None on malformed input."""
    raw = input_fn(prompt).strip()
    try:
        return int(raw)
    except ValueError:
        print(f"Invalid number: {raw!r}")
        return None


def _read_vector(input_fn: Callable[[str], str], prompt_template: str, count: int) -> Optional[List[int]]:
    values = []
    for j in range(count):
        value = _read_int(input_fn, prompt_template.format(j))
        if value is None:
            return None
        values.append(value)
    return values


def manual_railway(input_fn: Callable[[str], str], limits: Limits = DEFAULT_LIMITS) -> Optional[RailwayState]:
    """
    Build a state from interactive prompts.

    Allocations above the entered maximum raise the maximum to match.

    Returns:
        New RailwayState, or None if input was malformed
    """
    num_trains = _read_int(input_fn, f"Enter number of trains (1-{limits.max_trains}): ")
    num_tracks = _read_int(input_fn, f"Enter number of track sections (1-{limits.max_tracks}): ")
    if num_trains is None or num_tracks is None:
        return None
    try:
        state = RailwayState.empty(num_trains, num_tracks, limits)
    except StateSizeError as e:
        print(f"Invalid sizes: {e}")
        return None

    for j in range(num_tracks):
        units = _read_int(input_fn, f"Total available units for Track {j}: ")
        if units is None or units < 0:
            return None
        state.available[j] = units
        state.rename_track(j, f"Trk{j:02d}")

    for i in range(num_trains):
        name = input_fn(f"Train name for T{i}: ").strip()
        if name:
            state.rename_train(i, name)
        for j in range(num_tracks):
            alloc = _read_int(input_fn, f"Allocation of Track {j} for {state.train_names[i]}: ")
            maximum = _read_int(input_fn, f"Maximum demand of Track {j} for {state.train_names[i]}: ")
            if alloc is None or maximum is None or alloc < 0:
                return None
            state.allocation[i][j] = alloc
            state.maximum[i][j] = max(maximum, alloc)

    state.recompute_need()
    return state


def run_menu(session: RailwaySession, input_fn: Callable[[str], str] = input) -> None:
    """
    Interactive menu loop. Ends on 'q' or end of input.

    Args:
        session: Session to act on
        input_fn: Line reader (injectable for tests)
    """
    while True:
        print(MENU)
        try:
            choice = input_fn("Enter choice: ").strip().lower()
        except EOFError:
            break

        try:
            if choice == 'q':
                break
            _dispatch(session, choice, input_fn)
        except EOFError:
            break

    print("\nGoodbye.")


def _dispatch(session: RailwaySession, choice: str, input_fn: Callable[[str], str]) -> None:
    state = session.state

    if choice == '1':
        session.load_sample()
    elif choice == '2':
        sizes = input_fn("Enter ntrains ntracks max_units_per_track (e.g., 6 6 2): ").split()
        try:
            num_trains, num_tracks, max_units = (int(v) for v in sizes)
            session.load_random(num_trains, num_tracks, max_units)
        except ValueError as e:
            print(f"Invalid random scenario parameters: {e}")
    elif choice == '3':
        manual = manual_railway(input_fn, session.limits)
        if manual is not None:
            session.load_state(manual, "manual scenario")
        else:
            print("Manual input aborted.")
    elif choice == '4':
        print(session.show())
    elif choice == '5':
        train_id = _read_int(input_fn, f"Enter train id requesting track(s) (0-{state.num_trains - 1}): ")
        if train_id is None:
            return
        amounts = _read_vector(input_fn, "Request units of Track {}: ", state.num_tracks)
        if amounts is not None:
            session.request(train_id, amounts)
    elif choice == '6':
        report = session.detect()
        print(report.describe(session.state.train_names))
    elif choice == '7':
        train_id = _read_int(input_fn, "Enter train id to terminate: ")
        if train_id is not None:
            session.terminate(train_id)
    elif choice == '8':
        train_id = _read_int(input_fn, "Enter victim train id for preemption: ")
        if train_id is None:
            return
        if not state.is_valid_train(train_id):
            print("Invalid train ID.")
            return
        amounts = _read_vector(input_fn, "Units to preempt from Track {}: ", state.num_tracks)
        if amounts is not None:
            session.preempt(train_id, amounts)
    elif choice == '9':
        session.save_checkpoint(input_fn("Note for checkpoint: "))
    elif choice == '10':
        print("Available Checkpoints:")
        for checkpoint in session.checkpoints.list_checkpoints():
            print(f"  {checkpoint.slot}: {checkpoint.note}")
        slot = _read_int(input_fn, f"Enter checkpoint index to restore (0-{session.checkpoints.capacity - 1}): ")
        if slot is not None:
            session.restore_checkpoint(slot)
    elif choice == '11':
        path = input_fn("Enter filename for DOT export (e.g., railway.dot): ").strip()
        if path:
            session.export(path)
    elif choice == '12':
        strategy = input_fn(f"Victim strategy {'/'.join(VICTIM_STRATEGIES)} [fewest_resources]: ").strip()
        strategy = strategy or "fewest_resources"
        if strategy not in VICTIM_STRATEGIES:
            print(f"Unknown strategy: {strategy}")
            return
        session.recover(strategy)
    elif choice == '13':
        path = input_fn("Enter filename for scenario JSON: ").strip()
        if path:
            save_scenario(session.state, path)
    elif choice == '14':
        raw = input_fn("Show step (blank for all): ").strip()
        if not raw:
            print(session.event_log.display())
        elif raw.isdigit():
            print(session.event_log.display(int(raw)))
        else:
            print(f"Invalid number: {raw!r}")
    else:
        print("Unknown choice.")


def save_scenario(state: RailwayState, path: str) -> bool:
    """Write state to path in the scenario file format."""
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(scenario_to_dict(state), f, indent=2)
    except OSError as e:
        print(f"Cannot write {path}: {e}")
        return False
    print(f"Scenario saved to {path}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Railway Deadlock Simulator'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default='sample',
        help="'sample', 'random', or path to a scenario JSON file (default: sample)"
    )
    parser.add_argument(
        '--random',
        type=int,
        nargs=3,
        metavar=('TRAINS', 'TRACKS', 'UNITS'),
        default=None,
        help='Sizes for --scenario random (default: 6 6 2)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Seed for the random scenario generator'
    )
    parser.add_argument(
        '--interactive',
        action='store_true',
        help='Start the interactive menu after loading the scenario'
    )
    parser.add_argument(
        '--export',
        type=str,
        default=None,
        help='Write a Graphviz DOT file of the final state'
    )
    parser.add_argument(
        '--no-auto-checkpoint',
        action='store_true',
        help='Do not save checkpoints before requests and recovery actions'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Mirror log output to a file'
    )
    parser.add_argument(
        '--color',
        action='store_true',
        help='Colour console output'
    )

    args = parser.parse_args(argv)

    if args.random and args.scenario != 'random':
        parser.error('--random requires --scenario random')

    logger = SimulatorLogger(verbose=args.verbose, log_file=args.log_file, color=args.color)
    session = RailwaySession(logger=logger, auto_checkpoint=not args.no_auto_checkpoint)
    events = []

    try:
        if args.scenario == 'random':
            num_trains, num_tracks, max_units = args.random or (6, 6, DEFAULT_RANDOM_UNITS)
            session.load_random(num_trains, num_tracks, max_units, args.seed)
        elif args.scenario != 'sample':
            events = session.load_file(args.scenario)
    except (ScenarioLoadError, StateSizeError, ValueError) as e:
        logger.log(f"Failed to load scenario: {e}", "error")
        logger.close()
        return 1

    logger.log("\nWelcome to the Railway Deadlock Simulator (Rail Mode)\n")
    logger.log(session.show())

    if args.interactive:
        run_menu(session)
    else:
        if events:
            run_events(session, events)
        report = session.detect()
        logger.log(report.describe(session.state.train_names))
        logger.log(session.show(), "debug")

    if args.export:
        session.export(args.export)

    logger.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
