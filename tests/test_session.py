"""
Session Tests

Runs scripted scenarios and the interactive menu end to end through
RailwaySession.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import REMOVED_TRAIN_NAME
from models.errors import ErrorKind
from analysis.events import EventType
from simulator import RailwaySession, main, run_events, run_menu
from utils.logger import SimulatorLogger
from utils.scenario_loader import sample_railway


SCENARIOS_DIR = project_root / "tests" / "scenarios"


def scripted_input(lines):
    """Input function that replays lines, then signals end of input."""
    remaining = list(lines)

    def _input(prompt=""):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return _input


def test_classic_scenario_events():
    print("\n" + "="*60)
    print("TEST: Scripted Banker's scenario")
    print("="*60)

    session = RailwaySession()
    events = session.load_file(str(SCENARIOS_DIR / "banker_classic.json"))
    initial_capacity = session.capacity.tolist()

    granted, unsafe, no_supply, report = run_events(session, events)

    assert granted.granted
    assert unsafe.error == ErrorKind.UNSAFE_STATE
    assert no_supply.error == ErrorKind.REQUEST_EXCEEDS_AVAILABLE
    assert report.safe and report.cycle == [3, 4]
    assert session.state.total_capacity().tolist() == initial_capacity

    # One automatic checkpoint per request
    assert [cp.note for cp in session.checkpoints.list_checkpoints()] == ["pre-bankers"] * 3
    assert len(session.event_log.get_events_by_type(EventType.REQUEST_GRANTED)) == 1
    assert len(session.event_log.get_events_by_type(EventType.REQUEST_DENIED)) == 2
    print(session.event_log.display())


def test_crossing_deadlock_recovery_and_undo():
    session = RailwaySession()
    events = session.load_file(str(SCENARIOS_DIR / "crossing_deadlock.json"))
    original = session.state.copy()

    before, saved, (recovered, actions), after = run_events(session, events)

    assert before.deadlocked and not before.safe
    assert saved.ok and saved.slot == 0
    assert recovered, actions
    assert not after.deadlocked and after.safe
    assert session.state.train_names[0] == REMOVED_TRAIN_NAME

    # Undo the recovery with the manual checkpoint
    assert session.restore_checkpoint(saved.slot).ok
    assert session.state.same_as(original)
    assert not session.restore_checkpoint(saved.slot).ok


def test_auto_checkpoint_allows_undo_of_terminate():
    session = RailwaySession(state=sample_railway())
    before = session.state.copy()

    assert session.terminate(4).ok
    checkpoints = session.checkpoints.list_checkpoints()
    assert checkpoints[-1].note == "pre-terminate"

    assert session.restore_checkpoint(checkpoints[-1].slot).ok
    assert session.state.same_as(before)


def test_full_checkpoint_store_does_not_block_actions():
    session = RailwaySession()
    for _ in range(session.checkpoints.capacity):
        assert session.save_checkpoint("fill").ok

    assert session.save_checkpoint("overflow").error == ErrorKind.NO_FREE_CHECKPOINT_SLOT
    assert session.preempt(4, [1, 0, 0, 0, 0]).ok
    assert session.state.available[0] == 2


def test_auto_checkpoint_can_be_disabled():
    session = RailwaySession(auto_checkpoint=False)

    session.request(1, [0, 0, 0, 1, 0])
    session.terminate(0)

    assert session.checkpoints.list_checkpoints() == []


def test_restore_recaptures_capacity_across_scenarios():
    session = RailwaySession()
    slot = session.save_checkpoint("sample").slot

    session.load_random(3, 2, max_units=2, seed=1)
    assert session.restore_checkpoint(slot).ok

    assert session.capacity.tolist() == sample_railway().total_capacity().tolist()
    session.terminate(2)  # conservation check runs against the restored totals


def test_logger_writes_file(tmp_path):
    log_path = tmp_path / "session.log"
    logger = SimulatorLogger(verbose=True, log_file=str(log_path))
    session = RailwaySession(logger=logger)

    session.request(1, [0, 0, 0, 1, 0])
    session.detect()
    logger.close()

    text = log_path.read_text(encoding="utf-8")
    assert text.startswith("Railway Simulation Log")
    assert "Train B requests [0, 0, 0, 1, 0]" in text
    assert "[DEBUG] Wait-For Graph" in text
    assert "\x1b[" not in text


def test_menu_session(capsys):
    session = RailwaySession()
    answers = [
        "4",                        # show
        "6",                        # detect
        "5", "0", "1", "0", "0", "0", "0",    # A requests T0
        "9", "my save",             # checkpoint
        "7", "2",                   # terminate C
        "10", "0",                  # restore the first automatic checkpoint
        "x",                        # unknown
        "q",
    ]

    run_menu(session, scripted_input(answers))
    out = capsys.readouterr().out

    assert "RAILWAY MODE - MENU" in out
    assert "Wait-For Graph (train -> train):" in out
    assert "UNSAFE state" in out
    assert "Unknown choice." in out
    assert "Goodbye." in out
    assert session.checkpoints.get(0) is None
    assert session.state.same_as(sample_railway())


def test_menu_manual_input_and_end_of_input():
    session = RailwaySession()
    answers = [
        "3",
        "2", "1",           # 2 trains, 1 track
        "0",                # Track 0 available
        "Up", "1", "1",     # allocation 1, maximum 1
        "", "0", "2",       # default name, allocation 0, maximum 2
    ]

    run_menu(session, scripted_input(answers))

    state = session.state
    assert state.train_names == ["Up", "Train1"]
    assert state.track_names == ["Trk00"]
    assert state.need.tolist() == [[0], [2]]
    assert session.detect().graph.edges() == [(1, 0)]


def test_main_runs_scenario_and_exports(tmp_path):
    target = tmp_path / "out.dot"

    code = main(["--scenario", str(SCENARIOS_DIR / "crossing_deadlock.json"), "--export", str(target)])

    assert code == 0
    assert "digraph RailwayRAG" in target.read_text(encoding="utf-8")


def test_main_random_and_bad_file(tmp_path):
    assert main(["--scenario", "random", "--random", "3", "3", "2", "--seed", "5"]) == 0
    assert main(["--scenario", str(tmp_path / "nope.json")]) == 1


def test_menu_saves_scenario_that_reloads(tmp_path):
    target = tmp_path / "saved.json"
    session = RailwaySession()

    run_menu(session, scripted_input(["7", "4", "13", str(target), "q"]))

    reloaded = RailwaySession()
    assert reloaded.load_file(str(target)) == []
    assert reloaded.state.same_as(session.state)
    assert reloaded.state.train_names[4] == REMOVED_TRAIN_NAME


def test_loading_a_file_logs_its_description(capsys):
    session = RailwaySession()
    session.load_file(str(SCENARIOS_DIR / "banker_classic.json"))

    assert "Banker" in capsys.readouterr().out


def test_bad_request_input_is_logged_not_raised():
    session = RailwaySession(auto_checkpoint=False)
    before = session.state.copy()

    by_fraction = session.request(1, [0, 0, 0, 0.9, 0])
    by_bad_id = session.request(1.5, [0, 0, 0, 1, 0])

    assert by_fraction.error == ErrorKind.INVALID_AMOUNT
    assert by_bad_id.error == ErrorKind.INVALID_INDEX
    assert session.state.same_as(before)
    denied = session.event_log.get_events_by_type(EventType.REQUEST_DENIED)
    assert denied[0].amounts == [0, 0, 0, 0.9, 0]
    assert denied[1].train_id == -1


def test_menu_shows_session_log_by_step(capsys):
    session = RailwaySession()
    run_menu(session, scripted_input(["6", "14", "1", "14", "", "14", "x1", "q"]))
    out = capsys.readouterr().out

    assert "Step 1: DETECTION (cycle=[] safe=False)" in out
    assert "scenario_loaded: sample scenario loaded" in out
    assert "Invalid number: 'x1'" in out
    assert len(session.event_log.get_events_by_step(1)) == 1
