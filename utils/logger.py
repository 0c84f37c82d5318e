"""
Logger utility for the Railway Deadlock Simulator.

Provides step-by-step logging with verbosity levels and optional colour.
"""

from typing import List, Optional, Sequence
from datetime import datetime


COLORS = {
    "error": "\x1b[31m",
    "warning": "\x1b[33m",
    "debug": "\x1b[34m",
    "success": "\x1b[32m",
    "reset": "\x1b[0m",
}


class SimulatorLogger:
    """
    Logger for session actions and decisions.

    Format: "Step X: Train A requests [1, 0, 0] - GRANTED/DENIED (reason)"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, color: bool = False):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose output
            log_file: Optional file path for logging
            color: Colour console output by level
        """
        self.verbose = verbose
        self.log_file = log_file
        self.color = color
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Railway Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error, success)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        # Console output
        print(self._colorize(formatted, level))

        # File output (never coloured)
        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def _colorize(self, text: str, level: str) -> str:
        if not self.color or level not in COLORS:
            return text
        return f"{COLORS[level]}{text}{COLORS['reset']}"

    def log_step(self, step: int, message: str, level: str = "info") -> None:
        """Log a session step message."""
        self.log(f"Step {step}: {message}", level)

    def log_request(
        self,
        step: int,
        train_name: str,
        request: Sequence[int],
        granted: bool,
        reason: str
    ) -> None:
        """
        Log a Banker's request decision.

        Args:
            step: Current session step
            train_name: Requesting train
            request: Units requested per track
            granted: Whether request was granted
            reason: Reason for decision
        """
        status = "GRANTED" if granted else "DENIED"
        message = f"Train {train_name} requests {list(request)} - {status} ({reason})"
        self.log_step(step, message, "success" if granted else "error")

    def log_detection(self, step: int, cycle_names: List[str], safe: bool) -> None:
        """
        Log a deadlock diagnosis.

        Args:
            step: Current session step
            cycle_names: Names of trains on the detected cycle (empty if none)
            safe: Banker's safety verdict
        """
        verdict = "SAFE" if safe else "UNSAFE"
        if cycle_names:
            path = " -> ".join(cycle_names + cycle_names[:1])
            self.log_step(step, f"DEADLOCK DETECTED - cycle: {path} (state {verdict})", "error")
        else:
            self.log_step(step, f"No wait-for cycle (state {verdict})", "success" if safe else "warning")

    def log_recovery(self, step: int, message: str) -> None:
        """
        Log recovery action.

        Args:
            step: Current session step
            message: Description of the termination or preemption
        """
        self.log_step(step, f"RECOVERY - {message}", "warning")

    def log_checkpoint(self, step: int, message: str, ok: bool = True) -> None:
        """Log a checkpoint save or restore."""
        self.log_step(step, message, "success" if ok else "error")

    def log_system_state(self, step: int, state_str: str) -> None:
        """
        Log railway state table.

        Args:
            step: Current session step
            state_str: Formatted railway state
        """
        if self.verbose:
            self.log_step(step, f"Railway State:\n{state_str}")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
