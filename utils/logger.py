"""
Logger utility for the Deadlock Prediction & Resolution Simulator.

Provides tick-by-tick logging with verbosity levels.
"""

from typing import Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for simulation events and decisions.

    Format: "Tick X: <event description>"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, echo: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose output
            log_file: Optional file path for logging
            echo: Print messages to the console
        """
        self.verbose = verbose
        self.log_file = log_file
        self.echo = echo
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        if self.echo:
            print(formatted)

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

    def log_tick(self, tick: int, message: str, level: str = "info") -> None:
        """Log a message for a simulation tick."""
        self.log(f"Tick {tick}: {message}", level)

    def log_event(self, event) -> None:
        """
        Log a SimulationEvent.

        Args:
            event: Event to log (formatted with its own __str__)
        """
        self.log(str(event))

    def log_deadlock(self, tick: int, cycle: list, edge_count: int) -> None:
        """
        Log deadlock detection.

        Args:
            tick: Current tick
            cycle: Process ids along the detected cycle
            edge_count: Number of wait-for edges
        """
        cycle_str = " -> ".join(cycle + cycle[:1]) if cycle else "?"
        self.log_tick(
            tick,
            f"DEADLOCK DETECTED - cycle {cycle_str} ({edge_count} wait-for edges). "
            f"Initiating resolution strategy.",
            "warning"
        )

    def log_prediction(self, tick: int, percentage: int, intervene: bool) -> None:
        """
        Log a risk prediction.

        Args:
            tick: Current tick
            percentage: Predicted deadlock likelihood in percent
            intervene: Whether proactive resolution follows
        """
        action = "Recommending preemptive action." if intervene else "Monitoring situation."
        self.log_tick(tick, f"Predicted {percentage}% chance of deadlock. {action}",
                      "warning" if intervene else "info")

    def log_resolution(self, tick: int, event) -> None:
        """
        Log a resolution action.

        Args:
            tick: Current tick
            event: ABORT/PREEMPTION event, or None if nothing was waiting
        """
        if event is None:
            self.log_tick(tick, "Resolution skipped - no process is waiting", "debug")
        else:
            self.log_tick(tick, f"RESOLUTION - {event.message}")

    def log_system_state(self, tick: int, state_str: str) -> None:
        """
        Log system state snapshot.

        Args:
            tick: Current tick
            state_str: Formatted system state
        """
        if self.verbose:
            self.log_tick(tick, f"System State:\n{state_str}")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
