"""
Metrics Tracking for the Deadlock Prediction & Resolution Simulator.

Tracks performance metrics throughout simulation execution.
"""

from dataclasses import dataclass, field
from typing import List, Dict
import statistics

from algorithms.prediction import RiskLevel, saturation_fraction
from analysis.events import EventType


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Tracks:
    1. Deadlock Occurrence Frequency: deadlocks detected / ticks
    2. Prediction Activity: high-risk interventions and low-risk warnings
    3. Resolution Cost: preemptions and aborts
    4. Contention: saturation and waiting fraction sampled every tick
    """
    total_ticks: int = 0
    total_processes: int = 0

    grant_count: int = 0
    release_count: int = 0
    request_count: int = 0
    deadlock_count: int = 0
    high_risk_count: int = 0
    low_risk_count: int = 0
    preemption_count: int = 0
    abort_count: int = 0

    # Per-tick samples
    saturation_samples: List[float] = field(default_factory=list)
    waiting_samples: List[float] = field(default_factory=list)
    risk_samples: List[float] = field(default_factory=list)

    # Per-process tracking
    process_grant_counts: Dict[str, int] = field(default_factory=dict)
    process_waiting_ticks: Dict[str, int] = field(default_factory=dict)
    process_final_states: Dict[str, str] = field(default_factory=dict)

    def record_tick(self, result) -> None:
        """
        Record metrics for a single tick.

        Args:
            result: TickResult returned by the engine
        """
        self.total_ticks = result.tick
        self.total_processes = result.state.num_processes

        for event in result.events:
            if event.event_type == EventType.GRANT:
                self.grant_count += 1
                self.process_grant_counts[event.process_id] = \
                    self.process_grant_counts.get(event.process_id, 0) + 1
            elif event.event_type == EventType.RELEASE:
                self.release_count += 1
            elif event.event_type == EventType.REQUEST:
                self.request_count += 1
            elif event.event_type == EventType.PREEMPTION:
                self.preemption_count += 1
            elif event.event_type == EventType.ABORT:
                self.abort_count += 1

        if result.deadlock_detected:
            self.deadlock_count += 1

        if result.risk is not None:
            self.risk_samples.append(result.risk.risk_score)
            if result.risk.level == RiskLevel.HIGH:
                self.high_risk_count += 1
            elif result.risk.level == RiskLevel.LOW:
                self.low_risk_count += 1

        state = result.state
        self.saturation_samples.append(saturation_fraction(state))
        running = state.running_processes()
        waiting = state.waiting_processes()
        self.waiting_samples.append(len(waiting) / len(running) if running else 0.0)

        for process in waiting:
            self.process_waiting_ticks[process.pid] = self.process_waiting_ticks.get(process.pid, 0) + 1
        for process in state.processes:
            self.process_final_states[process.pid] = process.status.value

    @property
    def intervention_count(self) -> int:
        """Resolutions triggered by a detected or predicted deadlock."""
        return self.preemption_count + self.abort_count

    def get_avg_saturation(self) -> float:
        """Average fraction of saturated resources per tick."""
        if not self.saturation_samples:
            return 0.0
        return statistics.mean(self.saturation_samples)

    def get_avg_waiting_fraction(self) -> float:
        """Average fraction of running processes waiting per tick."""
        if not self.waiting_samples:
            return 0.0
        return statistics.mean(self.waiting_samples)

    def get_avg_risk(self) -> float:
        """Average predicted risk score over the ticks the predictor ran."""
        if not self.risk_samples:
            return 0.0
        return statistics.mean(self.risk_samples)

    def get_deadlock_frequency(self) -> float:
        """Get deadlock frequency (deadlocks / total ticks)."""
        if self.total_ticks == 0:
            return 0.0
        return self.deadlock_count / self.total_ticks


@dataclass
class MetricAccumulator:
    """Accumulates metrics across multiple simulation runs."""
    runs: List[SimulationMetrics] = field(default_factory=list)

    def add_run(self, metrics: SimulationMetrics) -> None:
        """Add metrics from a simulation run."""
        self.runs.append(metrics)

    def get_aggregate_deadlock_frequency(self) -> float:
        """Average deadlock frequency across all runs."""
        if not self.runs:
            return 0.0
        return statistics.mean(run.get_deadlock_frequency() for run in self.runs)

    def get_aggregate_saturation(self) -> float:
        """Average saturation across all runs."""
        if not self.runs:
            return 0.0
        return statistics.mean(run.get_avg_saturation() for run in self.runs)

    def get_aggregate_interventions(self) -> float:
        """Average number of resolutions per run."""
        if not self.runs:
            return 0.0
        return statistics.mean(run.intervention_count for run in self.runs)

    def get_aggregate_aborts(self) -> float:
        """Average number of aborted processes per run."""
        if not self.runs:
            return 0.0
        return statistics.mean(run.abort_count for run in self.runs)


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    scenario: str = None,
    stop_reason: str = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include per-process breakdown
        scenario: Scenario file path
        stop_reason: Reason simulation stopped

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if scenario:
        lines.append(f"Scenario: {scenario}")
    if stop_reason:
        lines.append(f"Stop Reason: {stop_reason}")
    if scenario or stop_reason:
        lines.append("")

    lines.append(f"Total Ticks: {metrics.total_ticks}")
    lines.append(f"Total Processes: {metrics.total_processes}")
    lines.append(f"Grants/Releases/Requests: {metrics.grant_count}/{metrics.release_count}/{metrics.request_count}")
    lines.append("")

    lines.append("KEY METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Deadlocks Detected: {metrics.deadlock_count} ({metrics.get_deadlock_frequency():.2%} of ticks)")
    lines.append(f"2. Predictions: {metrics.high_risk_count} high-risk, {metrics.low_risk_count} monitoring")
    lines.append(f"3. Resolutions: {metrics.preemption_count} preemptions, {metrics.abort_count} aborts")
    lines.append(f"4. Average Saturation: {metrics.get_avg_saturation():.2%}")
    lines.append(f"5. Average Waiting Fraction: {metrics.get_avg_waiting_fraction():.2%}")

    if verbose and metrics.process_final_states:
        lines.append("")
        lines.append("PER-PROCESS SUMMARY:")
        lines.append("-" * 60)
        for pid, state in metrics.process_final_states.items():
            waiting = metrics.process_waiting_ticks.get(pid, 0)
            granted = metrics.process_grant_counts.get(pid, 0)
            lines.append(f"  {pid}: {state:8} | waited={waiting:3} ticks | grants={granted:3}")

    lines.append("="*60)
    return "\n".join(lines)
