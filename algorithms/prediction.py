"""
Deadlock Prediction heuristic for the Deadlock Prediction & Resolution Simulator.

Estimates how close the system is to deadlock from the share of waiting
processes and the share of saturated resources. This is an early-warning
signal only; the detector never relies on it.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum

from models.system_state import SystemState


DEFAULT_RISK_THRESHOLD = 0.5
MIN_WAITING_FOR_INTERVENTION = 2


class RiskLevel(Enum):
    """Outcome of a risk assessment."""
    NONE = "none"
    LOW = "low"
    HIGH = "high"


@dataclass(frozen=True)
class RiskAssessment:
    """
    Result of one prediction pass.

    Attributes:
        waiting_count: Running processes with an outstanding request
        running_count: Running processes
        saturated_count: Resources with every instance held
        waiting_fraction: waiting_count / running_count
        saturation_fraction: saturated_count / number of resources
        risk_score: waiting_fraction * saturation_fraction
        level: NONE, LOW (monitor) or HIGH (intervene)
    """
    waiting_count: int
    running_count: int
    saturated_count: int
    waiting_fraction: float
    saturation_fraction: float
    risk_score: float
    level: RiskLevel

    @property
    def percentage(self) -> int:
        """Risk score as a whole percentage, halves rounded up."""
        return int(np.floor(self.risk_score * 100 + 0.5))

    @property
    def should_intervene(self) -> bool:
        return self.level == RiskLevel.HIGH


def saturated_count(system_state: SystemState) -> int:
    """Number of resources with every instance held."""
    return int(np.count_nonzero(system_state.holder_count_vector >= system_state.capacity_vector))


def saturation_fraction(system_state: SystemState) -> float:
    """Fraction of resources currently allocated at full capacity."""
    if system_state.num_resources == 0:
        return 0.0
    return saturated_count(system_state) / system_state.num_resources


def assess_risk(
    system_state: SystemState,
    threshold: float = DEFAULT_RISK_THRESHOLD
) -> RiskAssessment:
    """
    Score the likelihood of an impending deadlock.

    riskScore = (waiting running / running) * (saturated resources / resources)

    HIGH when the score exceeds the threshold and at least two processes
    wait; LOW for any other positive score; NONE at zero. A zero score is
    a normal result, including when no process is running.

    Args:
        system_state: Snapshot to read (never mutated)
        threshold: Score above which proactive resolution is recommended

    Returns:
        RiskAssessment for the snapshot
    """
    running_count = len(system_state.running_processes())
    waiting_count = len(system_state.waiting_processes())
    saturated = saturated_count(system_state)
    num_resources = system_state.num_resources

    waiting = waiting_count / running_count if running_count else 0.0
    saturation = saturated / num_resources if num_resources else 0.0
    risk_score = waiting * saturation

    if risk_score > threshold and waiting_count >= MIN_WAITING_FOR_INTERVENTION:
        level = RiskLevel.HIGH
    elif risk_score > 0:
        level = RiskLevel.LOW
    else:
        level = RiskLevel.NONE

    return RiskAssessment(
        waiting_count=waiting_count,
        running_count=running_count,
        saturated_count=saturated,
        waiting_fraction=waiting,
        saturation_fraction=saturation,
        risk_score=risk_score,
        level=level
    )
