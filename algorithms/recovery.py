"""
Deadlock Resolution for the Deadlock Prediction & Resolution Simulator.

Implements the preempt-then-abort policy and a dry-run plan that explains
each resolution step without touching live state.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models.process import Process, identifier_key
from models.system_state import SystemState
from analysis.events import SimulationEvent, EventType


@dataclass
class ResolutionStep:
    """
    One step of a resolution walkthrough.

    Attributes:
        description: What happens at this step
        state: Copy of the system state at this step
        highlight: Process ids the step is about
        highlight_resource: Resource id the step is about (if any)
    """
    description: str
    state: SystemState
    highlight: List[str] = field(default_factory=list)
    highlight_resource: Optional[str] = None


def select_victim(system_state: SystemState) -> Optional[Process]:
    """
    Select the process that gives up progress.

    Among running processes with an outstanding request, the one holding the
    most resources; ties go to the lowest identifier.

    Args:
        system_state: Current system state

    Returns:
        The victim process, or None if nobody is waiting
    """
    waiting = system_state.waiting_processes()
    if not waiting:
        return None
    return min(waiting, key=lambda p: (-len(p.held), identifier_key(p.pid)))


def abort_process(pid: str, system_state: SystemState, tick: int = 0) -> SimulationEvent:
    """
    Abort a process: clear its holdings and request, mark it aborted.

    Args:
        pid: Process to abort
        system_state: State to mutate
        tick: Current tick number

    Returns:
        ABORT event
    """
    released = system_state.abort_process(pid)
    system_state.assert_consistency(f"after aborting {pid}")

    released_str = ", ".join(released) if released else "nothing"
    return SimulationEvent(
        tick=tick,
        event_type=EventType.ABORT,
        process_id=pid,
        message=f"Process {pid} has been aborted to prevent deadlock (held {released_str})"
    )


def preempt_resource(pid: str, rid: str, system_state: SystemState, tick: int = 0) -> SimulationEvent:
    """
    Preempt one resource from a process.

    The process stays running and keeps its outstanding request and every
    other resource it holds.

    Args:
        pid: Process to preempt from
        rid: Resource to reclaim
        system_state: State to mutate
        tick: Current tick number

    Returns:
        PREEMPTION event
    """
    system_state.preempt(pid, rid)
    system_state.assert_consistency(f"after preempting {rid} from {pid}")

    return SimulationEvent(
        tick=tick,
        event_type=EventType.PREEMPTION,
        process_id=pid,
        resource_id=rid,
        message=f"Released resource {rid} from {pid} to prevent deadlock"
    )


def _victim_action(victim: Process) -> Tuple[str, Optional[str]]:
    """("abort", None) or ("preempt", first held resource id)."""
    if not victim.held:
        return "abort", None
    return "preempt", victim.held[0]


def resolve_deadlock(system_state: SystemState, tick: int = 0) -> Optional[SimulationEvent]:
    """
    Apply the resolution policy once.

    Policy:
    - Victim holds nothing: abort it (preemption has no target)
    - Otherwise: preempt the first resource in its held ordering

    Resolves exactly one culprit per call and does not re-check for a cycle;
    the next detection pass confirms whether the deadlock is gone.

    Args:
        system_state: State to mutate
        tick: Current tick number

    Returns:
        The ABORT/PREEMPTION event, or None if no process is waiting
    """
    victim = select_victim(system_state)
    if victim is None:
        return None

    action, rid = _victim_action(victim)
    if action == "abort":
        return abort_process(victim.pid, system_state, tick)
    return preempt_resource(victim.pid, rid, system_state, tick)


def plan_resolution(system_state: SystemState) -> List[ResolutionStep]:
    """
    Explain what resolve_deadlock would do, step by step.

    Works on deep copies; the given state is never mutated.

    Args:
        system_state: Current system state

    Returns:
        Ordered steps (empty if no process is waiting)
    """
    before = system_state.copy()
    victim = select_victim(before)
    if victim is None:
        return []

    steps = [
        ResolutionStep(
            description="Identifying processes involved in deadlock...",
            state=before,
            highlight=[p.pid for p in before.waiting_processes()]
        ),
        ResolutionStep(
            description=(
                f"Selected process {victim.pid} for resource preemption "
                f"(has {len(victim.held)} resources)."
            ),
            state=before,
            highlight=[victim.pid]
        ),
    ]

    after = before.copy()
    action, rid = _victim_action(victim)

    if action == "abort":
        abort_process(victim.pid, after)
        steps.append(ResolutionStep(
            description=f"Process {victim.pid} aborted to resolve deadlock.",
            state=after,
            highlight=[victim.pid]
        ))
    else:
        steps.append(ResolutionStep(
            description=f"Preempting resource {rid} from process {victim.pid}...",
            state=before,
            highlight=[victim.pid],
            highlight_resource=rid
        ))
        preempt_resource(victim.pid, rid, after)
        steps.append(ResolutionStep(
            description=f"Resource {rid} preempted from {victim.pid}. Deadlock resolved.",
            state=after,
            highlight=[victim.pid],
            highlight_resource=rid
        ))

    steps.append(ResolutionStep(
        description="System returned to stable state. Processes can continue execution.",
        state=after
    ))
    return steps
