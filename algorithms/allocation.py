"""
Per-tick Allocator for the Deadlock Prediction & Resolution Simulator.

Grants pending requests where capacity allows, then lets every running
process release and request resources as decided by an event source.
"""

from abc import ABC, abstractmethod

import numpy as np
from typing import Dict, List, Optional

from models.errors import InconsistentState
from models.process import Process
from models.system_state import SystemState
from analysis.events import SimulationEvent, EventType


class EventSource(ABC):
    """
    Decides the release/request events of the event phase.

    Subclasses stand in for real workload arrival; the allocator validates
    every decision against the current state.
    """

    @abstractmethod
    def next_release(self, tick: int, process: Process) -> Optional[str]:
        """Resource id the process releases this tick, or None."""

    @abstractmethod
    def next_request(self, tick: int, process: Process, candidates: List[str]) -> Optional[str]:
        """Resource id (from candidates) the process requests this tick, or None."""

    def reset(self) -> None:
        """Return to the initial decision stream."""
        pass


class RandomEventSource(EventSource):
    """
    Randomized workload driven by a seeded numpy Generator.

    Attributes:
        release_probability: Chance per tick that a holding process releases one resource
        request_probability: Chance per tick that an idle process requests one resource
        seed: Seed of the decision stream (None for fresh entropy)
    """

    def __init__(self, release_probability: float = 0.2, request_probability: float = 0.3,
                 seed: Optional[int] = None):
        self.release_probability = release_probability
        self.request_probability = request_probability
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def next_release(self, tick: int, process: Process) -> Optional[str]:
        if process.held and self._rng.random() < self.release_probability:
            return process.held[int(self._rng.integers(len(process.held)))]
        return None

    def next_request(self, tick: int, process: Process, candidates: List[str]) -> Optional[str]:
        if self._rng.random() < self.request_probability and candidates:
            return candidates[int(self._rng.integers(len(candidates)))]
        return None

    def reset(self) -> None:
        self._rng = np.random.default_rng(self.seed)


class ScriptedEventSource(EventSource):
    """
    Replays a fixed script of events keyed by tick.

    Args:
        releases: {tick: {pid: rid}} releases to perform
        requests: {tick: {pid: rid}} requests to issue
    """

    def __init__(self, releases: Optional[Dict[int, Dict[str, str]]] = None,
                 requests: Optional[Dict[int, Dict[str, str]]] = None):
        self.releases = releases or {}
        self.requests = requests or {}

    def next_release(self, tick: int, process: Process) -> Optional[str]:
        return self.releases.get(tick, {}).get(process.pid)

    def next_request(self, tick: int, process: Process, candidates: List[str]) -> Optional[str]:
        return self.requests.get(tick, {}).get(process.pid)


def grant_pending_requests(system_state: SystemState, tick: int) -> List[SimulationEvent]:
    """
    Grant every outstanding request whose resource has a free instance.

    Processes are visited in identifier order, so when several processes
    compete for the last instances the lowest ids win. A resource grants
    at most (capacity - holders) requests per tick.

    Args:
        system_state: State to mutate
        tick: Current tick number

    Returns:
        GRANT events in the order they happened
    """
    events = []

    for process in system_state.processes:
        if not process.is_waiting():
            continue

        rid = process.requesting
        resource = system_state.get_resource(rid)
        if resource.has_free_instance():
            system_state.grant(process.pid, rid)
            events.append(SimulationEvent(
                tick=tick,
                event_type=EventType.GRANT,
                process_id=process.pid,
                resource_id=rid,
                message=f"Process {process.pid} acquired {rid}"
            ))

    return events


def generate_events(
    system_state: SystemState,
    event_source: EventSource,
    tick: int
) -> List[SimulationEvent]:
    """
    Event phase: each running process may release one resource and may
    issue one new request.

    Request candidates are the resources the process did not hold when its
    event phase began, so a resource released here is never re-requested
    (or granted) within the same tick.

    Args:
        system_state: State to mutate
        event_source: Source of release/request decisions
        tick: Current tick number

    Returns:
        RELEASE and REQUEST events in the order they happened

    Raises:
        InconsistentState: If the source releases an unheld resource or
            requests a resource outside the legal candidates
    """
    events = []

    for process in system_state.running_processes():
        held_at_start = list(process.held)

        rid = event_source.next_release(tick, process)
        if rid is not None:
            if not process.holds(rid):
                raise InconsistentState(f"{process.pid}: event source released unheld resource {rid}")
            system_state.release(process.pid, rid)
            events.append(SimulationEvent(
                tick=tick,
                event_type=EventType.RELEASE,
                process_id=process.pid,
                resource_id=rid,
                message=f"Process {process.pid} released {rid}"
            ))

        if process.requesting is not None:
            continue

        candidates = [r.rid for r in system_state.resources if r.rid not in held_at_start]
        rid = event_source.next_request(tick, process, candidates)
        if rid is None:
            continue
        if rid not in candidates:
            raise InconsistentState(
                f"{process.pid}: event source requested {rid}, legal targets are {candidates}"
            )
        system_state.set_request(process.pid, rid)
        events.append(SimulationEvent(
            tick=tick,
            event_type=EventType.REQUEST,
            process_id=process.pid,
            resource_id=rid,
            message=f"Process {process.pid} requested {rid}"
        ))

    return events


def allocate_step(
    system_state: SystemState,
    event_source: EventSource,
    tick: int
) -> List[SimulationEvent]:
    """
    Advance the system by one tick: grant phase, then event phase.

    Args:
        system_state: State to mutate
        event_source: Source of release/request decisions
        tick: Current tick number

    Returns:
        All grant, release and request events of this tick
    """
    events = grant_pending_requests(system_state, tick)
    events.extend(generate_events(system_state, event_source, tick))
    return events
