"""
Simulation Engine for the Deadlock Prediction & Resolution Simulator.

Runs the per-tick pipeline (Allocator -> Detector -> Resolver or Predictor)
and exposes the operations a presentation layer drives: initialize, tick,
resolve and reset.

Step Ordering (for deterministic execution):
1. Grant pending requests (identifier order)
2. Release/request events per running process
3. Build wait-for graph, run cycle detection
4. Deadlock found -> resolve one culprit, tick ends
5. Otherwise, if predictive mode is on -> assess risk, resolve if HIGH
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from models.errors import InconsistentState
from models.system_state import SystemState
from algorithms.allocation import EventSource, RandomEventSource, ScriptedEventSource, allocate_step
from algorithms.detection import WaitForEdge, detect_deadlock, find_cycle
from algorithms.prediction import RiskAssessment, RiskLevel, assess_risk
from algorithms.recovery import ResolutionStep, plan_resolution, resolve_deadlock
from analysis.events import EventLog, SimulationEvent, EventType
from utils.config_loader import EngineConfig, build_system_state
from utils.logger import SimulatorLogger


@dataclass
class TickResult:
    """
    Outcome of one tick.

    Attributes:
        tick: Tick number
        state: System state after the tick (a new object)
        events: Everything that happened, in order
        wait_for_edges: Wait-for graph found by the detector this tick
        deadlock_detected: Detector found a cycle this tick
        risk: Predictor assessment (None if the predictor did not run)
        resolution: ABORT/PREEMPTION event if the resolver acted
    """
    tick: int
    state: SystemState
    events: List[SimulationEvent] = field(default_factory=list)
    wait_for_edges: List[WaitForEdge] = field(default_factory=list)
    deadlock_detected: bool = False
    risk: Optional[RiskAssessment] = None
    resolution: Optional[SimulationEvent] = None

    @property
    def resolved(self) -> bool:
        return self.resolution is not None


def initialize(process_defs: List[Any], resource_defs: List[Any]) -> SystemState:
    """
    Build the initial state from fixed identifier/capacity lists.

    Raises:
        InvalidConfiguration: If the definitions are invalid
    """
    return build_system_state(process_defs, resource_defs)


def make_event_source(config: EngineConfig) -> EventSource:
    """Scripted source if the config carries a script, seeded random source otherwise."""
    if config.is_scripted:
        return ScriptedEventSource(config.script_releases, config.script_requests)
    return RandomEventSource(
        release_probability=config.release_probability,
        request_probability=config.request_probability,
        seed=config.seed
    )


class DeadlockEngine:
    """
    Owns the live state and sequences ticks.

    Ticks never overlap: a tick started while another is in progress raises
    InconsistentState. Every tick works on a copy of its input state, so a
    caller holding an older snapshot never sees it change.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        event_source: Optional[EventSource] = None,
        logger: Optional[SimulatorLogger] = None
    ):
        """
        Initialize engine.

        Args:
            config: Engine configuration (defaults apply if None)
            event_source: Release/request decisions (derived from config if None)
            logger: Logger (a silent one if None)

        Raises:
            InvalidConfiguration: If the configuration is invalid
        """
        self.config = config or EngineConfig()
        self.config.validate()
        self.event_source = event_source or make_event_source(self.config)
        self.logger = logger or SimulatorLogger(echo=False)
        self.event_log = EventLog(max_entries=self.config.log_capacity)

        self.state = build_system_state(self.config.processes, self.config.resources)
        self.tick_count = 0
        self.deadlock_flag = False
        self.wait_for_edges: List[WaitForEdge] = []
        self._in_tick = False

    def _record(self, events: List[SimulationEvent]) -> None:
        # Deadlock, prediction and resolution have their own log lines
        for event in events:
            if event.event_type in (EventType.GRANT, EventType.RELEASE, EventType.REQUEST, EventType.RESET):
                self.logger.log_event(event)
        self.event_log.extend(events)

    def tick(self, state: Optional[SystemState] = None) -> TickResult:
        """
        Advance the system by one tick.

        Args:
            state: State to advance (the engine's current state if None);
                never mutated

        Returns:
            TickResult with the new state, events, wait-for edges and flag

        Raises:
            InconsistentState: On re-entry or if an invariant breaks
        """
        if self._in_tick:
            raise InconsistentState("tick started while a previous tick is still in progress")

        self._in_tick = True
        try:
            working = (state if state is not None else self.state).copy()
            tick = self.tick_count + 1
            result = TickResult(tick=tick, state=working)

            # Deadlock left unresolved by the previous tick: resolve instead of advancing
            if self.deadlock_flag:
                result.resolution = self._resolve(working, tick)
                if result.resolution is not None:
                    result.events.append(result.resolution)
                self._finish_tick(result)
                return result

            result.events.extend(allocate_step(working, self.event_source, tick))
            working.assert_consistency(f"after allocation at tick {tick}")

            deadlock, edges = detect_deadlock(working)
            result.wait_for_edges = edges
            result.deadlock_detected = deadlock

            if deadlock:
                cycle = find_cycle(edges, [p.pid for p in working.processes])
                self.logger.log_deadlock(tick, cycle, len(edges))
                result.events.append(SimulationEvent(
                    tick=tick,
                    event_type=EventType.DEADLOCK,
                    message=f"cycle {' -> '.join(cycle)}"
                ))
                if self.config.auto_resolve:
                    result.resolution = self._resolve(working, tick)
                else:
                    self.deadlock_flag = True
            elif self.config.predictive_mode:
                result.risk = assess_risk(working, self.config.risk_threshold)
                if result.risk.level != RiskLevel.NONE:
                    intervene = result.risk.should_intervene
                    self.logger.log_prediction(tick, result.risk.percentage, intervene)
                    result.events.append(SimulationEvent(
                        tick=tick,
                        event_type=EventType.PREDICTION,
                        message="high risk" if intervene else "monitoring",
                        risk_percent=result.risk.percentage
                    ))
                    if intervene:
                        result.resolution = self._resolve(working, tick)

            if result.resolution is not None:
                result.events.append(result.resolution)

            self._finish_tick(result)
            return result
        finally:
            self._in_tick = False

    def _finish_tick(self, result: TickResult) -> None:
        self.tick_count = result.tick
        self._record(result.events)
        self.state = result.state
        self.wait_for_edges = result.wait_for_edges
        self.logger.log_system_state(result.tick, result.state.display())

    def _resolve(self, working: SystemState, tick: int) -> Optional[SimulationEvent]:
        """Run the resolver once on working state; clears the deadlock flag."""
        event = resolve_deadlock(working, tick)
        self.deadlock_flag = False
        self.logger.log_resolution(tick, event)
        return event

    def resolve(self, state: Optional[SystemState] = None) -> Tuple[SystemState, Optional[SimulationEvent]]:
        """
        Run the resolution policy once.

        A no-op (returning None) when no process is waiting.

        Args:
            state: State to resolve (the engine's current state if None); never mutated

        Returns:
            Tuple of (new state, ABORT/PREEMPTION event or None)
        """
        if self._in_tick:
            raise InconsistentState("resolve called while a tick is in progress")

        working = (state if state is not None else self.state).copy()
        event = self._resolve(working, self.tick_count)
        if event is not None:
            self._record([event])
        self.state = working
        return working, event

    def explain_resolution(self, state: Optional[SystemState] = None) -> List[ResolutionStep]:
        """Step-by-step walkthrough of what resolve() would do; mutates nothing."""
        return plan_resolution(state if state is not None else self.state)

    def reset(self) -> SystemState:
        """
        Return to the fixed initial configuration.

        Clears the deadlock flag, wait-for graph, tick counter and event log,
        and rewinds the event source.
        """
        if self._in_tick:
            raise InconsistentState("reset called while a tick is in progress")

        self.state = build_system_state(self.config.processes, self.config.resources)
        self.tick_count = 0
        self.deadlock_flag = False
        self.wait_for_edges = []
        self.event_source.reset()
        self.event_log.clear()
        self._record([SimulationEvent(tick=0, event_type=EventType.RESET, message="Simulation reset")])
        return self.state
