"""
Configuration Loader for the Deadlock Prediction & Resolution Simulator.

Defines the engine configuration with its defaults, loads and validates
JSON scenario files, and builds the initial system state.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from models.errors import InvalidConfiguration, InconsistentState
from models.process import Process
from models.resource import Resource
from models.system_state import SystemState


class TickSpeed(Enum):
    """Tick interval presets, in milliseconds."""
    SLOW = 2000
    NORMAL = 1000
    FAST = 500

    @property
    def interval_seconds(self) -> float:
        return self.value / 1000.0


@dataclass(frozen=True)
class ProcessDef:
    """
    Process definition.

    Attributes:
        pid: Process identifier
        holds: Resources held at start (default: none)
        requests: Resource requested at start (default: none)
    """
    pid: str
    holds: Tuple[str, ...] = ()
    requests: Optional[str] = None


@dataclass(frozen=True)
class ResourceDef:
    """Resource definition: identifier and instance count."""
    rid: str
    capacity: int = 1


DEFAULT_PROCESSES = [ProcessDef("P1"), ProcessDef("P2"), ProcessDef("P3"), ProcessDef("P4")]
DEFAULT_RESOURCES = [
    ResourceDef("R1", 1),
    ResourceDef("R2", 1),
    ResourceDef("R3", 1),
    ResourceDef("R4", 2),
]


@dataclass
class EngineConfig:
    """
    Tunable engine settings.

    Attributes:
        processes: Process definitions (default P1..P4)
        resources: Resource definitions (default R1:1, R2:1, R3:1, R4:2)
        speed: Tick interval preset for periodic ticking (default NORMAL, 1s)
        predictive_mode: Run the predictor when no deadlock is found (default on)
        release_probability: Per-tick release chance of a holding process (default 0.2)
        request_probability: Per-tick request chance of an idle process (default 0.3)
        risk_threshold: Risk score above which the predictor intervenes (default 0.5)
        auto_resolve: Resolve a detected deadlock within the same tick (default on);
            when off, the deadlock flag stays set until resolve() or the next tick
        seed: Seed for the random event source (default: unseeded)
        log_capacity: Number of recent events the engine keeps (default 10, None = all)
        script_releases: Scripted releases {tick: {pid: rid}}; with a script, the
            engine replays it instead of drawing random events
        script_requests: Scripted requests {tick: {pid: rid}}
    """
    processes: List[ProcessDef] = field(default_factory=lambda: list(DEFAULT_PROCESSES))
    resources: List[ResourceDef] = field(default_factory=lambda: list(DEFAULT_RESOURCES))
    speed: TickSpeed = TickSpeed.NORMAL
    predictive_mode: bool = True
    release_probability: float = 0.2
    request_probability: float = 0.3
    risk_threshold: float = 0.5
    auto_resolve: bool = True
    seed: Optional[int] = None
    log_capacity: Optional[int] = 10
    script_releases: Optional[Dict[int, Dict[str, str]]] = None
    script_requests: Optional[Dict[int, Dict[str, str]]] = None

    @property
    def is_scripted(self) -> bool:
        return self.script_releases is not None or self.script_requests is not None

    def validate(self) -> None:
        """
        Check tuning values and definitions.

        Raises:
            InvalidConfiguration: If any value is out of range
        """
        for name in ('release_probability', 'request_probability', 'risk_threshold'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise InvalidConfiguration(f"{name} must be a number in [0, 1], got {value!r}")

        if not isinstance(self.speed, TickSpeed):
            raise InvalidConfiguration(f"speed must be a TickSpeed, got {self.speed!r}")

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise InvalidConfiguration(f"seed must be an integer, got {self.seed!r}")

        if self.log_capacity is not None and (
                isinstance(self.log_capacity, bool) or not isinstance(self.log_capacity, int)
                or self.log_capacity <= 0):
            raise InvalidConfiguration(f"log_capacity must be a positive integer, got {self.log_capacity!r}")

        # Raises on duplicate ids, bad capacities, bad initial holdings
        build_system_state(self.processes, self.resources)


def parse_speed(value: Union[str, int, TickSpeed]) -> TickSpeed:
    """
    Accept a preset name ("slow"/"normal"/"fast") or an interval in ms.

    Raises:
        InvalidConfiguration: If value matches no preset
    """
    if isinstance(value, TickSpeed):
        return value
    if isinstance(value, str):
        try:
            return TickSpeed[value.upper()]
        except KeyError:
            pass
    elif isinstance(value, int) and not isinstance(value, bool):
        try:
            return TickSpeed(value)
        except ValueError:
            pass
    choices = ", ".join(s.name.lower() for s in TickSpeed)
    raise InvalidConfiguration(f"Unknown speed {value!r} (expected one of: {choices})")


def to_process_def(entry: Any) -> ProcessDef:
    """Normalize a process id string, dict or ProcessDef."""
    if isinstance(entry, ProcessDef):
        return entry
    if isinstance(entry, str):
        return ProcessDef(entry)
    if isinstance(entry, dict):
        if 'id' not in entry:
            raise InvalidConfiguration("Process missing 'id' field")
        holds = entry.get('holds', [])
        if not isinstance(holds, list):
            raise InvalidConfiguration(f"Process {entry['id']}: 'holds' must be a list")
        return ProcessDef(str(entry['id']), tuple(holds), entry.get('requests'))
    raise InvalidConfiguration(f"Invalid process definition: {entry!r}")


def to_resource_def(entry: Any) -> ResourceDef:
    """Normalize a resource dict or ResourceDef."""
    if isinstance(entry, ResourceDef):
        return entry
    if isinstance(entry, dict):
        if 'id' not in entry:
            raise InvalidConfiguration("Resource missing 'id' field")
        if 'capacity' not in entry:
            raise InvalidConfiguration(f"Resource {entry['id']} missing 'capacity'")
        return ResourceDef(str(entry['id']), entry['capacity'])
    raise InvalidConfiguration(f"Invalid resource definition: {entry!r}")


def build_system_state(process_defs: List[Any], resource_defs: List[Any]) -> SystemState:
    """
    Validate definitions and build the initial system state.

    Args:
        process_defs: Process ids, dicts or ProcessDef objects
        resource_defs: Resource dicts or ResourceDef objects

    Returns:
        Fresh SystemState

    Raises:
        InvalidConfiguration: Duplicate ids, non-positive capacity, unknown
            resource references, over-capacity initial holdings, or an
            initial request for a held resource
    """
    processes = [to_process_def(p) for p in process_defs]
    resources = [to_resource_def(r) for r in resource_defs]

    if not processes:
        raise InvalidConfiguration("At least one process is required")
    if not resources:
        raise InvalidConfiguration("At least one resource is required")

    _check_unique([p.pid for p in processes], "process")
    _check_unique([r.rid for r in resources], "resource")

    # Resource() rejects non-positive capacity
    system_state = SystemState(
        processes=[Process(pid=p.pid) for p in processes],
        resources=[Resource(rid=r.rid, capacity=r.capacity) for r in resources]
    )

    _validate_initial_holdings(processes, resources)

    for process_def in processes:
        for rid in process_def.holds:
            system_state.grant(process_def.pid, rid)
    for process_def in processes:
        if process_def.requests is not None:
            system_state.set_request(process_def.pid, process_def.requests)

    system_state.assert_consistency("at initial state")
    return system_state


def _check_unique(identifiers: List[str], kind: str) -> None:
    seen = set()
    for identifier in identifiers:
        if not isinstance(identifier, str) or not identifier:
            raise InvalidConfiguration(f"Invalid {kind} identifier {identifier!r}")
        if identifier in seen:
            raise InvalidConfiguration(f"Duplicate {kind} identifier {identifier}")
        seen.add(identifier)


def _validate_initial_holdings(processes: List[ProcessDef], resources: List[ResourceDef]) -> None:
    """
    Validate initial holdings and requests against the resource set.

    Critical validation: for each resource, number of initial holders <= capacity.
    """
    capacities = {r.rid: r.capacity for r in resources}
    holder_counts = {r.rid: 0 for r in resources}

    for process in processes:
        if len(set(process.holds)) != len(process.holds):
            raise InvalidConfiguration(f"Process {process.pid}: duplicate initial holdings {list(process.holds)}")
        for rid in process.holds:
            if rid not in capacities:
                raise InvalidConfiguration(f"Process {process.pid}: holds unknown resource {rid}")
            holder_counts[rid] += 1
        if process.requests is not None:
            if process.requests not in capacities:
                raise InvalidConfiguration(f"Process {process.pid}: requests unknown resource {process.requests}")
            if process.requests in process.holds:
                raise InvalidConfiguration(
                    f"Process {process.pid}: cannot request {process.requests} which it already holds"
                )

    for rid, count in holder_counts.items():
        if count > capacities[rid]:
            raise InvalidConfiguration(
                f"VALIDATION FAILED: Resource {rid} initial holders ({count}) "
                f"exceed capacity ({capacities[rid]})"
            )


def _load_script(events: List[Dict], pids: List[str], rids: List[str]) -> Tuple[Dict, Dict]:
    """
    Parse scripted events into {tick: {pid: rid}} tables.

    Raises:
        InvalidConfiguration: If an event is malformed or names unknown ids
    """
    releases: Dict[int, Dict[str, str]] = {}
    requests: Dict[int, Dict[str, str]] = {}

    for event in events:
        if not isinstance(event, dict):
            raise InvalidConfiguration(f"Scripted event must be an object: {event!r}")
        for key in ('tick', 'type', 'process', 'resource'):
            if key not in event:
                raise InvalidConfiguration(f"Scripted event missing '{key}' field: {event}")

        tick = event['tick']
        if isinstance(tick, bool) or not isinstance(tick, int) or tick < 1:
            raise InvalidConfiguration(f"Scripted event tick must be a positive integer: {event}")
        if event['process'] not in pids:
            raise InvalidConfiguration(f"Scripted event names unknown process {event['process']}")
        if event['resource'] not in rids:
            raise InvalidConfiguration(f"Scripted event names unknown resource {event['resource']}")

        if event['type'] == 'release':
            table = releases
        elif event['type'] == 'request':
            table = requests
        else:
            raise InvalidConfiguration(f"Unknown scripted event type '{event['type']}'")

        per_tick = table.setdefault(tick, {})
        if event['process'] in per_tick:
            raise InvalidConfiguration(
                f"Process {event['process']} has two {event['type']} events at tick {tick}"
            )
        per_tick[event['process']] = event['resource']

    return releases, requests


def load_config(file_path: str) -> EngineConfig:
    """
    Load engine configuration from a JSON scenario file.

    Every key is optional; missing keys keep their defaults.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Validated EngineConfig

    Raises:
        InvalidConfiguration: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise InvalidConfiguration(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise InvalidConfiguration(f"Invalid JSON in scenario file: {e}")

    if not isinstance(data, dict):
        raise InvalidConfiguration("Scenario file must contain a JSON object")

    for key in ('processes', 'resources', 'events'):
        if key in data and not isinstance(data[key], list):
            raise InvalidConfiguration(f"'{key}' must be a list, got {type(data[key]).__name__}")

    config = EngineConfig()

    if 'processes' in data:
        config.processes = [to_process_def(p) for p in data['processes']]
    if 'resources' in data:
        config.resources = [to_resource_def(r) for r in data['resources']]
    if 'speed' in data:
        config.speed = parse_speed(data['speed'])

    for key in ('predictive_mode', 'auto_resolve'):
        if key in data:
            if not isinstance(data[key], bool):
                raise InvalidConfiguration(f"{key} must be true or false")
            setattr(config, key, data[key])

    for key in ('release_probability', 'request_probability', 'risk_threshold', 'seed', 'log_capacity'):
        if key in data:
            setattr(config, key, data[key])

    if 'events' in data:
        config.script_releases, config.script_requests = _load_script(
            data['events'],
            [p.pid for p in config.processes],
            [r.rid for r in config.resources]
        )

    try:
        config.validate()
    except InconsistentState as e:
        raise InvalidConfiguration(str(e))

    return config


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Description string, or empty string if not present
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return ''
    return data.get('description', '') if isinstance(data, dict) else ''
