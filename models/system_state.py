"""
System State model for the Deadlock Prediction & Resolution Simulator.

Holds the full (processes, resources) snapshot and the derived matrices
and vectors used by the detector and the predictor.
"""

import copy
import numpy as np
from typing import List, Dict, Optional
from dataclasses import dataclass, field

from models.errors import InconsistentState
from models.process import Process, ProcessStatus, identifier_key
from models.resource import Resource


@dataclass
class SystemState:
    """
    Global system snapshot for deadlock simulation.

    Processes and resources are kept in identifier order. Every paired
    mutation (grant, release, request, preempt, abort) goes through this
    class so that a process's held list and a resource's holder list never
    disagree.

    Attributes:
        processes: All processes in the system, in identifier order
        resources: All resources in the system, in identifier order
        allocation_matrix: [P][R] 1 where process holds an instance of resource
        request_matrix: [P][R] 1 where process is waiting for resource
        capacity_vector: [R] Total instances per resource
        holder_count_vector: [R] Instances currently held per resource
    """
    processes: List[Process] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)

    # Derived views (computed on first access, dropped on every mutation)
    _allocation_matrix: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    _request_matrix: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    _capacity_vector: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    _holder_count_vector: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.processes.sort(key=lambda p: identifier_key(p.pid))
        self.resources.sort(key=lambda r: identifier_key(r.rid))

    @property
    def num_processes(self) -> int:
        """Number of processes in the system."""
        return len(self.processes)

    @property
    def num_resources(self) -> int:
        """Number of resources in the system."""
        return len(self.resources)

    @property
    def allocation_matrix(self) -> np.ndarray:
        """Get allocation matrix [P][R]."""
        if self._allocation_matrix is None:
            self._build_allocation_matrix()
        return self._allocation_matrix

    @property
    def request_matrix(self) -> np.ndarray:
        """Get pending request matrix [P][R]."""
        if self._request_matrix is None:
            self._build_request_matrix()
        return self._request_matrix

    @property
    def capacity_vector(self) -> np.ndarray:
        """Get capacity vector [R]."""
        if self._capacity_vector is None:
            self._capacity_vector = np.array([r.capacity for r in self.resources], dtype=int)
        return self._capacity_vector

    @property
    def holder_count_vector(self) -> np.ndarray:
        """Get held-instances vector [R]."""
        if self._holder_count_vector is None:
            self._holder_count_vector = np.array([len(r.holders) for r in self.resources], dtype=int)
        return self._holder_count_vector

    def _resource_index(self) -> Dict[str, int]:
        return {r.rid: j for j, r in enumerate(self.resources)}

    def _build_allocation_matrix(self) -> None:
        """Build allocation matrix from process holdings."""
        index = self._resource_index()
        self._allocation_matrix = np.zeros((self.num_processes, self.num_resources), dtype=int)
        for i, process in enumerate(self.processes):
            for rid in process.held:
                self._allocation_matrix[i][index[rid]] = 1

    def _build_request_matrix(self) -> None:
        """Build pending request matrix from process states."""
        index = self._resource_index()
        self._request_matrix = np.zeros((self.num_processes, self.num_resources), dtype=int)
        for i, process in enumerate(self.processes):
            if process.requesting is not None:
                self._request_matrix[i][index[process.requesting]] = 1

    def refresh_matrices(self) -> None:
        """Drop all derived matrices and vectors so they rebuild on next access."""
        self._allocation_matrix = None
        self._request_matrix = None
        self._capacity_vector = None
        self._holder_count_vector = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_process(self, pid: str) -> Process:
        """
        Find a process by id.

        Raises:
            InconsistentState: If no such process exists
        """
        process = next((p for p in self.processes if p.pid == pid), None)
        if process is None:
            raise InconsistentState(f"Process {pid} not found")
        return process

    def get_resource(self, rid: str) -> Resource:
        """
        Find a resource by id.

        Raises:
            InconsistentState: If no such resource exists
        """
        resource = next((r for r in self.resources if r.rid == rid), None)
        if resource is None:
            raise InconsistentState(f"Resource {rid} not found")
        return resource

    def running_processes(self) -> List[Process]:
        """Processes that have not been aborted, in identifier order."""
        return [p for p in self.processes if p.is_running()]

    def waiting_processes(self) -> List[Process]:
        """Running processes with an outstanding request, in identifier order."""
        return [p for p in self.processes if p.is_waiting()]

    # ------------------------------------------------------------------
    # Paired mutations
    # ------------------------------------------------------------------

    def grant(self, pid: str, rid: str) -> None:
        """
        Grant one instance of rid to pid and clear its request.

        Both sides are checked before either is changed, so a rejected
        grant leaves the state untouched.
        """
        process = self.get_process(pid)
        resource = self.get_resource(rid)
        process.check_acquire(rid)
        resource.allocate(pid)
        process.acquire(rid)
        self.refresh_matrices()

    def release(self, pid: str, rid: str) -> None:
        """Return the instance of rid held by pid."""
        process = self.get_process(pid)
        resource = self.get_resource(rid)
        process.release(rid)
        resource.deallocate(pid)
        self.refresh_matrices()

    def set_request(self, pid: str, rid: str) -> None:
        """Record rid as the outstanding request of pid."""
        self.get_resource(rid)
        self.get_process(pid).request(rid)
        self.refresh_matrices()

    def preempt(self, pid: str, rid: str) -> None:
        """
        Forcibly reclaim rid from pid.

        Same bookkeeping as a release; the process stays running and keeps
        its outstanding request.
        """
        self.release(pid, rid)

    def abort_process(self, pid: str) -> List[str]:
        """
        Abort a process and hand back every instance it holds.

        Returns:
            Resource ids that were released
        """
        process = self.get_process(pid)
        for rid in process.held:
            self.get_resource(rid).deallocate(pid)
        released = process.abort()
        self.refresh_matrices()
        return released

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def copy(self) -> "SystemState":
        """Structural deep copy; mutating the copy never touches this state."""
        clone = copy.deepcopy(self)
        clone.refresh_matrices()
        return clone

    def snapshot(self) -> Dict:
        """
        Plain-data view of the current state for the presentation layer.

        Returns:
            Dictionary with process and resource records
        """
        return {
            'processes': [
                {
                    'id': p.pid,
                    'resources': p.held.copy(),
                    'needs_resource': p.requesting,
                    'status': p.status.value,
                }
                for p in self.processes
            ],
            'resources': [
                {
                    'id': r.rid,
                    'instances': r.capacity,
                    'allocated_to': r.holders.copy(),
                }
                for r in self.resources
            ],
        }

    def display(self) -> str:
        """
        Generate readable string representation of system state.

        Returns:
            Formatted string showing processes, resources and the allocation matrix
        """
        output = []
        output.append("\n" + "="*60)
        output.append("SYSTEM STATE")
        output.append("="*60)

        output.append("\nProcesses:")
        for process in self.processes:
            held = ", ".join(process.held) if process.held else "-"
            output.append(
                f"  {process.pid}: {process.status.value:8} "
                f"holds [{held}] waits for {process.requesting or '-'}"
            )

        output.append("\nResources:")
        for resource in self.resources:
            holders = ", ".join(resource.holders) if resource.holders else "-"
            output.append(
                f"  {resource.rid}: {len(resource.holders)}/{resource.capacity} held by [{holders}]"
            )

        output.append("\nAllocation Matrix:")
        output.append("       " + " ".join([f"{r.rid:>4}" for r in self.resources]))
        for i, process in enumerate(self.processes):
            row = f"  {process.pid:>4}: "
            row += " ".join([f"{self.allocation_matrix[i][j]:4}" for j in range(self.num_resources)])
            output.append(row)

        output.append("\n" + "="*60)
        return "\n".join(output)

    def assert_consistency(self, context: str = "") -> None:
        """Verify every process/resource invariant.

        Args:
            context: Description of when this check is being run (for error messages)

        Raises:
            InconsistentState: If any invariant is violated
        """
        rids = {r.rid for r in self.resources}

        for resource in self.resources:
            if len(resource.holders) > resource.capacity:
                raise InconsistentState(
                    f"Capacity violated for {resource.rid} {context}\n"
                    f"  Holders: {resource.holders}, Capacity: {resource.capacity}"
                )
            if len(set(resource.holders)) != len(resource.holders):
                raise InconsistentState(
                    f"Duplicate holders for {resource.rid} {context}: {resource.holders}"
                )
            for pid in resource.holders:
                if not self.get_process(pid).holds(resource.rid):
                    raise InconsistentState(
                        f"{resource.rid} lists {pid} as holder but {pid} does not hold it {context}"
                    )

        for process in self.processes:
            if len(set(process.held)) != len(process.held):
                raise InconsistentState(
                    f"{process.pid} holds duplicate resources {context}: {process.held}"
                )
            for rid in process.held:
                if rid not in rids or process.pid not in self.get_resource(rid).holders:
                    raise InconsistentState(
                        f"{process.pid} holds {rid} but {rid} does not list it {context}"
                    )
            if process.requesting is not None:
                if process.requesting not in rids:
                    raise InconsistentState(
                        f"{process.pid} requests unknown resource {process.requesting} {context}"
                    )
                if process.requesting in process.held:
                    raise InconsistentState(
                        f"{process.pid} requests {process.requesting} which it already holds {context}"
                    )
            if process.status == ProcessStatus.ABORTED and (process.held or process.requesting):
                raise InconsistentState(
                    f"Aborted {process.pid} still holds {process.held} "
                    f"or requests {process.requesting} {context}"
                )
