"""
Process model for the Deadlock Prediction & Resolution Simulator.

Represents a process with the resources it holds and the single resource
it may be waiting for.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from enum import Enum

from models.errors import InconsistentState


class ProcessStatus(Enum):
    """Lifecycle status of a process. ABORTED is terminal."""
    RUNNING = "running"
    ABORTED = "aborted"


def identifier_key(identifier: str) -> Tuple:
    """
    Natural sort key for process/resource identifiers.

    Orders "P2" before "P10" so that iteration follows identifier order.
    """
    parts = re.split(r"(\d+)", identifier)
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in parts if part)


@dataclass
class Process:
    """
    Represents a process in the contention simulation.

    Attributes:
        pid: Process identifier (unique, stable)
        held: Resource ids currently held, in acquisition order
        requesting: Outstanding requested resource id (None if not waiting)
        status: Current lifecycle status
    """
    pid: str
    held: List[str] = field(default_factory=list)
    requesting: Optional[str] = None
    status: ProcessStatus = ProcessStatus.RUNNING

    def is_running(self) -> bool:
        """True if the process has not been aborted."""
        return self.status == ProcessStatus.RUNNING

    def is_waiting(self) -> bool:
        """
        Check if process is blocked on an outstanding request.

        Returns:
            True if process is running and has a pending request
        """
        return self.is_running() and self.requesting is not None

    def holds(self, rid: str) -> bool:
        """Check whether this process holds resource rid."""
        return rid in self.held

    def check_acquire(self, rid: str) -> None:
        """Raise InconsistentState if rid cannot be granted to this process."""
        if not self.is_running():
            raise InconsistentState(f"{self.pid}: cannot acquire {rid} - process is aborted")
        if rid in self.held:
            raise InconsistentState(f"{self.pid}: already holds {rid}")

    def acquire(self, rid: str) -> None:
        """
        Add a resource to the held set and clear a matching request.

        Implements Hold and Wait condition: the process keeps everything it
        holds while it waits for more.

        Args:
            rid: Resource identifier being granted

        Raises:
            InconsistentState: If the process is aborted or already holds rid
        """
        self.check_acquire(rid)

        self.held.append(rid)

        if self.requesting == rid:
            self.requesting = None

    def release(self, rid: str) -> None:
        """
        Remove a resource from the held set.

        Args:
            rid: Resource identifier to release

        Raises:
            InconsistentState: If the process does not hold rid
        """
        if rid not in self.held:
            raise InconsistentState(f"{self.pid}: cannot release {rid} - not held")
        self.held.remove(rid)

    def request(self, rid: str) -> None:
        """
        Record an outstanding request for a resource.

        Args:
            rid: Resource identifier requested

        Raises:
            InconsistentState: If the process is aborted, already waiting,
                or already holds rid
        """
        if not self.is_running():
            raise InconsistentState(f"{self.pid}: aborted process cannot request {rid}")
        if self.requesting is not None:
            raise InconsistentState(
                f"{self.pid}: already waiting for {self.requesting}, cannot request {rid}"
            )
        if rid in self.held:
            raise InconsistentState(f"{self.pid}: cannot request {rid} - already held")
        self.requesting = rid

    def abort(self) -> List[str]:
        """
        Mark process as aborted and drop everything it holds and requests.

        Returns:
            Resource ids that were held at the time of abort
        """
        released = self.held.copy()
        self.held = []
        self.requesting = None
        self.status = ProcessStatus.ABORTED
        return released

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Process(pid={self.pid}, status={self.status.value}, "
            f"held={self.held}, requesting={self.requesting})"
        )
