"""
Resource model for the Deadlock Prediction & Resolution Simulator.

Represents a resource with a fixed number of instances and the processes
currently holding them.
"""

from dataclasses import dataclass, field
from typing import List

from models.errors import InconsistentState, InvalidConfiguration


@dataclass
class Resource:
    """
    Represents a resource in the contention simulation.

    Attributes:
        rid: Resource identifier
        capacity: Total number of instances
        holders: Process ids currently holding one instance each

    Invariant:
        len(holders) <= capacity, each pid at most once
    """
    rid: str
    capacity: int
    holders: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate resource definition."""
        if not isinstance(self.capacity, int) or isinstance(self.capacity, bool) or self.capacity <= 0:
            raise InvalidConfiguration(
                f"Resource {self.rid}: capacity must be a positive integer, got {self.capacity!r}"
            )
        if len(self.holders) > self.capacity:
            raise InvalidConfiguration(
                f"Resource {self.rid}: {len(self.holders)} holders "
                f"exceeds capacity ({self.capacity})"
            )
        if len(set(self.holders)) != len(self.holders):
            raise InvalidConfiguration(f"Resource {self.rid}: duplicate holders {self.holders}")

    @property
    def free_instances(self) -> int:
        """Number of instances not currently held."""
        return self.capacity - len(self.holders)

    def has_free_instance(self) -> bool:
        """True if at least one instance can be granted."""
        return len(self.holders) < self.capacity

    def is_saturated(self) -> bool:
        """True if every instance is held."""
        return len(self.holders) >= self.capacity

    def allocate(self, pid: str) -> None:
        """
        Hand one instance to a process.

        Implements Mutual Exclusion condition: each instance has one holder.

        Args:
            pid: Process receiving the instance

        Raises:
            InconsistentState: If no instance is free or pid already holds one
        """
        if pid in self.holders:
            raise InconsistentState(f"Resource {self.rid}: {pid} already holds an instance")
        if not self.has_free_instance():
            raise InconsistentState(
                f"Resource {self.rid}: grant to {pid} would exceed capacity ({self.capacity})"
            )
        self.holders.append(pid)

    def deallocate(self, pid: str) -> None:
        """
        Take back the instance held by a process.

        Args:
            pid: Process giving up its instance

        Raises:
            InconsistentState: If pid is not a holder
        """
        if pid not in self.holders:
            raise InconsistentState(f"Resource {self.rid}: {pid} is not a holder")
        self.holders.remove(pid)
