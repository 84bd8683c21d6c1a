"""
Core Data Model Tests

Tests Process, Resource, and SystemState invariants and paired mutations.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.errors import InconsistentState, InvalidConfiguration
from models.process import Process, ProcessStatus, identifier_key
from models.resource import Resource
from models.system_state import SystemState


def _two_by_two() -> SystemState:
    return SystemState(
        processes=[Process("P1"), Process("P2")],
        resources=[Resource("R1", 1), Resource("R2", 1)]
    )


def test_process_model():
    """Test Process model methods."""
    print("\n" + "="*60)
    print("TEST 1: Process Model")
    print("="*60)

    process = Process(pid="P1")
    print(f"\nCreated: {process}")

    process.acquire("R1")
    assert process.held == ["R1"], "P1 should hold R1"

    process.request("R2")
    assert process.is_waiting(), "P1 should be waiting for R2"

    with pytest.raises(InconsistentState):
        process.acquire("R1")
    print("  ✓ Duplicate hold rejected")

    # Granting the requested resource clears the request
    process.acquire("R2")
    assert process.requesting is None, "Grant should clear the matching request"
    assert process.held == ["R1", "R2"], "Held list keeps acquisition order"

    with pytest.raises(InconsistentState):
        process.request("R1")
    print("  ✓ Request for a held resource rejected")

    released = process.abort()
    assert released == ["R1", "R2"]
    assert process.status == ProcessStatus.ABORTED
    assert process.held == [] and process.requesting is None, "Aborted process holds nothing"

    with pytest.raises(InconsistentState):
        process.request("R3")
    print("  ✓ Aborted process cannot request")

    print("\n✅ Process Model Tests PASSED")


def test_resource_model():
    """Test Resource model methods."""
    print("\n" + "="*60)
    print("TEST 2: Resource Model")
    print("="*60)

    resource = Resource("R4", capacity=2)
    resource.allocate("P1")
    resource.allocate("P2")
    assert resource.is_saturated(), "R4 should be saturated with two holders"
    assert resource.free_instances == 0

    with pytest.raises(InconsistentState):
        resource.allocate("P3")
    print("  ✓ Grant over capacity rejected")

    resource.deallocate("P1")
    assert resource.holders == ["P2"]
    assert resource.has_free_instance()

    with pytest.raises(InconsistentState):
        resource.deallocate("P1")

    for bad_capacity in (0, -1, 1.5, True):
        with pytest.raises(InvalidConfiguration):
            Resource("RX", capacity=bad_capacity)
    print("  ✓ Non-positive capacity rejected")

    print("\n✅ Resource Model Tests PASSED")


def test_identifier_order():
    """Processes and resources are kept in natural identifier order."""
    state = SystemState(
        processes=[Process("P10"), Process("P2"), Process("P1")],
        resources=[Resource("R2", 1), Resource("R1", 1)]
    )
    assert [p.pid for p in state.processes] == ["P1", "P2", "P10"]
    assert [r.rid for r in state.resources] == ["R1", "R2"]
    assert identifier_key("P2") < identifier_key("P10")


def test_paired_mutations_and_matrices():
    """Grant/release keep process and resource sides in sync; matrices follow."""
    print("\n" + "="*60)
    print("TEST 3: System State Mutations")
    print("="*60)

    state = _two_by_two()
    state.grant("P1", "R1")
    state.set_request("P1", "R2")
    state.grant("P2", "R2")

    assert state.get_resource("R1").holders == ["P1"]
    assert state.allocation_matrix.tolist() == [[1, 0], [0, 1]]
    assert state.request_matrix.tolist() == [[0, 1], [0, 0]]
    assert state.holder_count_vector.tolist() == [1, 1]
    assert state.capacity_vector.tolist() == [1, 1]
    print("  ✓ Matrices reflect holdings and requests")

    state.release("P1", "R1")
    assert state.get_process("P1").held == []
    assert state.get_resource("R1").holders == []
    assert state.allocation_matrix[0].tolist() == [0, 0], "Matrix should refresh after release"

    with pytest.raises(InconsistentState):
        state.grant("P1", "R2")
    print("  ✓ Grant on a full resource rejected")

    state.assert_consistency("after mutations")
    print(state.display())

    print("\n✅ System State Tests PASSED")


def test_abort_releases_everything():
    """Aborting hands back every instance and leaves the process empty."""
    state = _two_by_two()
    state.grant("P1", "R1")
    state.grant("P1", "R2")

    released = state.abort_process("P1")

    assert released == ["R1", "R2"]
    process = state.get_process("P1")
    assert process.status == ProcessStatus.ABORTED
    assert process.held == [] and process.requesting is None
    assert all(r.holders == [] for r in state.resources)
    assert state.running_processes() == [state.get_process("P2")]
    state.assert_consistency("after abort")


def test_rejected_grant_leaves_state_untouched():
    """A grant refused by either side changes neither side."""
    state = _two_by_two()
    state.grant("P1", "R2")
    state.abort_process("P1")

    with pytest.raises(InconsistentState):
        state.grant("P1", "R1")
    assert state.get_resource("R1").holders == [], "Aborted process must not be listed as holder"
    state.assert_consistency("after grant to an aborted process")

    state.grant("P2", "R1")
    with pytest.raises(InconsistentState):
        state.grant("P2", "R1")
    assert state.get_resource("R1").holders == ["P2"]
    assert state.get_process("P2").held == ["R1"]
    state.assert_consistency("after duplicate grant")


def test_copy_is_isolated():
    """Mutating a copy never touches the original."""
    state = _two_by_two()
    state.grant("P1", "R1")

    clone = state.copy()
    clone.release("P1", "R1")
    clone.set_request("P2", "R2")

    assert state.get_process("P1").held == ["R1"], "Original should keep R1"
    assert state.get_process("P2").requesting is None
    assert state.allocation_matrix[0].tolist() == [1, 0]
    assert clone == clone.copy(), "Copies compare structurally"


def test_assert_consistency_catches_broken_mirror():
    """A holder list that disagrees with the process is reported."""
    state = _two_by_two()
    state.get_resource("R1").holders.append("P2")

    with pytest.raises(InconsistentState):
        state.assert_consistency("with a forged holder")


def test_snapshot_is_plain_data():
    """snapshot() gives the presentation layer plain records."""
    state = _two_by_two()
    state.grant("P2", "R1")
    state.set_request("P1", "R1")

    snapshot = state.snapshot()

    assert snapshot['processes'][0] == {
        'id': 'P1', 'resources': [], 'needs_resource': 'R1', 'status': 'running'
    }
    assert snapshot['resources'][0] == {'id': 'R1', 'instances': 1, 'allocated_to': ['P2']}


def main():
    """Run all model tests."""
    test_process_model()
    test_resource_model()
    test_identifier_order()
    test_paired_mutations_and_matrices()
    test_abort_releases_everything()
    test_rejected_grant_leaves_state_untouched()
    test_copy_is_isolated()
    test_assert_consistency_catches_broken_mirror()
    test_snapshot_is_plain_data()
    print("\n🎉 ALL MODEL TESTS PASSED")
    return 0


if __name__ == '__main__':
    sys.exit(main())
