"""
Error taxonomy for the Deadlock Prediction & Resolution Simulator.
"""


class SimulatorError(Exception):
    """Base class for all simulator errors."""
    pass


class InvalidConfiguration(SimulatorError):
    """
    Raised when process/resource definitions or tuning values are invalid.

    Always raised at initialization, before any tick runs.
    """
    pass


class InconsistentState(SimulatorError):
    """
    Raised when an operation would break a state invariant.

    Signals a programming-contract violation (over-capacity grant, request of
    a held resource, ...). Never corrected silently.
    """
    pass
