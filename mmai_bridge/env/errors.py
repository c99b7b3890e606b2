"""Fatal bridge errors."""


class ProtocolError(RuntimeError):
    """The observation/action contract desynchronized from the simulation.

    Raised for unknown accessibility values, out-of-range action indices,
    unexpected unit slots and overlapping decisions. Never recoverable.
    """
