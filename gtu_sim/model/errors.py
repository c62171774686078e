class GtuSimError(Exception):
    """Base class for all errors raised by the simulator."""


class ProgrammingError(GtuSimError, ValueError):
    """
    A caller broke a precondition: invalid parameter, time running backwards,
    or a decision branch that cannot be reached with consistent input.
    Fatal for the call that raised it.
    """


class NetworkInconsistencyError(GtuSimError):
    """The road network and a GTU's recorded lane positions disagree."""
