class MPCError(Exception):
    """Base class for errors raised by the controller."""


class ConfigurationError(MPCError, ValueError):
    """Invalid horizon, bound or solver setting."""


class InvalidInputError(MPCError, ValueError):
    """Malformed per-cycle input: state vector or reference polynomial."""


class LatencyError(InvalidInputError):
    """Latency does not leave a post-offset actuation in the horizon."""


class NonFiniteSolutionError(MPCError, ArithmeticError):
    """The solver reported success but returned NaN or inf."""
