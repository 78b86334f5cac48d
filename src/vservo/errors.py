"""
Servoing Errors

Configuration errors raised by features and tasks. Numerical degeneracy
(rank-deficient or near-singular interaction matrices) is never an error:
the pseudo-inverse truncates it and a velocity is still produced.
"""


class ServoError(Exception):
    """Base class for all servoing configuration errors."""


class FeatureMismatchError(ServoError, ValueError):
    """Current and desired features are of different kinds or dimensions."""


class SelectionError(ServoError, ValueError):
    """A selection mask does not fit the feature it is applied to."""


class TaskNotReadyError(ServoError, RuntimeError):
    """The task cannot compute a control law in its current state."""
