"""Exception types raised by the LNA path kernels.

Numerical failures are structural rather than transient, so nothing here is
retried: the orchestrating sampler decides whether to reject the proposal.
"""


class LNAError(Exception):
    """Base class for all lnapath errors."""


class NumericalInstability(LNAError, ArithmeticError):
    """A diffusion or covariance matrix is not positive-definite.

    Attributes:
        interval: Index of the offending interval or time point, if known
    """

    def __init__(self, message: str, interval=None):
        super().__init__(message)
        self.interval = interval


class DimensionMismatch(LNAError, ValueError):
    """Inputs disagree about compartment, event, or state-vector sizes."""


class InvalidSchedule(LNAError, ValueError):
    """The time grid or parameter-update flags are malformed."""
