"""
Exceptions raised by the power analysis pipeline.

All errors are raised synchronously by the operation that detects them and
are never retried internally: every operation is a deterministic function of
its inputs, so repeating it without new inputs reproduces the same failure.
"""


class IeegPowerError(Exception):
    """Base class for errors raised by ieeg_power."""

    pass


class DataUnavailable(IeegPowerError):
    """Requested electrodes, frequencies or time window are not available upstream."""

    pass


class InvalidWindow(IeegPowerError):
    """Baseline window does not cover any sample of the Time axis."""

    pass


class UnknownCondition(IeegPowerError):
    """Condition label not present in a strict trial index."""

    pass


class EmptySelection(IeegPowerError):
    """A selection removed every label of an axis that must stay non-empty."""

    pass
