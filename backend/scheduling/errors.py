"""Typed failures raised by the scheduling core."""


class SchedulingError(ValueError):
    """Base class for recoverable scheduling input errors."""


class InvalidTimeFormat(SchedulingError):
    """A time string matched neither the 12-hour nor the 24-hour pattern."""


class InvalidTimeZone(SchedulingError):
    """A timezone name could not be resolved."""


class MalformedRule(SchedulingError):
    """A recurrence rule string could not be parsed."""


class InvalidInterval(SchedulingError):
    """An interval whose end is not after its start."""


class InvalidRecurrence(SchedulingError):
    """A recurrence rule that cannot be expanded as requested."""
