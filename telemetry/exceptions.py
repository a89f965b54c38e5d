# Error taxonomy for a polling cycle. Each stage of a cycle has its own error
# type so that failures can be logged and tested by kind while still being
# surfaced through a single last_error slot.


class TelemetryError(Exception):
    """Base class for errors captured by a Poller."""

    kind = "telemetry"


class ConnectivityError(TelemetryError):
    """The telemetry source could not be reached, or a failure was simulated.
    Expected to be transient.
    """

    kind = "connectivity"


class DataError(TelemetryError):
    """A raw payload broke one of the validation rules."""

    kind = "data"

    def __init__(self, message, rule=None, field=None, value=None):
        super().__init__(message)
        self.rule = rule
        self.field = field
        self.value = value


class ComputationError(TelemetryError):
    """Derived metrics came out non-finite or otherwise invalid."""

    kind = "computation"


# Dummy custom error for unit test purposes.
# The amdsmi library cannot be imported unless the AMD SMI library is installed,
# making unit testing difficult. This custom exception is raised to
# simulate amdsmi.AmdSmiException without requiring the actual library.

class DummyAmdSmiException(Exception):
    pass
