"""Error taxonomy for the radvol core.

Every failure the core signals is one of the classes below. Core functions
raise them with enough context (scan elevation, parameter names, shapes)
for the caller to diagnose; retry and fallback policy belongs to the caller.
"""


class RadvolError(Exception):
    """Base class for all errors raised by the radvol core."""
    pass


class FormatError(RadvolError):
    """Input is missing, unparseable, corrupt or in an unsupported format."""
    pass


class NotFoundError(RadvolError, LookupError):
    """A requested elevation angle or parameter is absent."""
    pass


class GeometryMismatchError(RadvolError, ValueError):
    """Parameter arrays with different (rays, bins) shapes were combined."""
    pass


class InvalidExtentError(RadvolError, ValueError):
    """Projection extent or resolution is not a positive finite number."""
    pass


class ClassificationError(RadvolError):
    """An external classifier failed, timed out, or returned malformed output.

    Callers typically catch this and continue with unclassified data.
    """
    pass


class ContractViolation(RuntimeError):
    """Raised when a pipeline stage does not deliver what it promised.

    This indicates a bug in pipeline logic, not bad user input.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic)
    - RadvolError: Data errors the caller may recover from
    - ContractViolation: Pipeline bug (programmer error)
    """
    pass
