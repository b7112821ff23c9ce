"""Error taxonomy.

Two families of errors exist:

- ``ContractViolation`` (RuntimeError): a stage did not produce the
  invariants it promised. This is a bug in the loader or in amrproj.
- ``ProjectionError`` (ValueError): the caller asked for something that
  cannot be projected. Raised before any rasterization starts, and
  carries enough context to fix the call without re-running it.
"""


class ContractViolation(RuntimeError):
    """Raised when a stage contract is violated.

    Key distinction:
    - ProjectionError: caller error (bad range, unknown variable, ...)
    - ContractViolation: broken cell table or internal bug
    """
    pass


class ProjectionError(ValueError):
    """Base class for caller errors detected before rasterization."""
    pass


class InvalidRangeError(ProjectionError):
    """Resolved selection bounds are inverted, non-finite or outside the box."""

    def __init__(self, message: str, axis: str = None, bounds: tuple = None):
        super().__init__(message)
        self.axis = axis
        self.bounds = bounds


class MissingDensityFieldError(ProjectionError):
    """Mass weighting requested on a cell table without a density column."""

    def __init__(self, message: str, field: str = None, available: tuple = ()):
        super().__init__(message)
        self.field = field
        self.available = tuple(available)


class MaskLengthMismatchError(ProjectionError):
    """Mask length differs from the number of rows it filters."""

    def __init__(self, message: str, expected: int = None, actual: int = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class UnknownVariableError(ProjectionError):
    """Variable name not recognized by the evaluator."""

    def __init__(self, message: str, variable: str = None):
        super().__init__(message)
        self.variable = variable


class UnknownUnitError(ProjectionError):
    """Unit name missing from the simulation's scale table."""

    def __init__(self, message: str, unit: str = None):
        super().__init__(message)
        self.unit = unit


class UnsupportedDirectionError(ProjectionError):
    """Projection direction is not one of x, y, z."""

    def __init__(self, message: str, direction: str = None):
        super().__init__(message)
        self.direction = direction
