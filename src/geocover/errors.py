"""
Error types raised by the cell indexing and covering engines.
"""


class GeoCoverError(Exception):
    """Base class for all geocover errors."""


class InvalidInputError(GeoCoverError, ValueError):
    """Caller supplied an out-of-range precision, a malformed cell token or a bad cap."""


class GridDefectError(GeoCoverError, RuntimeError):
    """Lookup tables or index arithmetic produced an impossible state."""


class CoveringCancelledError(GeoCoverError):
    """A covering search observed its cancellation signal between rings."""
