"""
Exceptions raised by the density and interpolation routines.

All errors derive from GeodensityError, which is a ValueError so callers
already guarding loader and join code with ``except ValueError`` keep
working. Every raised error aborts the whole computation.
"""

from typing import List, Sequence


class GeodensityError(ValueError):
    """Base class for all geodensity errors."""


class InsufficientPointsError(GeodensityError):
    """Raised when fewer than two points are supplied.

    A tessellation or interpolation surface is undefined for a single
    generating point.
    """

    def __init__(self, count: int, minimum: int = 2):
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"At least {minimum} points are required, got {count}"
        )


class CoordinateSystemMismatchError(GeodensityError):
    """Raised when inputs are not in the same coordinate reference system.

    Reprojection is the caller's job (see FileDataSource target_crs).
    """


class DatasetReadError(GeodensityError):
    """Raised when a data file exists but cannot be read or projected."""

    def __init__(self, path: str, reason: Exception):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read dataset {path}: {reason}")


class DegenerateInputError(GeodensityError):
    """Raised when two or more input points share identical coordinates.

    Attributes:
        duplicates: Groups of point positions sharing one coordinate pair
    """

    def __init__(self, duplicates: Sequence[Sequence[int]]):
        self.duplicates: List[List[int]] = [list(g) for g in duplicates]
        preview = self.duplicates[:5]
        more = "" if len(self.duplicates) <= 5 else " ..."
        super().__init__(
            f"{len(self.duplicates)} group(s) of coincident points "
            f"(positions {preview}{more}). Deduplicate upstream or pass "
            "deduplicate=True."
        )
