"""
Exception hierarchy for solidFEM.

All errors are raised at the point of detection and propagate to the
caller unmodified. None of them is recoverable inside the library.
"""


class SolidFEMError(Exception):
    """Base class for all solidFEM errors."""


class ConfigurationError(SolidFEMError, ValueError):
    """
    Invalid problem configuration.

    Raised for invalid material constants, duplicate region registration,
    or a mismatch between supplied materials and regions present in the mesh.
    """


class UnmappedRegionError(SolidFEMError, KeyError):
    """An element references a region with no registered material."""

    def __init__(self, region_id, known_regions=()):
        self.region_id = region_id
        self.known_regions = tuple(known_regions)
        super().__init__(
            f"Unmapped region {region_id!r}; registered regions: {list(self.known_regions)}")

    def __str__(self):
        return self.args[0]


class DimensionMismatchError(SolidFEMError, ValueError):
    """Array sizes inconsistent with the declared spatial dimension."""
