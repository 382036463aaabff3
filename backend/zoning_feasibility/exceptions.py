from __future__ import annotations


class InputValidationError(ValueError):
    """Request rejected before any report is created (empty address, wrong count)."""


class LocationResolutionError(ValueError):
    """An address could not be resolved to a tax lot."""


class ParcelDataError(ValueError):
    """Parcel attributes could not be fetched for a BBL."""


class TransitZoneError(ValueError):
    """The transit zone service returned an error response."""


class FloodZoneError(ValueError):
    """The FEMA flood hazard service returned an error response."""


class DependencyMissingError(RuntimeError):
    """A stage's input is unavailable because an upstream stage failed."""


class ReportNotFoundError(LookupError):
    pass
