"""Exception types raised by upgrade_gate.

Input errors subclass ValueError so callers that only care about
"bad argument" can catch them without importing this module.
"""


class UpgradeGateError(Exception):
    """Base class for all upgrade_gate errors."""


class InvalidVersionError(UpgradeGateError, ValueError):
    """A version string could not be parsed."""


class InvalidDurationError(UpgradeGateError, ValueError):
    """A duration string could not be parsed."""


class UnsupportedFormatError(UpgradeGateError, ValueError):
    """A report output format is not text, markdown or html."""


class AssessmentError(UpgradeGateError):
    """The precheck could not be executed (as opposed to finding risks)."""


class CatalogLoadError(AssessmentError):
    """The embedded upgrade catalog could not be read or validated."""


class AssessmentCancelled(AssessmentError):
    """The precheck was cancelled before all rules completed."""


class ReportOutputError(UpgradeGateError):
    """A rendered report could not be written to its destination."""


class ConfirmationError(UpgradeGateError):
    """Operator input could not be read."""


class MetadataError(UpgradeGateError):
    """Cluster metadata is missing or unreadable."""


class UpgradeError(UpgradeGateError):
    """The upgrade action failed."""
