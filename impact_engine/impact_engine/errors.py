"""Exception hierarchy shared by the impact engine and the CLI.

Only :class:`ConfigurationError` and :class:`CatalogUnavailableError` abort a
run.  Everything else is recovered close to where it is raised and degrades
the report to "no data found" for the affected item.
"""

from __future__ import annotations


class ImpactAnalysisError(Exception):
    """Base class for all impact analysis errors."""


class ConfigurationError(ImpactAnalysisError):
    """Raised when a required credential or URL is missing or invalid.

    Attributes
    ----------
    missing:
        Names of the settings that failed validation.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing or invalid configuration: {', '.join(missing)}")


class CatalogUnavailableError(ImpactAnalysisError):
    """Raised when the catalog service cannot be reached at startup."""


class ColumnParseError(ImpactAnalysisError):
    """Raised when a model definition cannot be parsed for column extraction."""
