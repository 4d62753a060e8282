"""Exception types for the export run.

Only `ComplianceConnectionError` is allowed to end a run. Query and
enrichment failures are turned into empty collections by the fetch stage,
and writer failures are contained by the exporter.
"""


class PurviewExportError(Exception):
    """Base class for all export errors."""


class ConfigError(PurviewExportError):
    """Required configuration is missing or invalid."""


class ComplianceConnectionError(PurviewExportError):
    """The compliance session could not be established. Fatal."""


class QueryError(PurviewExportError):
    """A single cmdlet query failed."""

    def __init__(self, command: str, message: str):
        super().__init__(f"{command} failed: {message}")
        self.command = command
        self.message = message


class EnrichmentError(PurviewExportError):
    """The optional Graph enrichment call failed."""


class WriterUnavailableError(PurviewExportError):
    """A report writer's environment capability is not available."""
