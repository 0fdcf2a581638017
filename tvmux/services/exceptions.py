"""
Pipeline error taxonomy.

Source-level errors (FetchError, ParseError, ValidationError) are caught at
the source boundary by the orchestrator. CacheWriteError fails the run.
"""


class PipelineError(Exception):
    """Base class for refresh pipeline errors."""


class FetchError(PipelineError):
    """Network failure, timeout, non-2xx status or oversized payload."""


class ParseError(PipelineError):
    """Malformed playlist or unexpected upstream shape."""


class ValidationError(PipelineError):
    """Empty or invalid required dataset from a source."""


class CacheWriteError(PipelineError):
    """One or more cache writes failed during publish."""

    def __init__(self, message: str, failed_keys: list[str] | None = None):
        super().__init__(message)
        self.failed_keys = failed_keys or []
