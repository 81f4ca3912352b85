"""
Domain-specific exception hierarchy for the certificate pipeline.

Every error raised by certmint derives from PipelineError.  The
orchestrator wraps anything else in StageExecutionError; stages and clients raise
the narrow subclasses with the stage name and record ID attached so the
log line says which record failed.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        stage_name: str | None = None,
        record_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.stage_name = stage_name
        self.record_id = record_id
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(PipelineError):
    """Required configuration is missing or invalid.  Fatal at startup."""

    @property
    def missing(self) -> list[str]:
        return self.details.get("missing", [])


class RecordDataError(PipelineError):
    """A record lacks a field the stage needs."""

    def __init__(self, message: str, *, missing_fields: list[str] | None = None, **kwargs) -> None:
        self.missing_fields = missing_fields or []
        super().__init__(message, **kwargs)


class StageExecutionError(PipelineError):
    """A stage failed for a reason not covered by a more specific error."""
    pass


class ExternalServiceError(PipelineError):
    """A call to a third-party service failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)


class RecordStoreError(ExternalServiceError):
    """Reading or writing the record store failed."""
    pass


class PinningError(ExternalServiceError):
    """Uploading to the content-addressed storage service failed."""
    pass


class ChainError(ExternalServiceError):
    """A blockchain operation failed or the asset could not be found."""
    pass


class NotificationError(ExternalServiceError):
    """Sending the recipient email failed."""
    pass
