# prospect_pipeline/errors.py
from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class TransientProviderError(PipelineError):
    """Provider answered 429/5xx or the call timed out; safe to retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FatalProviderError(PipelineError):
    """Provider rejected the call (bad credentials, bad request). Never retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreError(PipelineError):
    """Unexpected persistence failure or an illegal status transition."""


class ReentrancyRejection(PipelineError):
    """A run was requested while another run of the same worker is active."""


class ProspectNotFound(PipelineError):
    def __init__(self, prospect_id: int) -> None:
        super().__init__(f"Prospect not found: {prospect_id}")
        self.prospect_id = prospect_id


class QuarantineRecordNotFound(PipelineError):
    def __init__(self, quarantine_id: int) -> None:
        super().__init__(f"Quarantine record not found: {quarantine_id}")
        self.quarantine_id = quarantine_id
