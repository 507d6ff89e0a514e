"""Pipeline error taxonomy. Each error carries a meta dict for diagnostics."""
from __future__ import annotations


class PipelineError(Exception):
    """Base error for the playlist / marketplace pipeline."""

    status_code = 500

    def __init__(self, message: str, meta: dict | None = None):
        super().__init__(message)
        self.meta = meta or {}


class InvalidInputError(PipelineError):
    """Malformed playlist reference or missing required fields."""

    status_code = 422


class AuthorizationMismatchError(PipelineError):
    """Claimed owner does not match the authenticated identity."""

    status_code = 403


class UpstreamUnavailableError(PipelineError):
    """An upstream service failed after exhausting its retry budget."""

    status_code = 502


class SourceEmptyError(PipelineError):
    """The video listing returned zero items."""

    status_code = 404


class MissingCredentialsError(PipelineError):
    """No API key configured for the user nor in the environment."""

    status_code = 412


class PartialWriteFailureError(PipelineError):
    """Some records of a batch could not be written even one by one."""

    status_code = 500

    def __init__(self, message: str, written: int, failed: int, meta: dict | None = None):
        super().__init__(message, meta={"written": written, "failed": failed, **(meta or {})})
        self.written = written
        self.failed = failed
