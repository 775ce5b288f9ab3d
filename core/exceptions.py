#!/usr/bin/env python3
"""
Custom exceptions for the screening pipeline.

Callers distinguish three families:
- client errors (ValidationError, NotFoundError, ConflictError) surfaced as-is
- provider errors (TransientProviderError and its CircuitOpenError variant)
  which are retried by the embedding client and by the job queue
- pipeline errors recorded on the ScreeningResult
"""
from typing import Optional


class ScreeningException(Exception):
    """Base exception for screening service errors."""
    pass


class ValidationError(ScreeningException):
    """Raised on invalid input (ids, priority, thresholds, missing resume)."""
    pass


class NotFoundError(ScreeningException):
    """Raised when an application, job posting, screening or skill is missing."""
    pass


class ConflictError(ScreeningException):
    """Raised when an operation conflicts with current state (duplicates, completed screenings)."""
    pass


class ProviderError(ScreeningException):
    """Non-retryable failure from an external model provider."""
    pass


class TransientProviderError(ProviderError):
    """Retryable provider failure: network blip, rate limit, 5xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(TransientProviderError):
    """Raised without calling the provider while the circuit breaker is open."""

    def __init__(self, message: str = "Circuit breaker is open", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class ParseError(ScreeningException):
    """Raised when a model response cannot be parsed into the expected structure."""
    pass


class PipelineFailure(ScreeningException):
    """Raised when a pipeline stage fails and the failure is recorded on the result."""
    pass


class UnsupportedFormatError(ScreeningException):
    """Raised when a document is not a supported format (PDF only)."""
    pass


class ExtractionFailedError(ScreeningException):
    """Raised when a supported document cannot be parsed."""
    pass


class InvalidResumeLocationError(ScreeningException):
    """Raised when a stored resume URL cannot be mapped to a local file."""
    pass
