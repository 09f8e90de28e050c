"""
Custom exceptions for CryptoSentinel.

This module defines the error taxonomy shared by the retrier, the paginated
collector, the source adapters and the research bot. Adapters convert every
one of these into a result envelope at their boundary; only the retrier and
collector raise them past their own boundary.
"""

from typing import Optional, Any, Dict


class SentinelError(Exception):
    """
    Base exception for all CryptoSentinel errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        context: Additional context information
    """

    def __init__(self,
                 message: str,
                 error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None
        }

# Configuration Related Errors

class ConfigurationError(SentinelError):
    """Raised when there's an issue with configuration."""
    pass

class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration (usually a credential) is missing."""

    def __init__(self, missing_key: str, section: Optional[str] = None):
        message = f"{missing_key} is required for this operation"
        if section:
            message = f"{missing_key} is required for this operation (section '{section}')"

        super().__init__(
            message=message,
            context={"missing_key": missing_key, "section": section}
        )
        self.missing_key = missing_key

# Upstream Related Errors

class UpstreamError(SentinelError):
    """Base class for failures reported by (or while talking to) an upstream service."""

    def __init__(self,
                 message: str,
                 source: Optional[str] = None,
                 status_code: Optional[int] = None,
                 response_text: Optional[str] = None,
                 cause: Optional[Exception] = None):
        super().__init__(
            message=message,
            context={"source": source, "status_code": status_code},
            cause=cause
        )
        self.source = source
        self.status_code = status_code
        self.response_text = response_text

class StructuralUpstreamError(UpstreamError):
    """Raised when an upstream response does not match its expected schema.

    Never retried: a schema mismatch does not heal by asking again.
    """
    pass

class RateLimitPersistsError(UpstreamError):
    """Raised when retry attempts run out while the upstream is still rate limiting."""

    def __init__(self, description: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(
            message=f"Rate limit persists for {description} after {attempts} attempts",
            status_code=429,
            cause=last_error
        )
        self.attempts = attempts
        self.last_error = last_error

# Collection Related Errors

class CollectionAbortedError(SentinelError):
    """Raised when a paginated collection fails part-way through.

    Carries whatever was accumulated before the failing page so callers can
    degrade instead of discarding prior work.
    """

    def __init__(self, page_number: int, partial_result: Any, cause: Optional[Exception] = None):
        super().__init__(
            message=f"Collection aborted at page {page_number}: {cause}",
            context={"page_number": page_number},
            cause=cause
        )
        self.page_number = page_number
        self.partial_result = partial_result

# LLM Related Errors

class LLMCompletionError(SentinelError):
    """Raised when the completion backend fails to produce text."""

    def __init__(self, model: str, cause: Optional[Exception] = None):
        super().__init__(
            message=f"Completion failed for model '{model}': {cause}",
            context={"model": model},
            cause=cause
        )

# Session Related Errors

class SessionNotFoundError(SentinelError):
    """Raised when a follow-up operation references an unknown session."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session '{session_id}' not found",
            context={"session_id": session_id}
        )

# Utility Functions

def handle_exception(
    exception: Exception,
    source: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> SentinelError:
    """
    Convert a generic exception to an appropriate SentinelError.

    Args:
        exception: The original exception
        source: Optional name of the adapter or upstream involved
        context: Additional context information

    Returns:
        Appropriate SentinelError subclass
    """
    context = context or {}
    if source:
        context["source"] = source

    if isinstance(exception, SentinelError):
        exception.context.update(context)
        return exception

    if isinstance(exception, (ConnectionError, OSError, TimeoutError)):
        return UpstreamError(
            message=f"Connection error: {exception}",
            source=source,
            cause=exception
        )

    if isinstance(exception, (KeyError, TypeError, ValueError)):
        return StructuralUpstreamError(
            message=f"Unexpected data: {exception}",
            source=source,
            cause=exception
        )

    return SentinelError(
        message=str(exception) or exception.__class__.__name__,
        context=context,
        cause=exception
    )
