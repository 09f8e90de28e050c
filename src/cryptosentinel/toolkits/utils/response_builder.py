"""Response Builder Utilities
===========================

Standardized result envelopes for every source adapter.

Each adapter returns a dictionary with the same core shape,
``{success, data, error, source_tag}``, plus informational fields (message,
timestamps, toolkit identity, ``data_source``). ``SourceResult`` is the typed
view the aggregator validates these dictionaries against.
"""

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ...exceptions import (
    ConfigurationError,
    RateLimitPersistsError,
    StructuralUpstreamError,
    UpstreamError,
)

__all__ = ["ResponseBuilder", "SourceResult"]


class SourceResult(BaseModel):
    """Uniform adapter envelope. Extra keys are kept as-is."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    source_tag: str = "unknown"

    class Config:
        extra = "allow"

    @classmethod
    def failed(cls, source_tag: str, error: str = "Analysis failed") -> "SourceResult":
        return cls(success=False, data=None, error=error, source_tag=source_tag)


class ResponseBuilder:
    """Stateful utility class for building standardized adapter responses.

    Automatically injects toolkit information (including the ``source_tag``)
    into all responses when initialized with toolkit context.
    """

    def __init__(self, toolkit_info: Optional[Dict[str, Any]] = None, source_tag: str = "unknown"):
        """Initialize ResponseBuilder with toolkit information.

        Args:
            toolkit_info: Dictionary containing toolkit identification info
                         (toolkit_name, toolkit_category, toolkit_type, toolkit_icon)
            source_tag: Tag identifying the upstream capability in envelopes
        """
        self.toolkit_info = toolkit_info or {}
        self.source_tag = source_tag

    def success_response(
        self,
        data: Any = None,
        message: str = "Operation completed successfully",
        **additional_fields
    ) -> Dict[str, Any]:
        """Create a success envelope.

        Args:
            data: Response data payload
            message: Success message
            **additional_fields: Additional top-level fields (e.g. ``data_source``)

        Returns:
            dict: ``{success: True, data, error: None, source_tag, ...}``
        """
        response = {
            "success": True,
            "data": data,
            "error": None,
            "source_tag": self.source_tag,
            "message": message,
            "fetched_at": int(time.time())
        }
        response.update(self.toolkit_info)
        response.update(additional_fields)
        return response

    def error_response(
        self,
        message: str,
        error_type: str = "unknown_error",
        details: Optional[Dict[str, Any]] = None,
        data: Any = None,
        **additional_fields
    ) -> Dict[str, Any]:
        """Create a failure envelope.

        Args:
            message: Human-readable error message (also stored under ``error``)
            error_type: Error classification (e.g., "configuration_error", "api_error")
            details: Additional error details
            data: Partial payload preserved on degraded failures
            **additional_fields: Additional fields to include in response

        Returns:
            dict: ``{success: False, data, error, source_tag, error_type, ...}``

        Example:
            >>> builder.error_response(
            ...     message="HELIUS_API_KEY is required for this operation",
            ...     error_type="configuration_error",
            ... )
            {
                "success": False,
                "data": None,
                "error": "HELIUS_API_KEY is required for this operation",
                "source_tag": "token_holders",
                "message": "HELIUS_API_KEY is required for this operation",
                "error_type": "configuration_error",
                "timestamp": 1640995200
            }
        """
        response = {
            "success": False,
            "data": data,
            "error": message,
            "source_tag": self.source_tag,
            "message": message,
            "error_type": error_type,
            "timestamp": int(time.time())
        }

        if details:
            response["details"] = details

        response.update(self.toolkit_info)

        # Explicit parameters win over same-named kwargs
        reserved = ["message", "error", "error_type", "details", "success", "timestamp", "data", "source_tag"]
        safe_additional_fields = {
            k: v for k, v in additional_fields.items()
            if k not in reserved + list(self.toolkit_info.keys())
        }
        response.update(safe_additional_fields)

        return response

    def validation_error_response(
        self,
        field_name: str,
        field_value: Any,
        validation_errors: list,
        **additional_fields
    ) -> Dict[str, Any]:
        """Create a standardized validation error response."""
        return self.error_response(
            message=f"Validation failed for {field_name}: {', '.join(validation_errors)}",
            error_type="validation_error",
            details={
                "field": field_name,
                "value": field_value,
                "errors": validation_errors
            },
            **additional_fields
        )

    def api_error_response(
        self,
        api_endpoint: str,
        http_status: Optional[int] = None,
        api_message: Optional[str] = None,
        **additional_fields
    ) -> Dict[str, Any]:
        """Create a standardized API error response.

        Args:
            api_endpoint: API endpoint that failed
            http_status: HTTP status code received
            api_message: Original API error message
            **additional_fields: Additional fields to include

        Returns:
            dict: Standardized API error response
        """
        message = f"API request failed for {api_endpoint}"
        if http_status:
            message += f" (HTTP {http_status})"
        if api_message:
            message += f": {api_message}"

        details = {"endpoint": api_endpoint}
        if http_status:
            details["http_status"] = http_status
        if api_message:
            details["api_message"] = api_message

        return self.error_response(
            message=message,
            error_type="api_error",
            details=details,
            **additional_fields
        )

    def exception_response(self, api_endpoint: str, error: Exception, **additional_fields) -> Dict[str, Any]:
        """Convert an exception caught at an adapter boundary into an envelope.

        Configuration and schema failures keep their own error types so callers
        can tell "not configured" apart from "upstream is down".
        """
        if isinstance(error, ConfigurationError):
            return self.error_response(error.message, error_type="configuration_error", **additional_fields)
        if isinstance(error, StructuralUpstreamError):
            return self.error_response(
                f"Unexpected response from {api_endpoint}: {error.message}",
                error_type="structural_error",
                **additional_fields
            )
        if isinstance(error, RateLimitPersistsError):
            return self.error_response(error.message, error_type="rate_limit_error", **additional_fields)

        status = error.status_code if isinstance(error, UpstreamError) else None
        return self.api_error_response(
            api_endpoint=api_endpoint,
            http_status=status,
            api_message=str(error),
            **additional_fields
        )
