"""
Exceptions for the conversation context manager.

Infrastructure errors (cache unavailable, cache I/O, malformed payloads) are
raised by the lower layers and absorbed by the context store; they are never
propagated to callers of the manager's public operations.
"""

from typing import Optional, Dict, Any


class ContextManagerError(Exception):
    """Base exception for all conversation context errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ContextManagerError):
    """Raised when there's an error in manager configuration."""
    pass


class ValidationError(ContextManagerError):
    """Raised when validation fails."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Validation failed for '{field}': {reason}",
            {
                "field": field,
                "value": value,
                "reason": reason
            }
        )


class CacheUnavailableError(ContextManagerError):
    """Raised when the durable cache cannot be constructed or reached."""

    def __init__(self, backend: str, reason: Optional[str] = None):
        message = f"Durable cache '{backend}' is unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message, {"backend": backend, "reason": reason})


class CacheOperationError(ContextManagerError):
    """Raised when a single durable cache command fails."""

    def __init__(self, operation: str, key: str, original_error: Optional[Exception] = None):
        super().__init__(
            f"Cache operation '{operation}' failed for key '{key}'",
            {
                "operation": operation,
                "key": key,
                "original_error": str(original_error) if original_error else None
            }
        )
        self.original_error = original_error


class ContextDeserializationError(ContextManagerError):
    """Raised when a stored context payload cannot be decoded."""

    def __init__(self, reason: str, session_id: Optional[str] = None):
        super().__init__(
            f"Could not deserialize conversation context: {reason}",
            {
                "reason": reason,
                "session_id": session_id
            }
        )
