"""
Akamai MCP Exception Hierarchy

Every error raised inside the server derives from :class:`AkamaiMCPError`,
which carries an error code, structured details and a request ID. Remote
failures keep their HTTP status, bulk failures keep the operation they
belong to, and :class:`ErrorSanitizer` strips EdgeGrid credentials from any
message before it reaches a tool result or an item record.
"""

import logging
import re
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# Base Exception
class AkamaiMCPError(Exception):
    """
    Base exception for all Akamai MCP errors.

    ``error_code`` defaults to the class name; ``request_id`` is replaced by
    the tool layer so that log lines and error text share one ID.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.request_id = request_id or str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.traceback = traceback.format_exc()

    def __str__(self):
        return f"{self.error_code}: {self.message} (request_id={self.request_id})"


# Configuration Errors
class ConfigurationError(AkamaiMCPError):
    """Raised when configuration or credentials cannot be used"""

    pass


class EdgeRcError(ConfigurationError):
    """Raised when the .edgerc credentials file is missing or incomplete"""

    def __init__(self, edgerc_path: str, reason: str, **kwargs):
        super().__init__(
            f"EdgeGrid configuration error in {edgerc_path}: {reason}",
            error_code="EDGERC_ERROR",
            details={"edgerc_path": edgerc_path, "reason": reason},
            **kwargs,
        )


# Remote API Errors
class AkamaiAPIError(AkamaiMCPError):
    """Raised when the Akamai API answers with an HTTP error status"""

    def __init__(
        self,
        status_code: int,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ):
        message = f"Akamai API Error ({status_code}): {title or 'Request failed'}"
        if detail:
            message += f"\n{detail}"
        if errors:
            message += "\n\nErrors:"
            for err in errors:
                message += f"\n- {err.get('title', 'Error')}: {err.get('detail', '')}"

        details = kwargs.pop("details", None) or {}
        details.update({"status_code": status_code, "title": title})
        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.errors = errors or []


class ResourceNotFoundError(AkamaiAPIError):
    """Raised when a property, version or zone does not exist"""

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        super().__init__(
            404,
            title=f"{resource_type} not found",
            detail=f"{resource_type} '{resource_id}' was not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
            **kwargs,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# Bulk Operation Errors
class BulkOperationError(AkamaiMCPError):
    """Base class for bulk operation errors"""

    pass


class OperationSetupError(BulkOperationError):
    """Raised when a bulk operation fails before any item is dispatched"""

    def __init__(
        self,
        operation: str,
        reason: str,
        operation_id: Optional[str] = None,
        **kwargs,
    ):
        details = {"operation": operation, "reason": reason}
        if operation_id:
            details["operation_id"] = operation_id

        super().__init__(
            f"Failed to start {operation}: {reason}",
            error_code="OPERATION_SETUP_FAILED",
            details=details,
            **kwargs,
        )
        self.operation = operation
        self.reason = reason
        self.operation_id = operation_id


class PatchError(BulkOperationError):
    """Raised when a rule patch cannot be applied"""

    def __init__(self, op: str, path: str, reason: str, **kwargs):
        super().__init__(
            f"Cannot apply '{op}' at '{path}': {reason}",
            error_code="PATCH_FAILED",
            details={"op": op, "path": path, "reason": reason},
            **kwargs,
        )


class RuleValidationError(BulkOperationError):
    """Raised when a patched rule tree fails structural validation"""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"Invalid rule structure after patches: {reason}",
            error_code="INVALID_RULES",
            details={"reason": reason},
            **kwargs,
        )


# Validation Errors
class ValidationError(AkamaiMCPError):
    """Base class for validation errors"""

    pass


class InvalidNetworkError(ValidationError):
    """Raised when an activation network is not STAGING or PRODUCTION"""

    def __init__(self, network: Any, **kwargs):
        super().__init__(
            f"Invalid network: '{network}'. Must be STAGING or PRODUCTION",
            error_code="INVALID_NETWORK",
            details={"network": str(network)},
            **kwargs,
        )


class HostnameValidationError(ValidationError):
    """Raised when a hostname is malformed"""

    def __init__(self, hostname: str, **kwargs):
        super().__init__(
            f"Invalid hostname format: '{hostname}'",
            error_code="INVALID_HOSTNAME",
            details={"hostname": hostname},
            **kwargs,
        )


# Error Handling Utilities
class ErrorHandler:
    """Utility class for consistent error handling"""

    @staticmethod
    @contextmanager
    def error_context(
        logger: logging.Logger,
        operation: str,
        request_id: Optional[str] = None,
        raise_on_error: bool = False,
    ):
        """
        Log the start, end and failure of a block under one request ID.

        Akamai MCP errors keep their type; anything else is wrapped in an
        :class:`AkamaiMCPError` naming the operation. Errors are only
        propagated when ``raise_on_error`` is set.

        Usage:
            with ErrorHandler.error_context(logger, "create client", raise_on_error=True):
                client = AkamaiClient.from_edgerc(path, section)
        """
        request_id = request_id or str(uuid.uuid4())
        logger.debug(f"Starting {operation} (request_id={request_id})")

        try:
            yield request_id
            logger.debug(f"Completed {operation} (request_id={request_id})")

        except AkamaiMCPError as e:
            e.request_id = request_id
            logger.error(f"{operation} failed: {e}")
            if raise_on_error:
                raise

        except Exception as e:
            wrapped = AkamaiMCPError(
                message=f"{operation} failed: {str(e)}",
                details={
                    "operation": operation,
                    "original_error": str(e),
                    "original_type": type(e).__name__,
                },
                request_id=request_id,
            )
            logger.error(f"{wrapped}")
            if raise_on_error:
                raise wrapped from e


class ErrorSanitizer:
    """Redact credentials from messages shown to users"""

    # EdgeGrid credentials, signed headers and URL userinfo
    SENSITIVE_PATTERNS = [
        (r'client_secret\s*[=:]\s*["\']?[\w\-\.+/=]+["\']?', "client_secret=***"),
        (r'client_token\s*[=:]\s*["\']?[\w\-\.]+["\']?', "client_token=***"),
        (r'access_token\s*[=:]\s*["\']?[\w\-\.]+["\']?', "access_token=***"),
        (r'password\s*[=:]\s*["\']?[\w\-\.@#$%^&*!]+["\']?', "password=***"),
        (r'(?<![\w_])token\s*[=:]\s*["\']?[\w\-\.]+["\']?', "token=***"),
        (r"https?://[^:/\s]+:[^@\s]+@", "https://***:***@"),
        (r"Authorization:\s*[\w\-]+\s+[^\s]+", "Authorization: ***"),
        (r"Bearer\s+[\w\-\.=]+", "Bearer ***"),
        (r'api[_-]?key\s*[=:]\s*["\']?[\w\-\.]+["\']?', "api_key=***"),
        (r'(?<![\w_])secret\s*[=:]\s*["\']?[\w\-\.+/=]+["\']?', "secret=***"),
    ]

    @classmethod
    def sanitize_message(cls, message: str) -> str:
        sanitized = message
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized
