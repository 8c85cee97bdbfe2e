"""
Base utilities for MCP tools
"""

import uuid
from functools import wraps
from typing import Optional

from ..exceptions import AkamaiMCPError, ErrorSanitizer
from ..logging_config import setup_logging

logger = setup_logging()


def handle_tool_errors(func):
    """Decorator turning exceptions raised by a tool into error text"""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        request_id = str(uuid.uuid4())

        try:
            return await func(*args, **kwargs)
        except AkamaiMCPError as e:
            e.request_id = request_id
            message = ErrorSanitizer.sanitize_message(e.message)
            logger.error(f"Request {request_id} failed: {e.error_code}: {message}")
            return format_error_text(
                func.__name__,
                message,
                e.error_code,
                request_id,
                operation_id=e.details.get("operation_id"),
            )
        except Exception as e:
            message = ErrorSanitizer.sanitize_message(str(e))
            logger.error(
                f"Unexpected error in request {request_id}: {type(e).__name__}: {message}"
            )
            return format_error_text(
                func.__name__,
                f"{type(e).__name__}: {message}",
                "INTERNAL_ERROR",
                request_id,
            )

    return wrapper


def format_error_text(
    tool: str,
    message: str,
    error_code: str,
    request_id: str,
    operation_id: Optional[str] = None,
) -> str:
    """Standard error text returned by tools"""
    text = f"Error in {tool}: {message}\n\n"
    if operation_id:
        text += f"**Operation ID:** {operation_id}\n"
    text += f"**Error Code:** {error_code}\n**Request ID:** {request_id}"
    return text
