"""
Unit tests for base tool utilities
"""

import pytest

from akamai_mcp.exceptions import AkamaiAPIError, AkamaiMCPError, OperationSetupError
from akamai_mcp.tools.base import format_error_text, handle_tool_errors


class TestHandleToolErrors:
    """Test error handling decorator"""

    @pytest.mark.asyncio
    async def test_success_passthrough(self):
        @handle_tool_errors
        async def working_tool(name):
            return f"# Report for {name}"

        assert await working_tool(name="x") == "# Report for x"

    @pytest.mark.asyncio
    async def test_akamai_error_sanitization(self):
        """Test that AkamaiMCPError messages are sanitized"""

        @handle_tool_errors
        async def tool_with_error(**kwargs):
            raise AkamaiMCPError(
                "Bad credentials client_secret=abc123+/= in .edgerc", error_code="AUTH"
            )

        result = await tool_with_error()

        assert result.startswith("Error in tool_with_error: Bad credentials")
        assert "abc123" not in result
        assert "client_secret=***" in result
        assert "**Error Code:** AUTH" in result
        assert "**Request ID:** " in result
        assert "**Operation ID:**" not in result

    @pytest.mark.asyncio
    async def test_api_error_text(self):
        @handle_tool_errors
        async def failing_tool():
            raise AkamaiAPIError(403, title="Forbidden", detail="No access to group")

        result = await failing_tool()

        assert "Error in failing_tool: Akamai API Error (403): Forbidden" in result
        assert "No access to group" in result
        assert "**Error Code:** AkamaiAPIError" in result

    @pytest.mark.asyncio
    async def test_operation_id_included(self):
        """Test setup failures carry the operation ID"""

        @handle_tool_errors
        async def bulk_tool():
            raise OperationSetupError(
                "bulk activation", "no properties", operation_id="bulk-activate-1-a"
            )

        result = await bulk_tool()

        assert "**Operation ID:** bulk-activate-1-a" in result

    @pytest.mark.asyncio
    async def test_generic_exception_sanitization(self):
        """Test unexpected exceptions are sanitized and reported as internal"""

        @handle_tool_errors
        async def broken_tool():
            raise RuntimeError(
                "Connection failed Authorization: EG1-HMAC-SHA256 client_token=akab-1"
            )

        result = await broken_tool()

        assert result.startswith("Error in broken_tool: RuntimeError: Connection failed")
        assert "akab-1" not in result
        assert "**Error Code:** INTERNAL_ERROR" in result

    @pytest.mark.asyncio
    async def test_request_id_unique(self):
        @handle_tool_errors
        async def failing_tool():
            raise AkamaiMCPError("boom")

        first = await failing_tool()
        second = await failing_tool()

        assert first.split("**Request ID:** ")[1] != second.split("**Request ID:** ")[1]


class TestFormatErrorText:
    def test_layout(self):
        text = format_error_text("bulk_tool", "it broke", "CODE", "req-1", operation_id="op-1")
        assert text == (
            "Error in bulk_tool: it broke\n\n"
            "**Operation ID:** op-1\n"
            "**Error Code:** CODE\n"
            "**Request ID:** req-1"
        )
