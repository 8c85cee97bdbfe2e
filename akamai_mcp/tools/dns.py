"""
Edge DNS bulk tools for Akamai MCP
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..reports import format_dns_import_report
from .base import handle_tool_errors

# Module-level managers dictionary for dependency injection
_managers: Dict[str, Any] = {}


@handle_tool_errors
async def bulk_import_dns_records(
    zone: str = Field(..., description="Zone to import into"),
    records: List[Dict[str, Any]] = Field(
        ..., description="Record sets: {name, type, ttl, rdata: [...]}"
    ),
    skip_validation: bool = Field(False, description="Skip record data checks"),
    comment: Optional[str] = Field(None, description="Changelist submit comment"),
    force: bool = Field(
        False, description="Discard an existing changelist for the zone"
    ),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Import many record sets into an Edge DNS zone through one changelist"""
    client = _managers["customer_manager"].get_client(customer)
    operation = await _managers["dns_manager"].import_records(
        client,
        zone=zone,
        records=records,
        skip_validation=skip_validation,
        comment=comment,
        force=force,
        customer=customer,
    )
    return format_dns_import_report(operation)


def register_dns_tools(mcp, managers):
    """Register DNS tools with the MCP server"""
    _managers.update(managers)

    mcp.tool(bulk_import_dns_records)


bulk_import_dns_records.fn = bulk_import_dns_records


__all__ = ["bulk_import_dns_records", "register_dns_tools"]
