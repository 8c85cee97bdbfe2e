"""
Bulk property operation tools for Akamai MCP
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..logging_config import setup_logging
from ..reports import (
    format_activation_report,
    format_clone_report,
    format_hostname_report,
    format_operation_status,
    format_rule_update_report,
    format_version_report,
    operation_not_found,
)
from .base import handle_tool_errors

logger = setup_logging()

# Module-level managers dictionary for dependency injection
_managers: Dict[str, Any] = {}


def _client(customer: Optional[str]):
    return _managers["customer_manager"].get_client(customer)


@handle_tool_errors
async def bulk_clone_properties(
    source_property_id: str = Field(..., description="Property to clone"),
    target_names: List[str] = Field(..., description="Names of the new properties"),
    contract_id: str = Field(..., description="Contract for the new properties"),
    group_id: str = Field(..., description="Group for the new properties"),
    product_id: Optional[str] = Field(
        None, description="Product ID (defaults to the source property's product)"
    ),
    rule_format: Optional[str] = Field(
        None, description="Rule format (defaults to the source rule format)"
    ),
    activate_immediately: bool = Field(
        False, description="Activate version 1 of each clone right away"
    ),
    network: str = Field("STAGING", description="Network for immediate activation"),
    max_concurrency: Optional[int] = Field(
        None, description="Maximum clones in flight (default 5)"
    ),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Clone one property into many new properties in parallel"""
    operation = await _managers["property_manager"].clone_properties(
        _client(customer),
        source_property_id=source_property_id,
        target_names=target_names,
        contract_id=contract_id,
        group_id=group_id,
        product_id=product_id,
        rule_format=rule_format,
        activate_immediately=activate_immediately,
        network=network,
        max_concurrency=max_concurrency,
        customer=customer,
    )
    return format_clone_report(operation)


@handle_tool_errors
async def bulk_activate_properties(
    property_ids: List[str] = Field(..., description="Properties to activate"),
    network: str = Field(..., description="STAGING or PRODUCTION"),
    note: Optional[str] = Field(None, description="Activation note"),
    notify_emails: Optional[List[str]] = Field(
        None, description="Addresses notified by Akamai"
    ),
    acknowledge_all_warnings: bool = Field(
        False, description="Acknowledge all activation warnings"
    ),
    wait_for_completion: bool = Field(
        False, description="Poll each activation until it finishes"
    ),
    max_wait_time: Optional[int] = Field(
        None, description="Maximum wait per activation in ms (default 300000)"
    ),
    max_concurrency: Optional[int] = Field(
        None, description="Maximum activations in flight (default 10)"
    ),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Activate the latest version of many properties"""
    operation = await _managers["property_manager"].activate_properties(
        _client(customer),
        property_ids=property_ids,
        network=network,
        note=note,
        notify_emails=notify_emails,
        acknowledge_all_warnings=acknowledge_all_warnings,
        wait_for_completion=wait_for_completion,
        max_wait_time=max_wait_time,
        max_concurrency=max_concurrency,
        customer=customer,
    )
    return format_activation_report(operation)


@handle_tool_errors
async def bulk_update_property_rules(
    property_ids: List[str] = Field(..., description="Properties to update"),
    rule_patches: List[Dict[str, Any]] = Field(
        ...,
        description="JSON patch operations, e.g. "
        '{"op": "replace", "path": "/behaviors/0/options/hostname", "value": "o.example.com"}',
    ),
    create_new_version: bool = Field(
        False, description="Patch a new version instead of the latest one"
    ),
    validate_changes: bool = Field(
        False, description="Check the patched rule tree before saving"
    ),
    note: Optional[str] = Field(None, description="Version note"),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Apply rule patches to many properties with rollback on failure"""
    operation = await _managers["property_manager"].update_property_rules(
        _client(customer),
        property_ids=property_ids,
        rule_patches=rule_patches,
        create_new_version=create_new_version,
        validate_changes=validate_changes,
        note=note,
        customer=customer,
    )
    return format_rule_update_report(operation, rule_patches)


@handle_tool_errors
async def bulk_manage_hostnames(
    operations: List[Dict[str, Any]] = Field(
        ...,
        description="Per property: {property_id, action: add|remove, "
        "hostnames: [{hostname, edge_hostname?}]}",
    ),
    create_new_version: bool = Field(
        False, description="Change a new version instead of the latest one"
    ),
    validate_dns: bool = Field(True, description="Reject malformed hostnames"),
    note: Optional[str] = Field(None, description="Version note"),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Add or remove hostnames across many properties"""
    operation = await _managers["property_manager"].manage_hostnames(
        _client(customer),
        operations=operations,
        create_new_version=create_new_version,
        validate_dns=validate_dns,
        note=note,
        customer=customer,
    )
    return format_hostname_report(operation)


@handle_tool_errors
async def batch_create_versions(
    properties: List[Dict[str, Any]] = Field(
        ..., description="Per property: {property_id, base_version?, note?}"
    ),
    default_note: Optional[str] = Field(
        None, description="Note for versions without their own note"
    ),
    customer: Optional[str] = Field(None, description="Customer (.edgerc section)"),
) -> str:
    """Create a new version on each of many properties"""
    operation = await _managers["property_manager"].create_versions(
        _client(customer),
        properties=properties,
        default_note=default_note,
        customer=customer,
    )
    return format_version_report(operation)


@handle_tool_errors
async def get_bulk_operation_status(
    operation_id: str = Field(..., description="Operation ID returned by a bulk tool"),
    detailed: bool = Field(False, description="Include per-item status"),
) -> str:
    """Show progress and results of a bulk operation"""
    operation = _managers["tracker"].get_operation(operation_id)
    if operation is None:
        logger.info(f"Status requested for unknown operation {operation_id}")
        return operation_not_found(operation_id)
    return format_operation_status(operation, detailed=detailed)


def register_bulk_tools(mcp, managers):
    """Register bulk operation tools with the MCP server"""

    # Update module-level managers for dependency injection
    _managers.update(managers)

    mcp.tool(bulk_clone_properties)
    mcp.tool(bulk_activate_properties)
    mcp.tool(bulk_update_property_rules)
    mcp.tool(bulk_manage_hostnames)
    mcp.tool(batch_create_versions)
    mcp.tool(get_bulk_operation_status)


# Add .fn attribute to each function so tests can call the plain coroutine
bulk_clone_properties.fn = bulk_clone_properties
bulk_activate_properties.fn = bulk_activate_properties
bulk_update_property_rules.fn = bulk_update_property_rules
bulk_manage_hostnames.fn = bulk_manage_hostnames
batch_create_versions.fn = batch_create_versions
get_bulk_operation_status.fn = get_bulk_operation_status


__all__ = [
    "batch_create_versions",
    "bulk_activate_properties",
    "bulk_clone_properties",
    "bulk_manage_hostnames",
    "bulk_update_property_rules",
    "get_bulk_operation_status",
    "register_bulk_tools",
]
