"""
Akamai MCP Server - Bulk Property Manager and Edge DNS operations
"""

from fastmcp import FastMCP

from .bulk import BulkExecutor, OperationStore, OperationTracker
from .config import ConfigManager
from .customers import CustomerManager
from .dns import DNSBulkManager
from .logging_config import setup_logging
from .properties import BulkPropertyManager
from .tools import register_all_tools

logger = setup_logging()

mcp = FastMCP("akamai-mcp")

logger.info("Initializing Akamai MCP Server...")

try:
    config_manager = ConfigManager()
    customer_manager = CustomerManager(config_manager)
    settings = config_manager.bulk

    # One store and tracker shared by every handler so status queries see
    # operations of all kinds
    operation_store = OperationStore(
        max_operations=settings.max_operations,
        max_age_seconds=settings.operation_ttl_seconds,
    )
    tracker = OperationTracker(operation_store)
    executor = BulkExecutor()
    property_manager = BulkPropertyManager(tracker, executor, settings)
    dns_manager = DNSBulkManager(tracker, executor)
    logger.info("All managers initialized successfully")

    managers = {
        "config_manager": config_manager,
        "customer_manager": customer_manager,
        "tracker": tracker,
        "property_manager": property_manager,
        "dns_manager": dns_manager,
    }

    register_all_tools(mcp, managers)
    logger.info("All tools registered successfully")

except Exception as e:
    logger.error(f"Error initializing Akamai MCP Server: {e}")
    raise


from .tools.bulk import (
    batch_create_versions,
    bulk_activate_properties,
    bulk_clone_properties,
    bulk_manage_hostnames,
    bulk_update_property_rules,
    get_bulk_operation_status,
)
from .tools.dns import bulk_import_dns_records

__all__ = [
    "batch_create_versions",
    "bulk_activate_properties",
    "bulk_clone_properties",
    "bulk_import_dns_records",
    "bulk_manage_hostnames",
    "bulk_update_property_rules",
    "get_bulk_operation_status",
    "mcp",
]

# Main entry point for running the server
if __name__ == "__main__":
    mcp.run()
