"""
Configuration management for Akamai MCP
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .logging_config import setup_logging
from .models import Customer

logger = setup_logging()


class BulkSettings(BaseModel):
    """Tunables for bulk operations"""

    clone_concurrency: int = Field(5, ge=1, description="Parallel clone limit")
    activation_concurrency: int = Field(
        10, ge=1, description="Parallel activation limit"
    )
    activation_poll_interval: float = Field(
        5.0, gt=0, description="Seconds between activation status polls"
    )
    activation_max_wait_ms: int = Field(
        300000, ge=0, description="Default maximum wait for an activation"
    )
    max_operations: int = Field(
        1000, ge=1, description="Maximum number of operations kept in memory"
    )
    operation_ttl_seconds: int = Field(
        86400, ge=1, description="Age after which finished operations are evicted"
    )


class AkamaiMCPConfig(BaseModel):
    """Main configuration"""

    customers: Dict[str, Customer] = Field(
        default_factory=dict, description="Configured customers"
    )
    default_customer: Optional[str] = Field(None, description="Default customer name")
    edgerc_path: str = Field(
        str(Path.home() / ".edgerc"), description="Path to the .edgerc file"
    )
    bulk: BulkSettings = Field(default_factory=BulkSettings)


class ConfigManager:
    """Manage Akamai MCP configuration"""

    def __init__(self):
        self.config_dir = Path.home() / ".akamai-mcp"
        self.config_file = self.config_dir / "config.json"
        self.config: AkamaiMCPConfig = AkamaiMCPConfig()
        self._load_config()

    def _load_config(self):
        """Load configuration from file and environment"""
        # First, try to load from config file
        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    data = json.load(f)
                    # Convert customer dicts to Customer objects
                    customers = {}
                    for name, cust_data in data.get("customers", {}).items():
                        cust_data["name"] = name
                        customers[name] = Customer(**cust_data)

                    kwargs = {
                        "customers": customers,
                        "default_customer": data.get("default_customer"),
                        "bulk": BulkSettings(**data.get("bulk", {})),
                    }
                    if data.get("edgerc_path"):
                        kwargs["edgerc_path"] = data["edgerc_path"]

                    self.config = AkamaiMCPConfig(**kwargs)
                    logger.info(f"Loaded {len(customers)} customers from config file")
            except Exception as e:
                logger.error(f"Error loading config file: {e}")

        env_edgerc = os.getenv("EDGERC_PATH")
        if env_edgerc:
            self.config.edgerc_path = str(Path(env_edgerc).expanduser().resolve())
            logger.info(f"Using .edgerc from EDGERC_PATH: {self.config.edgerc_path}")

        env_customer = os.getenv("AKAMAI_CUSTOMER")
        if env_customer:
            self.config.default_customer = env_customer

        env_switch_key = os.getenv("AKAMAI_ACCOUNT_SWITCH_KEY")
        if env_switch_key:
            name = self.config.default_customer or "default"
            customer = self.config.customers.get(name) or Customer(name=name)
            customer.account_switch_key = env_switch_key
            self.config.customers[name] = customer
            logger.info(f"Account switch key for '{name}' set from environment")

    def get_customer(self, name: Optional[str] = None) -> Customer:
        """Get a customer by name or the default one.

        Names without an explicit entry map to the .edgerc section of the
        same name.
        """
        name = name or self.config.default_customer or "default"
        customer = self.config.customers.get(name)
        if customer is None:
            customer = Customer(name=name)
        return customer

    def list_customers(self) -> Dict[str, Customer]:
        """List all configured customers"""
        return self.config.customers

    @property
    def bulk(self) -> BulkSettings:
        return self.config.bulk
