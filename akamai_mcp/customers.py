"""
Customer (credential scope) management for Akamai MCP
"""

import threading
from typing import Optional

from .client import AkamaiClient
from .config import ConfigManager
from .exceptions import ErrorHandler
from .logging_config import setup_logging

logger = setup_logging()


class CustomerManager:
    """Resolve customers to EdgeGrid clients, one cached client per customer"""

    def __init__(self, config_manager: ConfigManager, request_timeout: int = 30):
        self.config = config_manager
        self.request_timeout = request_timeout
        self.clients: dict[str, AkamaiClient] = {}
        self._lock = threading.Lock()

    def get_client(
        self, customer: Optional[str] = None, request_id: Optional[str] = None
    ) -> AkamaiClient:
        """Return the client for a customer, creating it on first use

        Raises:
            EdgeRcError: If the .edgerc file or section is missing
        """
        cust = self.config.get_customer(customer)

        with self._lock:
            client = self.clients.get(cust.name)
            if client is not None:
                return client

            with ErrorHandler.error_context(
                logger,
                f"create client for customer '{cust.name}'",
                request_id=request_id,
                raise_on_error=True,
            ):
                client = AkamaiClient.from_edgerc(
                    self.config.config.edgerc_path,
                    section=cust.edgerc_section,
                    account_switch_key=cust.account_switch_key,
                    timeout=self.request_timeout,
                )

            self.clients[cust.name] = client
            return client

    def close_all(self):
        """Close every cached client session"""
        with self._lock:
            for name, client in self.clients.items():
                client.close()
                logger.debug(f"Closed client for customer '{name}'")
            self.clients.clear()
