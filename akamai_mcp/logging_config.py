"""
Shared logging configuration for Akamai MCP
"""

import logging
import os
import sys


def setup_logging():
    """Configure logging to stderr for all Akamai MCP modules"""
    # Only configure if not already configured
    if not logging.getLogger().handlers:
        debug = os.getenv("DEBUG", "").lower() in ("1", "true")
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.INFO,
            stream=sys.stderr,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    import inspect

    frame = inspect.stack()[1]
    module = inspect.getmodule(frame[0])
    return logging.getLogger(module.__name__ if module else __name__)
