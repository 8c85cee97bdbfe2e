#!/usr/bin/env python3
"""
Main entry point for Akamai MCP
"""

from .server import customer_manager, mcp


def main():
    """Entry point for the akamai-mcp command"""
    try:
        mcp.run()
    finally:
        customer_manager.close_all()


if __name__ == "__main__":
    main()
