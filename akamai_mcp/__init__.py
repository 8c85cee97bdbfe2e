"""
Akamai MCP - bulk operations on Akamai properties and Edge DNS
"""

__version__ = "0.1.0"
