#!/usr/bin/env python
"""
Setup script for Akamai MCP.
"""

from setuptools import find_packages, setup

setup(
    name="akamai-mcp",
    version="0.1.0",
    description="MCP server for bulk Akamai Property Manager and Edge DNS operations",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "fastmcp>=2.0",
        "pydantic>=2.0",
        "requests>=2.28",
        "edgegrid-python>=1.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "akamai-mcp=akamai_mcp.__main__:main",
        ],
    },
)
