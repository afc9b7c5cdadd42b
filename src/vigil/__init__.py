"""Vigil - MCP evaluation harness with server-side coverage checks."""

__version__ = "0.3.0"
