"""Expose SonarQube issues, metrics and quality gates as MCP tools."""

__version__ = "1.0.0"
