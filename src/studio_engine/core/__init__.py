"""Core business logic: pricing, section validators and setup scoring.

This module is framework-agnostic. It has no dependency on MCP or the
database; persistence is passed in by the caller.
"""
