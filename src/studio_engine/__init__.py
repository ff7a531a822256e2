"""Studio Engine.

Pricing calculation and setup-completeness scoring for multi-tenant studios,
served over MCP.
"""

__version__ = "0.1.0"
