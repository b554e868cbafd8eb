"""Tool layer: tenant-agnostic tool classes over the client factory.

To add a tool group, subclass :class:`BaseTool` with its own ``feature``
flag and register an instance in ``services.create_gateway``.
"""

from ghl_gateway.tools.base import BaseTool, ToolDefinition
from ghl_gateway.tools.contacts import ContactTools
from ghl_gateway.tools.dispatcher import ToolDispatcher, ToolRegistry

__all__ = ["BaseTool", "ContactTools", "ToolDefinition", "ToolDispatcher", "ToolRegistry"]
