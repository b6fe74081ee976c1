"""Invokers behind the MCP tools.

- SearchInvoker: paid natural-language search (search_endpoints)
- EndpointInvoker: paid call to a discovered endpoint (execute_tool)
"""

from .execute import EndpointInvoker, EXECUTE_TIMEOUT_SECONDS
from .result import InvocationResult
from .search import SearchInvoker, SEARCH_TIMEOUT_SECONDS

__all__ = [
    "EndpointInvoker",
    "EXECUTE_TIMEOUT_SECONDS",
    "InvocationResult",
    "SearchInvoker",
    "SEARCH_TIMEOUT_SECONDS",
]
