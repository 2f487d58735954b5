"""
MCP tools for the Oblique Strategies MCP Server.

Modules:
- strategies: get_random_strategy, get_user_history, search_strategies
"""

from mcp_oblique.tools.strategies import (
    handle_get_random_strategy,
    handle_get_user_history,
    handle_search_strategies,
    register_strategy_tools,
)

__all__ = [
    "handle_get_random_strategy",
    "handle_get_user_history",
    "handle_search_strategies",
    "register_strategy_tools",
]
