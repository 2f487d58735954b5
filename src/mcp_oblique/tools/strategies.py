"""
Strategy tools for the Oblique Strategies MCP Server.

This module implements the three tools exposed over MCP:
- get_random_strategy: Draw a random card, optionally from one category
- get_user_history: Return the calling device's recent draws
- search_strategies: Filter the deck by keyword and/or category

Results use the MCP tool-result shape ``{"content": [...], "isError": bool}``.
An empty draw is reported as a tool-level error result; missing or malformed
arguments raise InvalidArgumentError.
"""

from __future__ import annotations

import functools
import json
import random
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from mcp_oblique.context import ToolContext
from mcp_oblique.errors import InvalidArgumentError
from mcp_oblique.logging import get_logger
from mcp_oblique.routing import ToolDescriptor, ToolRegistry
from mcp_oblique.storage.history import (
    HISTORY_TTL_SECONDS,
    MAX_HISTORY_ENTRIES,
    HistoryEntry,
    add_history_entry,
    get_user_history,
)
from mcp_oblique.strategies import filter_strategies, list_categories

if TYPE_CHECKING:
    from mcp_oblique.config import HistoryConfig
    from mcp_oblique.storage.kv import KVStore

logger = get_logger(__name__)

RANDOM_STRATEGY_CONTEXT = "get_random_strategy"

ParamsT = TypeVar("ParamsT", bound=BaseModel)


# =============================================================================
# Argument Models
# =============================================================================


class GetRandomStrategyParams(BaseModel):
    deviceId: str = Field(min_length=1)
    category: str | None = None


class GetUserHistoryParams(BaseModel):
    deviceId: str = Field(min_length=1)


class SearchStrategiesParams(BaseModel):
    keyword: str | None = None
    category: str | None = None

    @model_validator(mode="after")
    def _require_criteria(self) -> SearchStrategiesParams:
        if not self.keyword and not self.category:
            raise ValueError("At least one of keyword or category must be provided")
        return self


def _parse_params(model: type[ParamsT], params: dict[str, Any]) -> ParamsT:
    try:
        return model.model_validate(params)
    except ValidationError as e:
        first = e.errors()[0]
        raise InvalidArgumentError(
            first["msg"].removeprefix("Value error, "),
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


# =============================================================================
# Result Helpers
# =============================================================================


def tool_success(data: Any) -> dict[str, Any]:
    """Wrap data as a successful tool result with one JSON text item."""
    return {
        "content": [{"type": "text", "text": json.dumps(data, separators=(",", ":"))}],
        "isError": False,
    }


def tool_error(message: str) -> dict[str, Any]:
    """Build a tool-level error result (still a JSON-RPC success)."""
    return {
        "content": [{"type": "text", "text": message}],
        "isError": True,
    }


# =============================================================================
# Tool Handlers
# =============================================================================


async def handle_get_random_strategy(
    ctx: ToolContext,
    params: dict[str, Any],
    *,
    store: KVStore,
    history: HistoryConfig | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """
    Handle the get_random_strategy tool call.

    Draws one card uniformly at random and records the draw in the device's
    history before returning it. A failure to record propagates.

    Args:
        ctx: The ToolContext for this request.
        params: Arguments: deviceId (required), category (optional).
        store: KV store handle.
        history: Optional history limits.
        rng: Random source; defaults to the module-level generator.

    Returns:
        Tool result with the card, or an error result if no card matches.
    """
    args = _parse_params(GetRandomStrategyParams, params)

    candidates = filter_strategies(category=args.category)
    if not candidates:
        suffix = f" for category: {args.category}" if args.category else ""
        return tool_error(f"No strategies found{suffix}")

    strategy = (rng or random).choice(candidates)

    await add_history_entry(
        store,
        args.deviceId,
        HistoryEntry(
            strategyId=strategy.id,
            viewedAt=ctx.timestamp_ms,
            context=RANDOM_STRATEGY_CONTEXT,
        ),
        max_entries=history.max_entries if history else MAX_HISTORY_ENTRIES,
        ttl_seconds=history.ttl_seconds if history else HISTORY_TTL_SECONDS,
    )
    logger.debug(
        "Strategy drawn",
        extra={"device_id": args.deviceId, "strategy_id": strategy.id},
    )

    return tool_success(strategy.to_dict())


async def handle_get_user_history(
    _ctx: ToolContext,
    params: dict[str, Any],
    *,
    store: KVStore,
) -> dict[str, Any]:
    """Handle the get_user_history tool call (newest entry first)."""
    args = _parse_params(GetUserHistoryParams, params)
    entries = await get_user_history(store, args.deviceId)
    return tool_success([entry.model_dump(exclude_none=True) for entry in entries])


async def handle_search_strategies(
    _ctx: ToolContext,
    params: dict[str, Any],
) -> dict[str, Any]:
    """
    Handle the search_strategies tool call.

    Keyword matching is a case-insensitive substring test on the card text;
    category matching is exact. When both are given a card must match both.

    Raises:
        InvalidArgumentError: If neither keyword nor category is given.
    """
    args = _parse_params(SearchStrategiesParams, params)
    results = filter_strategies(keyword=args.keyword, category=args.category)
    return tool_success([strategy.to_dict() for strategy in results])


# =============================================================================
# Descriptors and Registration
# =============================================================================

GET_RANDOM_STRATEGY = ToolDescriptor(
    name="get_random_strategy",
    description="Get a random Oblique Strategy card, optionally filtered by category",
    input_schema={
        "type": "object",
        "properties": {
            "deviceId": {
                "type": "string",
                "description": "Device identifier for tracking history",
            },
            "category": {
                "type": "string",
                "description": (
                    "Optional category to filter strategies "
                    f"({', '.join(list_categories())})"
                ),
            },
        },
        "required": ["deviceId"],
    },
)

GET_USER_HISTORY = ToolDescriptor(
    name="get_user_history",
    description="Retrieve the viewing history for a user",
    input_schema={
        "type": "object",
        "properties": {
            "deviceId": {
                "type": "string",
                "description": "Device identifier to fetch history for",
            },
        },
        "required": ["deviceId"],
    },
)

SEARCH_STRATEGIES = ToolDescriptor(
    name="search_strategies",
    description="Search for strategies by keyword or category",
    input_schema={
        "type": "object",
        "properties": {
            "keyword": {
                "type": "string",
                "description": "Search keyword to match in strategy text",
            },
            "category": {
                "type": "string",
                "description": "Category to filter strategies by",
            },
        },
        "required": [],
    },
)


def register_strategy_tools(
    registry: ToolRegistry,
    store: KVStore,
    history: HistoryConfig | None = None,
    rng: random.Random | None = None,
) -> ToolRegistry:
    """
    Register the three strategy tools, bound to a store handle.

    Args:
        registry: Registry to populate.
        store: KV store handle used by the history-backed tools.
        history: Optional history limits.
        rng: Optional random source for get_random_strategy.

    Returns:
        The same registry, for chaining.
    """
    registry.register(
        GET_RANDOM_STRATEGY,
        functools.partial(
            handle_get_random_strategy, store=store, history=history, rng=rng
        ),
    )
    registry.register(
        GET_USER_HISTORY,
        functools.partial(handle_get_user_history, store=store),
    )
    registry.register(SEARCH_STRATEGIES, handle_search_strategies)
    return registry
