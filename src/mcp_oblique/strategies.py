"""
The Oblique Strategies card deck served by the tools.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Strategy:
    """A single Oblique Strategy card."""

    id: str
    text: str
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization, omitting a missing category."""
        data = asdict(self)
        if self.category is None:
            del data["category"]
        return data


STRATEGIES: tuple[Strategy, ...] = (
    Strategy("1", "Use an old idea", "Reframing"),
    Strategy("2", "State the problem in words as clearly as possible", "Clarity"),
    Strategy("3", "Honor thy error as a hidden intention", "Acceptance"),
    Strategy("4", "Only one element of each kind", "Constraints"),
    Strategy("5", "What would your closest friend do?", "Perspective"),
    Strategy("6", "Simple subtraction", "Action"),
    Strategy("7", "Are there sections? Consider transitions", "Clarity"),
    Strategy("8", "Turn it upside down", "Reframing"),
    Strategy("9", "Do the washing up", "Action"),
    Strategy("10", "Listen to the quiet voice", "Perspective"),
)


def filter_strategies(
    keyword: str | None = None,
    category: str | None = None,
    strategies: tuple[Strategy, ...] = STRATEGIES,
) -> list[Strategy]:
    """
    Filter the deck.

    Args:
        keyword: Case-insensitive substring matched against the card text.
        category: Exact category match.
        strategies: Deck to filter.

    Returns:
        Cards matching every criterion given; the whole deck when none is.
    """
    results = []
    for strategy in strategies:
        if keyword and keyword.lower() not in strategy.text.lower():
            continue
        if category and strategy.category != category:
            continue
        results.append(strategy)
    return results


def list_categories(strategies: tuple[Strategy, ...] = STRATEGIES) -> list[str]:
    """Return the distinct categories in the deck, in first-seen order."""
    seen: dict[str, None] = {}
    for strategy in strategies:
        if strategy.category is not None:
            seen.setdefault(strategy.category, None)
    return list(seen)
