"""
Milestone ladder math

Pure helpers, no I/O.
"""
from typing import Iterable, List

# Market cap multipliers, ascending
MILESTONES: tuple[float, ...] = (
    1.1, 1.2, 1.3, 1.4, 1.5, 1.75,
    2, 2.5, 3, 4, 5, 7.5,
    10, 15, 20, 30, 50, 75, 100,
)

TOP_MILESTONE = MILESTONES[-1]


def compute_multiplier(current_market_cap: float, initial_market_cap: float) -> float:
    """Ratio of current to initial market cap (0.0 when initial is not positive)"""
    if not initial_market_cap or initial_market_cap <= 0:
        return 0.0
    return current_market_cap / initial_market_cap


def new_milestones(multiplier: float, achieved: Iterable[float]) -> List[float]:
    """
    Rungs reached by multiplier that are not achieved yet

    Returns:
        Ascending list, possibly empty
    """
    done = set(achieved)
    return [m for m in MILESTONES if m <= multiplier and m not in done]


def merge_achievements(existing: Iterable[float], new: Iterable[float]) -> List[float]:
    """Sorted union without duplicates"""
    return sorted(set(existing) | set(new))


def is_graduated(achieved: Iterable[float]) -> bool:
    """True once the top of the ladder is reached (no further checks needed)"""
    return TOP_MILESTONE in set(achieved)


def format_multiplier(multiplier: float) -> str:
    """2.0 -> '2x', 1.75 -> '1.75x'"""
    return f"{multiplier:g}x"


def multiplier_emoji(multiplier: float) -> str:
    if multiplier >= 100:
        return "🏆"
    if multiplier >= 50:
        return "👑"
    if multiplier >= 20:
        return "🌟"
    if multiplier >= 10:
        return "🔥"
    if multiplier >= 5:
        return "💫"
    if multiplier >= 2:
        return "✌️"
    return "⭐️"
