"""
Unit tests for milestone ladder helpers
"""
import pytest

from src.monitoring.milestones import (
    MILESTONES,
    TOP_MILESTONE,
    compute_multiplier,
    new_milestones,
    merge_achievements,
    is_graduated,
    format_multiplier,
    multiplier_emoji,
)


def test_ladder_is_strictly_increasing():
    assert list(MILESTONES) == sorted(set(MILESTONES))
    assert MILESTONES[0] == 1.1
    assert TOP_MILESTONE == 100


def test_compute_multiplier():
    assert compute_multiplier(550_000, 100_000) == pytest.approx(5.5)
    assert compute_multiplier(50_000, 0) == 0.0
    assert compute_multiplier(50_000, -1) == 0.0


def test_new_milestones_below_first_rung():
    assert new_milestones(1.05, []) == []


def test_new_milestones_jump_past_fourth_rung():
    """1.0x -> 1.45x crosses 1.1, 1.2, 1.3 and 1.4 at once"""
    assert new_milestones(1.45, []) == [1.1, 1.2, 1.3, 1.4]


def test_new_milestones_skips_achieved():
    assert new_milestones(5.5, [1.1, 1.2, 1.3, 1.4, 1.5, 1.75]) == [2, 2.5, 3, 4, 5]


def test_new_milestones_exact_rung():
    assert new_milestones(2.0, [1.1, 1.2, 1.3, 1.4, 1.5, 1.75]) == [2]


def test_merge_achievements_sorted_unique():
    assert merge_achievements([2.0, 1.1], [5, 2, 1.5]) == [1.1, 1.5, 2, 5]


def test_is_graduated():
    assert is_graduated([2, 100]) is True
    assert is_graduated([2, 75]) is False
    assert is_graduated([]) is False


def test_format_multiplier():
    assert format_multiplier(5.0) == "5x"
    assert format_multiplier(1.75) == "1.75x"
    assert format_multiplier(7.5) == "7.5x"


@pytest.mark.parametrize(
    "multiplier,emoji",
    [(100, "🏆"), (50, "👑"), (20, "🌟"), (10, "🔥"), (5, "💫"), (2, "✌️"), (1.5, "⭐️")],
)
def test_multiplier_emoji(multiplier, emoji):
    assert multiplier_emoji(multiplier) == emoji
