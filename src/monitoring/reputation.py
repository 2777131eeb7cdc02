"""
Developer wallet reputation policies

A policy maps (token_count, current_score) to a new score in [0, 100].
The sweep only talks to the ReputationPolicy protocol, so scoring can be
swapped without touching the engine.
"""
from dataclasses import dataclass
from typing import Protocol

from src.monitoring.config import ReputationConfig


class ReputationPolicy(Protocol):
    def __call__(self, token_count: int, current_score: int) -> int:
        ...


@dataclass(frozen=True)
class LinearPenaltyPolicy:
    """
    Neutral baseline minus a fixed penalty per token above threshold

    Example (defaults): 12 tokens -> 50 - (12 - 10) * 5 = 40

    Never raises a score: the result is at most current_score, so
    reputation only goes down as the token count grows.
    """

    baseline: int = 50
    threshold: int = 10
    penalty: int = 5
    floor: int = 0
    ceiling: int = 100

    @classmethod
    def from_config(cls, config: ReputationConfig) -> "LinearPenaltyPolicy":
        return cls(
            baseline=config.baseline,
            threshold=config.penalty_threshold,
            penalty=config.penalty,
        )

    def __call__(self, token_count: int, current_score: int) -> int:
        excess = max(0, token_count - self.threshold)
        score = min(self.baseline - excess * self.penalty, current_score)
        return max(self.floor, min(self.ceiling, score))
