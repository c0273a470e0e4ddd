"""
Business Rule Engine.

Fixed fraud rules evaluated on the 15-value fraud feature vector. Each
rule is independent; the rule score is the fraction of rules violated.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..config import FraudConfig
from ..features.extractor import FRAUD_FEATURE_COUNT
from ..features.scaling import validate_vector

# Fraud feature positions used by the rules
AMOUNT_RATIO = 1
HOUR = 2
IS_ROUND_AMOUNT = 5
SUSPICIOUS_COUNTRY = 8
TRANSACTIONS_1H = 9


@dataclass(frozen=True)
class Rule:
    """A named predicate over a fraud feature vector."""

    name: str
    description: str
    check: Callable[[np.ndarray], bool]


@dataclass(frozen=True)
class RuleResult:
    """Outcome of evaluating every rule against one vector."""

    violated: tuple[str, ...]
    total: int

    @property
    def score(self) -> float:
        """Fraction of rules violated, in [0, 1]."""
        if self.total == 0:
            return 0.0
        return len(self.violated) / self.total

    @property
    def count(self) -> int:
        return len(self.violated)


class BusinessRuleEngine:
    """
    Deterministic fraud rules.

    Rules:
    - high_amount: amount more than high_amount_ratio times the history average
    - unusual_hour: hour before night_start_hour or after night_end_hour
    - suspicious_country: country in the configured high-risk set
    - high_frequency: more than max_hourly_transactions in the trailing hour
    - round_amount_at_night: round amount during round_amount_hours
    """

    def __init__(self, config: Optional[FraudConfig] = None):
        self.config = config or FraudConfig()
        self.rules = self._build_rules()

    def _build_rules(self) -> tuple[Rule, ...]:
        cfg = self.config
        round_hours = set(cfg.round_amount_hours)
        return (
            Rule(
                "high_amount",
                f"Amount exceeds {cfg.high_amount_ratio:g}x the historical average",
                lambda f: f[AMOUNT_RATIO] > cfg.high_amount_ratio,
            ),
            Rule(
                "unusual_hour",
                f"Transaction outside {cfg.night_start_hour}:00-{cfg.night_end_hour}:00",
                lambda f: f[HOUR] < cfg.night_start_hour or f[HOUR] > cfg.night_end_hour,
            ),
            Rule(
                "suspicious_country",
                "Country is on the high-risk list",
                lambda f: f[SUSPICIOUS_COUNTRY] > 0,
            ),
            Rule(
                "high_frequency",
                f"More than {cfg.max_hourly_transactions} transactions in the last hour",
                lambda f: f[TRANSACTIONS_1H] > cfg.max_hourly_transactions,
            ),
            Rule(
                "round_amount_at_night",
                "Round amount during early morning hours",
                lambda f: f[IS_ROUND_AMOUNT] > 0 and int(f[HOUR]) in round_hours,
            ),
        )

    def evaluate(self, features: np.ndarray) -> RuleResult:
        """
        Evaluate all rules.

        Args:
            features: Raw fraud feature vector.

        Returns:
            RuleResult naming the violated rules.

        Raises:
            InputError: If the vector is malformed.
        """
        vector = validate_vector(features, FRAUD_FEATURE_COUNT, label="rule features")
        violated = tuple(rule.name for rule in self.rules if rule.check(vector))
        return RuleResult(violated=violated, total=len(self.rules))

    def describe(self, name: str) -> str:
        """Human-readable description of a rule."""
        for rule in self.rules:
            if rule.name == name:
                return rule.description
        raise KeyError(name)

    @property
    def rule_names(self) -> list[str]:
        return [rule.name for rule in self.rules]
