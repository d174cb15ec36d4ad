"""Risk Scorer - numeric phase of the scoring engine.

Aggregates a session's answers into per-category scores, risk-tag tallies,
an overall score and a confidence estimate.
"""

import math
import statistics
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .config import ConfidencePolicy, ScoringPolicy, get_config
from .schema import (
    CATEGORIES,
    AnswerForScoring,
    CanonicalPattern,
    RationaleNote,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


@dataclass
class ScoreBreakdown:
    """Numeric result of scoring one session."""
    category_scores: dict[str, float]
    answered_counts: dict[str, int]
    risk_tag_tallies: dict[str, int] = field(default_factory=dict)
    impacts: list[float] = field(default_factory=list)
    rationale: list[RationaleNote] = field(default_factory=list)
    overall_score: int = 0
    coverage: float = 0.0
    variance: float = 0.0
    confidence: int = 0


class RiskScorer:
    """Scores a finalized answer set.

    Scoring principles:
    - Every category starts at the policy baseline
    - Negative answers to critical questions are amplified
    - Every impact is damped so few extreme answers cannot saturate a category
    - Confidence rewards category coverage and penalizes impact variance
    """

    def __init__(
        self,
        policy: Optional[ScoringPolicy] = None,
        confidence_policy: Optional[ConfidencePolicy] = None,
    ):
        """Initialize scorer with optional custom policies."""
        cfg = get_config()
        self.policy = policy or cfg.scoring_policy
        self.confidence_policy = confidence_policy or cfg.confidence_policy

    def score(self, answers: Iterable[AnswerForScoring]) -> ScoreBreakdown:
        """Score answers in the order they were given.

        Args:
            answers: One entry per answered question

        Returns:
            Breakdown with clamped category scores, tallies and confidence
        """
        breakdown = ScoreBreakdown(
            category_scores={category: self.policy.baseline for category in CATEGORIES},
            answered_counts={category: 0 for category in CATEGORIES},
        )

        for answer in answers:
            self._apply_answer(answer, breakdown)

        for category, value in breakdown.category_scores.items():
            breakdown.category_scores[category] = max(0.0, min(100.0, value))

        breakdown.overall_score = round_half_up(
            sum(breakdown.category_scores.values()) / len(CATEGORIES)
        )
        answered = [c for c in CATEGORIES if breakdown.answered_counts[c] > 0]
        breakdown.coverage = len(answered) / len(CATEGORIES)
        breakdown.variance = self._calculate_variance(breakdown.impacts)
        breakdown.confidence = self._calculate_confidence(breakdown.coverage, breakdown.variance)

        return breakdown

    def _apply_answer(self, answer: AnswerForScoring, breakdown: ScoreBreakdown) -> None:
        """Fold a single answer into the running breakdown."""
        category = answer.category.value
        pattern = answer.pattern or CanonicalPattern()
        option = answer.chosen_option

        breakdown.answered_counts[category] += 1

        impact = pattern.impact_for(category, option)
        if impact is not None:
            delta = self._impact_delta(impact, pattern.critical)
            breakdown.category_scores[category] += delta
            breakdown.impacts.append(delta)

        for tag, option_map in pattern.risk_tags.items():
            increment = option_map.get(option)
            if increment:
                breakdown.risk_tag_tallies[tag] = breakdown.risk_tag_tallies.get(tag, 0) + increment

        note = pattern.rationale.get(option)
        if note:
            breakdown.rationale.append(RationaleNote(question_text=answer.question_text, note=note))

    def _impact_delta(self, impact: float, critical: bool) -> float:
        """Apply critical amplification then damping to a raw weight."""
        if impact < 0 and critical:
            impact *= self.policy.critical_multiplier
        return impact * self.policy.damping

    def _calculate_variance(self, impacts: list[float]) -> float:
        """Normalized sample standard deviation of the impacts, capped at 1."""
        if len(impacts) < 2:
            return self.confidence_policy.variance_fallback
        return min(1.0, statistics.stdev(impacts) / self.confidence_policy.variance_scale)

    def _calculate_confidence(self, coverage: float, variance: float) -> int:
        """Confidence percentage from coverage and variance, floored."""
        cp = self.confidence_policy
        fraction = max(cp.floor, cp.coverage_weight * coverage - cp.variance_weight * variance)
        return round_half_up(100 * fraction)
