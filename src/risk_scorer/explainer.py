"""Explainer - report phase of the scoring engine.

Turns a numeric ScoreBreakdown into the final Report: prioritized
recommendations, strengths and an executive summary.

Recommendations come from an ordered rule table. Rules sharing a family
are alternatives (the first matching one wins); different families are
evaluated independently. The result is deduplicated by text with the
first occurrence kept.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .schema import Priority, Recommendation, Report
from .scorer import ScoreBreakdown

# Category scores below this trigger a category recommendation
WEAK_CATEGORY_THRESHOLD = 70
# Category scores at or above this count as a strength
STRONG_CATEGORY_THRESHOLD = 85

PHISHING_TAG = "phishingAwareness"
DEVICE_TAG = "deviceSecurity"


@dataclass(frozen=True)
class RecommendationRule:
    """A declarative recommendation: when ``applies`` holds, emit text."""
    family: str
    priority: Priority
    text: str
    applies: Callable[[ScoreBreakdown], bool]


@dataclass(frozen=True)
class StrengthRule:
    """A declarative strength statement."""
    text: str
    applies: Callable[[ScoreBreakdown], bool]


def _tally(breakdown: ScoreBreakdown, tag: str) -> int:
    return breakdown.risk_tag_tallies.get(tag, 0)


def _weak(category: str) -> Callable[[ScoreBreakdown], bool]:
    return lambda b: b.category_scores[category] < WEAK_CATEGORY_THRESHOLD


def _strong(category: str) -> Callable[[ScoreBreakdown], bool]:
    return lambda b: b.category_scores[category] >= STRONG_CATEGORY_THRESHOLD


RECOMMENDATION_RULES: tuple[RecommendationRule, ...] = (
    RecommendationRule(
        family="phishing",
        priority=Priority.CRITICAL,
        text="Verify any urgent payment/reset requests via an out-of-band channel before acting.",
        applies=lambda b: _tally(b, PHISHING_TAG) >= 2,
    ),
    RecommendationRule(
        family="phishing",
        priority=Priority.IMPORTANT,
        text="Spend 10 minutes on anti-phishing drills this week; hover links and check domains.",
        applies=lambda b: _tally(b, PHISHING_TAG) == 1,
    ),
    RecommendationRule(
        family="device",
        priority=Priority.IMPORTANT,
        text="Enforce full-disk encryption and auto-lock on all endpoints, including BYOD.",
        applies=lambda b: _tally(b, DEVICE_TAG) >= 2,
    ),
    RecommendationRule(
        family="technical",
        priority=Priority.CRITICAL,
        text="Adopt a password manager and enable MFA on email, VPN, and finance apps.",
        applies=_weak("technical"),
    ),
    RecommendationRule(
        family="behavioral",
        priority=Priority.IMPORTANT,
        text="Schedule quarterly phishing simulations and just-in-time micro-training.",
        applies=_weak("behavioral"),
    ),
    RecommendationRule(
        family="psychological",
        priority=Priority.SUGGESTED,
        text="Use ‘pause and verify’ for high-pressure requests; reduce single-person approvals.",
        applies=_weak("psychological"),
    ),
)

STRENGTH_RULES: tuple[StrengthRule, ...] = (
    StrengthRule("Solid device and credential hygiene.", _strong("technical")),
    StrengthRule("Good phishing vigilance.", lambda b: not _tally(b, PHISHING_TAG)),
    StrengthRule("Consistent safe behaviors across scenarios.", _strong("behavioral")),
)


def format_score(value: float) -> str:
    """Render a score verbatim; integral values drop the decimal point."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


class ReportExplainer:
    """Generates recommendations, strengths and summaries for a breakdown.

    Principles:
    - Rules are evaluated in a fixed order so output is deterministic
    - Alternatives within a family never both fire
    - Identical advice is shown once, where it first appeared
    """

    def __init__(
        self,
        recommendation_rules: Optional[Sequence[RecommendationRule]] = None,
        strength_rules: Optional[Sequence[StrengthRule]] = None,
    ):
        if recommendation_rules is None:
            recommendation_rules = RECOMMENDATION_RULES
        if strength_rules is None:
            strength_rules = STRENGTH_RULES
        self.recommendation_rules = tuple(recommendation_rules)
        self.strength_rules = tuple(strength_rules)

    def build_report(self, breakdown: ScoreBreakdown, session_id: Optional[str] = None) -> Report:
        """Assemble the full report for a scored session."""
        return Report(
            session_id=session_id,
            category_scores=dict(breakdown.category_scores),
            overall_score=breakdown.overall_score,
            confidence=breakdown.confidence,
            risk_tag_tallies=dict(breakdown.risk_tag_tallies),
            recommendations=self.recommend(breakdown),
            strengths=self.strengths(breakdown),
            executive_summary=self.executive_summary(breakdown),
            answered_counts=dict(breakdown.answered_counts),
            coverage=breakdown.coverage,
            variance=breakdown.variance,
            rationale=list(breakdown.rationale),
        )

    def recommend(self, breakdown: ScoreBreakdown) -> list[Recommendation]:
        """Evaluate the rule table and deduplicate the result by text."""
        fired_families: set[str] = set()
        triggered: list[Recommendation] = []

        for rule in self.recommendation_rules:
            if rule.family in fired_families:
                continue
            if rule.applies(breakdown):
                fired_families.add(rule.family)
                triggered.append(Recommendation(priority=rule.priority, text=rule.text))

        unique: list[Recommendation] = []
        seen_texts: set[str] = set()
        for recommendation in triggered:
            if recommendation.text not in seen_texts:
                seen_texts.add(recommendation.text)
                unique.append(recommendation)
        return unique

    def strengths(self, breakdown: ScoreBreakdown) -> list[str]:
        """All strength statements whose rule holds."""
        return [rule.text for rule in self.strength_rules if rule.applies(breakdown)]

    def executive_summary(self, breakdown: ScoreBreakdown) -> str:
        """One-paragraph summary embedding the headline numbers."""
        scores = breakdown.category_scores
        return (
            f"Overall score {breakdown.overall_score}% (confidence {breakdown.confidence}%). "
            f"Tech {format_score(scores['technical'])}%, "
            f"Behavioral {format_score(scores['behavioral'])}%, "
            f"Psychological {format_score(scores['psychological'])}%. "
            f"Focus on the recommendations below to lower risk in the next 30 days."
        )
