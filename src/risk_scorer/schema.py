"""Pydantic models for the Cyber Risk Scorer.

Input schemas for externally authored questions and recorded answers,
the canonical pattern shape produced by the normalizer, and the report
produced by the scoring engine.
"""

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Fixed vocabularies
# =============================================================================


class Category(str, Enum):
    """Risk category a question belongs to."""
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    PSYCHOLOGICAL = "psychological"


class Priority(str, Enum):
    """Priority of a recommendation."""
    CRITICAL = "critical"
    IMPORTANT = "important"
    SUGGESTED = "suggested"


# Dict keys are plain strings; str-enum members hash by name, not value.
CATEGORIES: tuple[str, ...] = tuple(c.value for c in Category)

LIKERT_SCALE: tuple[str, ...] = (
    "Strongly disagree",
    "Disagree",
    "Neutral",
    "Agree",
    "Strongly agree",
)

LIKERT_WEIGHTS: dict[str, float] = dict(zip(LIKERT_SCALE, (-10, -4, 0, 4, 8)))


# =============================================================================
# Errors
# =============================================================================


class QuestionPayloadError(ValueError):
    """Raised when generator output cannot be read as a question set."""


class SessionValidationError(ValueError):
    """Raised when answer records cannot be joined to scorable questions."""


# =============================================================================
# Raw input models
# =============================================================================


class RawQuestion(BaseModel):
    """A question as supplied by the content source.

    Only the shape of ``text``, ``options`` and ``category`` is coerced here;
    ``patterns`` is left untouched for the normalizer to sanitize.
    """
    question_id: Optional[str] = None
    text: str = ""
    options: list[str] = Field(default_factory=list)
    category: str = ""
    patterns: Any = None
    tags: list[str] = Field(default_factory=list)

    class Config:
        extra = "allow"

    @field_validator("question_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    @field_validator("text", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        seen: list[str] = []
        for option in value:
            text = option if isinstance(option, str) else str(option)
            if text not in seen:
                seen.append(text)
        return seen

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [tag for tag in value if isinstance(tag, str)]

    @classmethod
    def from_mapping(cls, question: Mapping) -> "RawQuestion":
        """Build from an arbitrary mapping, ignoring non-string keys."""
        return cls.model_validate({
            key: value for key, value in question.items() if isinstance(key, str)
        })


class AnswerRecord(BaseModel):
    """One recorded answer: which question, which option text."""
    question_id: str
    answer_text: str

    @field_validator("question_id", "answer_text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class SessionAnswers(BaseModel):
    """The finalized answer set for one session, in answer order."""
    session_id: Optional[str] = None
    answers: list[AnswerRecord] = Field(default_factory=list)


# =============================================================================
# Canonical models
# =============================================================================


class CanonicalPattern(BaseModel):
    """Fully validated, default-completed scoring metadata for one question.

    ``weights`` always has one entry per fixed category. A non-empty category
    map covers every option of the question.
    """
    weights: dict[str, dict[str, float]] = Field(
        default_factory=lambda: {category: {} for category in CATEGORIES}
    )
    risk_tags: dict[str, dict[str, int]] = Field(default_factory=dict)
    critical: bool = False
    rationale: dict[str, str] = Field(default_factory=dict)

    def as_raw_payload(self) -> dict[str, Any]:
        """Return the pattern as a plain ``patterns`` payload."""
        return self.model_dump()

    def impact_for(self, category: str, option: str) -> Optional[float]:
        """Weight of ``option`` in ``category``, or None when not scored."""
        return self.weights.get(category, {}).get(option)


class NormalizedQuestion(BaseModel):
    """A question as held in the canonical question store."""
    question_id: str
    text: str
    options: list[str] = Field(default_factory=list)
    category: str
    pattern: CanonicalPattern = Field(default_factory=CanonicalPattern)
    tags: list[str] = Field(default_factory=list)
    version: int = 1


class AnswerForScoring(BaseModel):
    """One answered question ready for scoring."""
    category: Category
    pattern: Optional[CanonicalPattern] = None
    chosen_option: str
    question_text: str = ""


# =============================================================================
# Report models
# =============================================================================


class Recommendation(BaseModel):
    """A prioritized advisory."""
    priority: Priority
    text: str


class RationaleNote(BaseModel):
    """Explanation attached to a chosen option."""
    question_text: str
    note: str


class Report(BaseModel):
    """Complete output of the scoring engine for one session."""
    session_id: Optional[str] = None
    scoring_version: str = "2.0.0"

    category_scores: dict[str, float]
    overall_score: int
    confidence: int = Field(..., ge=0, le=100)
    risk_tag_tallies: dict[str, int] = Field(default_factory=dict)

    recommendations: list[Recommendation] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    executive_summary: str = ""

    # Audit detail
    answered_counts: dict[str, int] = Field(default_factory=dict)
    coverage: float = 0.0
    variance: float = 0.0
    rationale: list[RationaleNote] = Field(default_factory=list)
