"""Pattern Normalizer - first phase of the risk scorer.

Canonicalizes the scoring metadata of externally authored questions.
Handles the messy reality of generated content: missing, partial or
wrongly typed pattern payloads are replaced by safe defaults, never
rejected.
"""

import json
import logging
import math
import re
from pathlib import Path
from typing import Any, Mapping, Optional

from .schema import (
    CATEGORIES,
    LIKERT_WEIGHTS,
    CanonicalPattern,
    NormalizedQuestion,
    QuestionPayloadError,
    RawQuestion,
)

logger = logging.getLogger(__name__)

# Generators sometimes wrap their JSON in a Markdown code fence
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def _is_number(value: Any) -> bool:
    """True for finite ints and floats; JSON booleans are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _as_impact(value: Any) -> Optional[float]:
    """Numeric impact of a weight entry, accepting quoted numbers like "-5"."""
    if _is_number(value):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        if math.isfinite(parsed):
            return parsed
    return None


class PatternNormalizer:
    """Normalizes raw question patterns into CanonicalPattern.

    Guarantees:
    - Never raises on a malformed pattern payload
    - Every non-empty category weight map covers all question options
    - Re-normalizing canonical output yields the same pattern
    """

    def normalize(self, question: Any) -> CanonicalPattern:
        """Normalize the pattern payload of one question."""
        raw = self._as_raw_question(question)
        payload = raw.patterns if isinstance(raw.patterns, Mapping) else {}

        weights = self._coerce_weights(payload.get("weights"))
        if weights is None:
            logger.debug("No usable weights for %r, applying default weights", raw.text)
            weights = self.default_weights(raw)
        self._complete_weights(weights, raw.options)

        critical = payload.get("critical", False)
        if not isinstance(critical, bool):
            logger.debug("Non-boolean critical flag %r replaced with False", critical)
            critical = False

        return CanonicalPattern(
            weights=weights,
            risk_tags=self._coerce_risk_tags(payload.get("risk_tags")),
            critical=critical,
            rationale=self._coerce_rationale(payload.get("rationale")),
        )

    def normalize_question(self, question_id: str, question: Any) -> NormalizedQuestion:
        """Normalize a whole question record for the canonical store."""
        raw = self._as_raw_question(question)
        return NormalizedQuestion(
            question_id=question_id,
            text=raw.text,
            options=raw.options,
            category=raw.category,
            pattern=self.normalize(raw),
            tags=raw.tags,
        )

    def normalize_batch(self, questions: Mapping[str, Any]) -> dict[str, NormalizedQuestion]:
        """Normalize a batch of question updates keyed by question id.

        Each question is normalized independently. Entries that are not
        objects at all carry no question to store and are skipped.
        """
        normalized: dict[str, NormalizedQuestion] = {}
        for question_id, question in questions.items():
            if not isinstance(question, (Mapping, RawQuestion)):
                logger.warning("Skipping question %s: expected an object, got %s",
                               question_id, type(question).__name__)
                continue
            normalized[str(question_id)] = self.normalize_question(str(question_id), question)
        return normalized

    def default_weights(self, question: RawQuestion) -> dict[str, dict[str, float]]:
        """Default weights: Likert template or zero-fill for the own category."""
        is_likert = all(option in LIKERT_WEIGHTS for option in question.options)
        own_map = {
            option: (LIKERT_WEIGHTS[option] if is_likert else 0.0)
            for option in question.options
        }
        return {
            category: (dict(own_map) if category == question.category else {})
            for category in CATEGORIES
        }

    def _as_raw_question(self, question: Any) -> RawQuestion:
        """Coerce any question-like value into a RawQuestion."""
        if isinstance(question, RawQuestion):
            return question
        if isinstance(question, Mapping):
            return RawQuestion.from_mapping(question)
        return RawQuestion()

    def _coerce_weights(self, raw_weights: Any) -> Optional[dict[str, dict[str, float]]]:
        """Keep a keyed weights mapping, or None when absent/malformed."""
        if not isinstance(raw_weights, Mapping):
            return None

        unknown = [key for key in raw_weights if key not in CATEGORIES]
        if unknown:
            logger.debug("Dropping weights for unknown categories: %s", unknown)

        weights: dict[str, dict[str, float]] = {}
        for category in CATEGORIES:
            option_map = raw_weights.get(category)
            if not isinstance(option_map, Mapping):
                weights[category] = {}
                continue
            weights[category] = {}
            for option, raw_impact in option_map.items():
                impact = _as_impact(raw_impact)
                if impact is not None:
                    weights[category][str(option)] = impact
            if len(weights[category]) != len(option_map):
                logger.debug("Dropped non-numeric %s weights", category)
        return weights

    def _complete_weights(self, weights: dict[str, dict[str, float]], options: list[str]) -> None:
        """Fill options missing from any non-empty category map with 0."""
        for category in CATEGORIES:
            option_map = weights.get(category)
            if option_map:
                for option in options:
                    option_map.setdefault(option, 0.0)

    def _coerce_risk_tags(self, raw_tags: Any) -> dict[str, dict[str, int]]:
        """Keep tag -> option -> non-negative integer increment entries."""
        if not isinstance(raw_tags, Mapping):
            if raw_tags is not None:
                logger.debug("Malformed risk_tags %r replaced with {}", type(raw_tags).__name__)
            return {}

        risk_tags: dict[str, dict[str, int]] = {}
        for tag, option_map in raw_tags.items():
            if not isinstance(option_map, Mapping):
                continue
            increments = {}
            for option, increment in option_map.items():
                if _is_number(increment) and increment >= 0 and float(increment).is_integer():
                    increments[str(option)] = int(increment)
            risk_tags[str(tag)] = increments
        return risk_tags

    def _coerce_rationale(self, raw_rationale: Any) -> dict[str, str]:
        """Keep option -> note entries whose note is text."""
        if not isinstance(raw_rationale, Mapping):
            if raw_rationale is not None:
                logger.debug("Malformed rationale %r replaced with {}", type(raw_rationale).__name__)
            return {}
        return {
            str(option): note
            for option, note in raw_rationale.items()
            if isinstance(note, str)
        }


def normalize(question: Any) -> CanonicalPattern:
    """Normalize the scoring pattern of a single question."""
    return PatternNormalizer().normalize(question)


def load_question_payload(text: str) -> dict[str, Any]:
    """Parse generator output into a mapping of question id -> question.

    Args:
        text: Raw generator output, optionally wrapped in a ```json fence.

    Returns:
        The decoded question mapping (not yet normalized).

    Raises:
        QuestionPayloadError: If the text is not a JSON object.
    """
    json_string = text.strip()
    fence = CODE_FENCE_PATTERN.search(text)
    if fence:
        json_string = fence.group(1).strip()

    try:
        data = json.loads(json_string)
    except json.JSONDecodeError as e:
        raise QuestionPayloadError(f"Question payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise QuestionPayloadError(
            f"Question payload must be a JSON object keyed by question id, got {type(data).__name__}"
        )
    return data


def load_question_file(file_path: str) -> dict[str, Any]:
    """Load a question payload from disk.

    Raises:
        QuestionPayloadError: If the file is missing or not a question object.
    """
    path = Path(file_path)
    if not path.exists():
        raise QuestionPayloadError(f"Question file not found: {file_path}")

    with open(path, "r", encoding="utf-8") as f:
        return load_question_payload(f.read())
