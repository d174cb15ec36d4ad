"""In-memory canonical question store.

Holds normalized questions keyed by their stable identifier. Updates are
upserts: a known id keeps its identity and gets its version bumped.
"""

import logging
from typing import Any, Iterator, Mapping, Optional

from .normalizer import PatternNormalizer
from .schema import NormalizedQuestion

logger = logging.getLogger(__name__)


class QuestionBank:
    """Canonical questions keyed by question id."""

    def __init__(self, normalizer: Optional[PatternNormalizer] = None):
        self.normalizer = normalizer or PatternNormalizer()
        self._questions: dict[str, NormalizedQuestion] = {}

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._questions

    def __iter__(self) -> Iterator[NormalizedQuestion]:
        return iter(self._questions.values())

    def get(self, question_id: str) -> Optional[NormalizedQuestion]:
        return self._questions.get(question_id)

    def upsert(self, questions: Mapping[str, Any]) -> int:
        """Normalize and store a batch of question updates.

        Args:
            questions: Raw questions keyed by id, as supplied by the content source.

        Returns:
            Number of questions written.
        """
        normalized = self.normalizer.normalize_batch(questions)
        for question_id, question in normalized.items():
            existing = self._questions.get(question_id)
            if existing is not None:
                question = question.model_copy(update={"version": existing.version + 1})
            self._questions[question_id] = question

        logger.info("Synced %d questions (%d in bank)", len(normalized), len(self._questions))
        return len(normalized)

    def to_payload(self) -> dict[str, dict[str, Any]]:
        """Dump the bank as a question payload keyed by id.

        The output can be fed back through ``upsert``; patterns are already
        canonical so re-normalizing leaves them unchanged.
        """
        payload = {}
        for question_id, question in self._questions.items():
            payload[question_id] = {
                "text": question.text,
                "options": question.options,
                "category": question.category,
                "patterns": question.pattern.as_raw_payload(),
                "tags": question.tags,
                "version": question.version,
            }
        return payload
