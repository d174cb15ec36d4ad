"""Scoring Engine - ties normalization, scoring and explanation together.

Usage:
    engine = ScoringEngine()
    engine.load_questions("questions.json")
    report = engine.score_session(load_session_file("answers.json"))
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from .config import ConfidencePolicy, ScorerConfig, ScoringPolicy, get_config
from .explainer import ReportExplainer
from .normalizer import PatternNormalizer, load_question_file
from .question_bank import QuestionBank
from .schema import (
    CATEGORIES,
    AnswerForScoring,
    AnswerRecord,
    QuestionPayloadError,
    RawQuestion,
    Report,
    SessionAnswers,
    SessionValidationError,
)
from .scorer import RiskScorer

logger = logging.getLogger(__name__)


class ScoringEngine:
    """Scores completed assessment sessions against a question bank.

    The engine itself is a pure function of its inputs: scoring the same
    answers twice yields equal reports, so callers may upsert the result
    keyed by session.
    """

    def __init__(self, config: Optional[ScorerConfig] = None):
        self.config = config or get_config()
        self.normalizer = PatternNormalizer()
        self.question_bank = QuestionBank(self.normalizer)
        self.scorer = RiskScorer(self.config.scoring_policy, self.config.confidence_policy)
        self.explainer = ReportExplainer()

    def sync_questions(self, questions: Mapping[str, Any]) -> int:
        """Normalize and upsert a batch of question updates."""
        return self.question_bank.upsert(questions)

    def load_questions(self, file_path: str) -> int:
        """Load generator output from disk into the question bank."""
        return self.sync_questions(load_question_file(file_path))

    def build_session_answers(self, records: Iterable[AnswerRecord]) -> list[AnswerForScoring]:
        """Join answer records with their canonical questions, in answer order.

        Raises:
            SessionValidationError: If a record references an unknown question
                or a question outside the fixed categories.
        """
        answers = []
        for record in records:
            question = self.question_bank.get(record.question_id)
            if question is None:
                raise SessionValidationError(f"Unknown question: {record.question_id}")
            if question.category not in CATEGORIES:
                raise SessionValidationError(
                    f"Question {record.question_id} has unscorable category "
                    f"'{question.category}' (expected one of {', '.join(CATEGORIES)})"
                )
            if record.answer_text not in question.options:
                logger.debug("Answer %r is not an option of %s", record.answer_text, record.question_id)

            answers.append(AnswerForScoring(
                category=question.category,
                pattern=question.pattern,
                chosen_option=record.answer_text,
                question_text=question.text,
            ))
        return answers

    def score(self, answers: Iterable[AnswerForScoring], session_id: Optional[str] = None) -> Report:
        """Score already-joined answers and build the report."""
        breakdown = self.scorer.score(answers)
        report = self.explainer.build_report(breakdown, session_id=session_id)
        logger.info(
            "Report generated for session %s: overall %d%%, confidence %d%%",
            session_id or "<unnamed>", report.overall_score, report.confidence,
        )
        return report

    def score_session(self, session: SessionAnswers, session_id: Optional[str] = None) -> Report:
        """Score a finalized session's answer records."""
        answers = self.build_session_answers(session.answers)
        return self.score(answers, session_id=session_id or session.session_id)


def score(
    answers: Iterable[AnswerForScoring],
    policy: Optional[ScoringPolicy] = None,
    confidence_policy: Optional[ConfidencePolicy] = None,
) -> Report:
    """Score one session's answers with the given (or configured) policies."""
    scorer = RiskScorer(policy, confidence_policy)
    return ReportExplainer().build_report(scorer.score(answers))


def load_session_file(file_path: str) -> SessionAnswers:
    """Load a session's answers from disk.

    Accepts either ``{"session_id": ..., "answers": [...]}`` or a bare list
    of answer records.

    Raises:
        ValueError: If the file is missing or malformed.
    """
    path = Path(file_path)
    if not path.exists():
        raise ValueError(f"Answers file not found: {file_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        data = {"answers": data}
    return SessionAnswers.model_validate(data)


def validate_questions(file_path: str) -> tuple[bool, list[str]]:
    """Validate a question payload file.

    Returns:
        Tuple of (is_valid, list of issues)
    """
    issues = []
    try:
        questions = load_question_file(file_path)
    except QuestionPayloadError as e:
        return False, [str(e)]

    if not questions:
        issues.append("No questions found")

    for question_id, question in questions.items():
        if not isinstance(question, Mapping):
            issues.append(f"{question_id}: question must be an object")
            continue
        raw = RawQuestion.from_mapping(question)
        if not raw.text:
            issues.append(f"{question_id}: missing question text")
        if not raw.options:
            issues.append(f"{question_id}: no answer options")
        if raw.category not in CATEGORIES:
            issues.append(f"{question_id}: category '{raw.category}' is not scorable")

    return len(issues) == 0, issues


def validate_answers(file_path: str, questions_path: Optional[str] = None) -> tuple[bool, list[str]]:
    """Validate an answers file, optionally against a question payload.

    Returns:
        Tuple of (is_valid, list of issues)
    """
    try:
        session = load_session_file(file_path)
    except json.JSONDecodeError as e:
        return False, [f"Invalid JSON: {e}"]
    except ValidationError as e:
        return False, [f"Schema validation failed: {e.error_count()} errors"]
    except ValueError as e:
        return False, [str(e)]

    issues = []
    if not session.answers:
        issues.append("No answers recorded")

    if questions_path:
        try:
            questions = load_question_file(questions_path)
        except QuestionPayloadError as e:
            return False, issues + [str(e)]

        bank = QuestionBank()
        bank.upsert(questions)
        for record in session.answers:
            question = bank.get(record.question_id)
            if question is None:
                issues.append(f"Unknown question: {record.question_id}")
            elif record.answer_text not in question.options:
                issues.append(f"{record.question_id}: '{record.answer_text}' is not an answer option")

    return len(issues) == 0, issues
