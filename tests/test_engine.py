"""End-to-end tests for the scoring engine.

Exercises the full pipeline: generator payload -> question bank ->
answer join -> scoring -> report.
"""

import json

import pytest
from pydantic import ValidationError

from risk_scorer.config import ConfidencePolicy, ScorerConfig, ScoringPolicy
from risk_scorer.engine import (
    ScoringEngine,
    load_session_file,
    score,
    validate_answers,
    validate_questions,
)
from risk_scorer.schema import (
    LIKERT_SCALE,
    AnswerForScoring,
    AnswerRecord,
    SessionAnswers,
    SessionValidationError,
)


QUESTIONS = {
    "mfa-usage": {
        "text": "I use multi-factor authentication on every work account.",
        "options": list(LIKERT_SCALE),
        "category": "technical",
        "patterns": {"critical": True},
    },
    "invoice-link": {
        "text": "What do you do with an unexpected invoice link?",
        "options": ["Click it", "Hover and check the domain", "Report it"],
        "category": "behavioral",
        "patterns": {
            "weights": {"behavioral": {"Click it": -10, "Report it": 6}},
            "risk_tags": {"phishingAwareness": {"Click it": 1}},
            "rationale": {"Click it": "Unexpected invoices are a common lure."},
        },
    },
    "urgent-ceo": {
        "text": "Your CEO texts asking for gift cards urgently. You...",
        "options": ["Buy them", "Call the CEO directly"],
        "category": "psychological",
        "patterns": "generator returned prose here",
    },
    "household": {
        "text": "Who do you share your devices with?",
        "options": ["Living alone", "Roommates"],
        "category": "background",
    },
}

RISKY_SESSION = SessionAnswers(
    session_id="session-42",
    answers=[
        AnswerRecord(question_id="mfa-usage", answer_text="Strongly disagree"),
        AnswerRecord(question_id="invoice-link", answer_text="Click it"),
        AnswerRecord(question_id="urgent-ceo", answer_text="Buy them"),
    ],
)


@pytest.fixture
def engine():
    engine = ScoringEngine(ScorerConfig())
    engine.sync_questions(QUESTIONS)
    return engine


class TestEndToEndScoring:
    """Full pipeline on a realistic session."""

    def test_risky_session_report(self, engine):
        report = engine.score_session(RISKY_SESSION)

        assert report.session_id == "session-42"
        assert report.category_scores["technical"] == pytest.approx(57.25)
        assert report.category_scores["behavioral"] == pytest.approx(61.5)
        assert report.category_scores["psychological"] == pytest.approx(70)
        assert report.overall_score == 63
        assert report.coverage == 1
        assert report.confidence == 71
        assert report.risk_tag_tallies == {"phishingAwareness": 1}
        assert [(r.priority.value, r.text) for r in report.recommendations] == [
            ("important", "Spend 10 minutes on anti-phishing drills this week; hover links and check domains."),
            ("critical", "Adopt a password manager and enable MFA on email, VPN, and finance apps."),
            ("important", "Schedule quarterly phishing simulations and just-in-time micro-training."),
        ]
        assert report.strengths == []
        assert report.executive_summary == (
            "Overall score 63% (confidence 71%). Tech 57.25%, Behavioral 61.5%, Psychological 70%. "
            "Focus on the recommendations below to lower risk in the next 30 days."
        )
        assert [n.question_text for n in report.rationale] == [QUESTIONS["invoice-link"]["text"]]

    def test_scoring_is_deterministic(self, engine):
        assert engine.score_session(RISKY_SESSION) == engine.score_session(RISKY_SESSION)

    def test_session_id_override(self, engine):
        report = engine.score_session(RISKY_SESSION, session_id="other")
        assert report.session_id == "other"

    def test_answer_outside_options_counts_without_impact(self, engine):
        session = SessionAnswers(answers=[AnswerRecord(question_id="mfa-usage", answer_text="Sometimes")])
        report = engine.score_session(session)
        assert report.answered_counts["technical"] == 1
        assert report.category_scores["technical"] == 70

    def test_resync_keeps_scoring_stable(self, engine):
        before = engine.score_session(RISKY_SESSION)
        engine.sync_questions(engine.question_bank.to_payload())
        assert engine.question_bank.get("mfa-usage").version == 2
        assert engine.score_session(RISKY_SESSION) == before

    def test_custom_policy(self):
        engine = ScoringEngine(ScorerConfig(scoring_policy=ScoringPolicy(baseline=80, damping=1.0)))
        engine.sync_questions(QUESTIONS)
        session = SessionAnswers(answers=[AnswerRecord(question_id="mfa-usage", answer_text="Agree")])
        assert engine.score_session(session).category_scores["technical"] == pytest.approx(84)


class TestSessionValidation:
    """Answers must join to scorable questions."""

    def test_unknown_question(self, engine):
        session = SessionAnswers(answers=[AnswerRecord(question_id="nope", answer_text="Yes")])
        with pytest.raises(SessionValidationError, match="Unknown question: nope"):
            engine.score_session(session)

    def test_unscorable_category(self, engine):
        session = SessionAnswers(answers=[AnswerRecord(question_id="household", answer_text="Roommates")])
        with pytest.raises(SessionValidationError, match="background"):
            engine.score_session(session)

    def test_direct_answer_with_unknown_category(self):
        with pytest.raises(ValidationError):
            AnswerForScoring(category="financial", chosen_option="Yes")

    def test_build_session_answers_preserves_order(self, engine):
        answers = engine.build_session_answers(reversed(RISKY_SESSION.answers))
        assert [a.chosen_option for a in answers] == ["Buy them", "Click it", "Strongly disagree"]
        assert answers[1].pattern.risk_tags == {"phishingAwareness": {"Click it": 1}}


class TestModuleScore:
    """Tests for the module-level score function."""

    def test_baseline_report(self):
        report = score([])
        assert report.category_scores == {"technical": 70, "behavioral": 70, "psychological": 70}
        assert report.overall_score == 70
        assert report.confidence == 40
        assert report.recommendations == []
        assert report.strengths == ["Good phishing vigilance."]

    def test_missing_pattern_is_tolerated(self):
        report = score([AnswerForScoring(category="psychological", chosen_option="Whatever")])
        assert report.answered_counts["psychological"] == 1
        assert report.category_scores["psychological"] == 70

    def test_alternate_policies(self):
        report = score([], ScoringPolicy(baseline=60), ConfidencePolicy(floor=0.5))
        assert report.overall_score == 60
        assert report.confidence == 50
        assert len(report.recommendations) == 3


class TestFiles:
    """Tests for loading and validating files."""

    def test_load_session_file_object(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps(RISKY_SESSION.model_dump()), encoding="utf-8")
        assert load_session_file(str(path)) == RISKY_SESSION

    def test_load_session_file_list(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps([{"question_id": "q1", "answer_text": "Yes"}]), encoding="utf-8")
        session = load_session_file(str(path))
        assert session.session_id is None
        assert session.answers[0].question_id == "q1"

    def test_load_session_file_missing(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            load_session_file(str(tmp_path / "missing.json"))

    def test_load_questions_from_fenced_file(self, tmp_path):
        path = tmp_path / "questions.json"
        path.write_text("```json\n" + json.dumps(QUESTIONS) + "\n```", encoding="utf-8")
        engine = ScoringEngine(ScorerConfig())
        assert engine.load_questions(str(path)) == len(QUESTIONS)

    def test_validate_questions_reports_issues(self, tmp_path):
        path = tmp_path / "questions.json"
        path.write_text(json.dumps({
            **QUESTIONS,
            "empty": {"category": "technical"},
            "broken": "text",
        }), encoding="utf-8")
        is_valid, issues = validate_questions(str(path))
        assert is_valid is False
        assert "household: category 'background' is not scorable" in issues
        assert "empty: missing question text" in issues
        assert "empty: no answer options" in issues
        assert "broken: question must be an object" in issues

    def test_validate_questions_valid(self, tmp_path):
        path = tmp_path / "questions.json"
        scorable = {k: v for k, v in QUESTIONS.items() if k != "household"}
        path.write_text(json.dumps(scorable), encoding="utf-8")
        assert validate_questions(str(path)) == (True, [])

    def test_validate_questions_bad_payload(self, tmp_path):
        path = tmp_path / "questions.json"
        path.write_text("[]", encoding="utf-8")
        is_valid, issues = validate_questions(str(path))
        assert is_valid is False
        assert len(issues) == 1

    def test_validate_answers_against_questions(self, tmp_path):
        questions_path = tmp_path / "questions.json"
        questions_path.write_text(json.dumps(QUESTIONS), encoding="utf-8")
        answers_path = tmp_path / "answers.json"
        answers_path.write_text(json.dumps([
            {"question_id": "mfa-usage", "answer_text": "Agree"},
            {"question_id": "ghost", "answer_text": "Yes"},
            {"question_id": "urgent-ceo", "answer_text": "Ignore"},
        ]), encoding="utf-8")

        is_valid, issues = validate_answers(str(answers_path), str(questions_path))
        assert is_valid is False
        assert issues == [
            "Unknown question: ghost",
            "urgent-ceo: 'Ignore' is not an answer option",
        ]

    def test_validate_answers_schema_error(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps([{"question_id": "q1"}]), encoding="utf-8")
        is_valid, issues = validate_answers(str(path))
        assert is_valid is False
        assert "Schema validation failed" in issues[0]

    def test_validate_answers_invalid_json(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text("{", encoding="utf-8")
        is_valid, issues = validate_answers(str(path))
        assert is_valid is False
        assert issues[0].startswith("Invalid JSON")

    def test_validate_questions_ignores_non_string_keys(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "risk_scorer.engine.load_question_file",
            lambda _path: {"q1": {"text": "Q", "options": ["A"], "category": "technical", 1: "x"}},
        )
        assert validate_questions(str(tmp_path / "questions.json")) == (True, [])

    def test_numeric_answer_fields_are_read_as_text(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps([{"question_id": 1, "answer_text": 2}]), encoding="utf-8")
        session = load_session_file(str(path))
        assert session.answers[0] == AnswerRecord(question_id="1", answer_text="2")

    def test_numeric_question_ids_join_with_answers(self):
        engine = ScoringEngine(ScorerConfig())
        engine.sync_questions({1: {"text": "Q", "options": ["A"], "category": "technical"}})
        session = SessionAnswers.model_validate({"answers": [{"question_id": 1, "answer_text": "A"}]})
        assert engine.score_session(session).answered_counts["technical"] == 1
