"""Cyber risk scoring: pattern normalization and session report engine."""

from .engine import ScoringEngine, score
from .normalizer import PatternNormalizer, normalize
from .schema import AnswerForScoring, CanonicalPattern, Report

__all__ = [
    'ScoringEngine',
    'score',
    'PatternNormalizer',
    'normalize',
    'AnswerForScoring',
    'CanonicalPattern',
    'Report',
]
