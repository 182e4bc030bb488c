"""
Keyword-spotting term handling for kws_twv_scorer.

Provides the term value object, the reference/hypothesis aligner,
alignment tables and term-list readers.
"""

__version__ = "1.0.0"

from src.kws.aligner import KwsTermsAligner, KwsTermsAlignerOptions, center_distance_score, overlap_score
from src.kws.alignment import DetectionDecision, FalseAlarm, KwsAlignment, Matched, Miss
from src.kws.errors import ConfigError, KwsError, TermValidationError, TwvConfigurationError
from src.kws.term import KwsTerm

__all__ = [
    "ConfigError",
    "DetectionDecision",
    "FalseAlarm",
    "KwsAlignment",
    "KwsError",
    "KwsTerm",
    "KwsTermsAligner",
    "KwsTermsAlignerOptions",
    "Matched",
    "Miss",
    "TermValidationError",
    "TwvConfigurationError",
    "center_distance_score",
    "overlap_score",
]
