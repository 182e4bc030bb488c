"""
Evaluation utilities for kws_twv_scorer.

Provides the Term-Weighted Value family of keyword search metrics
(ATWV, STWV, MTWV, OTWV).
"""

__version__ = "1.0.0"

from src.evaluation.twv import KeywordStats, OracleMeasures, TwvMetrics, TwvMetricsOptions

__all__ = ["KeywordStats", "OracleMeasures", "TwvMetrics", "TwvMetricsOptions"]
