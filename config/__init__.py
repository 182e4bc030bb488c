"""
Configuration module for kws_twv_scorer.

Contains the YAML configuration loader, its dataclasses and the
scoring presets.
"""

__version__ = "1.0.0"
