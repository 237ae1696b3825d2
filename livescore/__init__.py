"""
Live Cricket Scoring Engine

Scoring state machine, derived rates and persistence for live cricket
matches: innings transitions, over/ball arithmetic, win determination
and match-level statistics.
"""

__version__ = "0.1.0"
