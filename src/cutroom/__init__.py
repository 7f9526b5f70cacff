"""Cutroom — project lifecycle and revision access control for video production."""

__version__ = "0.1.0"
