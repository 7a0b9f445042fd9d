"""Shaheen Namaz attendance toolkit: streaks, chilla eligibility, certificates and reports."""

__version__ = "0.1.0"
