"""Ivy Portfolio moving-average signal reports."""

__version__ = "0.1.0"
