"""Exam document segmentation, answer reconciliation and score aggregation."""

__version__ = "1.0.0"
