"""Feedback insight pipeline: analysis, topic deduplication, summaries and cost tracking."""

__version__ = "0.1.0"
