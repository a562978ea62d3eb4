"""Routing feedback intake and corpus promotion."""

from .feedback_loop import FeedbackEntry, FeedbackLoop, FeedbackType

__all__ = ["FeedbackEntry", "FeedbackLoop", "FeedbackType"]
