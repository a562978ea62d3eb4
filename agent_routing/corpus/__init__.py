"""Versioned example corpus."""

from .example_corpus import CorpusChanges, CorpusSnapshot, ExampleCorpus, RoutingExample

__all__ = ["CorpusChanges", "CorpusSnapshot", "ExampleCorpus", "RoutingExample"]
