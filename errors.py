"""
Exception types shared by the recognition pipeline.

  ConfigurationError     — credentials / engine id missing. Fatal, raised
                           before any network call.
  AnnotationServiceError — Vision API unreachable or returned garbage. Fatal.
  SearchQueryError       — one Custom Search call failed. Never fatal: the
                           aggregator logs it and moves on to the next query.
  RecognitionError       — the single failure recognize() surfaces to callers,
                           always chained to one of the above.
"""
from __future__ import annotations


class ServiceError(Exception):
    """Base class for failures talking to an external service."""


class ConfigurationError(ServiceError):
    pass


class AnnotationServiceError(ServiceError):
    pass


class SearchQueryError(ServiceError):
    def __init__(self, query: str, message: str) -> None:
        super().__init__(f"Search query '{query}' failed: {message}")
        self.query = query


class RecognitionError(Exception):
    """Raised by recognizer.recognize() when no result can be produced."""
