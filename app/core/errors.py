"""
Errors raised by the question-to-report pipeline.

Every stage raises a subclass of ReportError. The orchestrator wraps anything
that escapes a stage into a single ReportGenerationError, so callers only ever
see one failure per question and never a half-built report.
"""

from typing import Iterable, Optional


class ReportError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(ReportError):
    """The question is missing or blank."""


class SchemaResolutionError(ReportError):
    """A table role needed by a query could not be found in the catalog."""

    def __init__(self, roles: Iterable[str], intent: Optional[str] = None):
        self.roles = sorted(roles)
        self.intent = intent
        joined = ", ".join(self.roles)
        message = f"Could not find a table for role(s): {joined}"
        if intent:
            message += f" (needed by '{intent}')"
        super().__init__(message)


class QueryExecutionError(ReportError):
    """The database rejected the query, timed out, or could not be reached."""


class SummarizationError(ReportError):
    """Result rows do not have the shape the report expects."""


class ReportGenerationError(ReportError):
    """
    Single user-facing failure for a question.

    Attributes:
        stage: pipeline step that failed ("catalog", "classify", "plan",
            "execute" or "summarize")
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message)
