import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List

from app.core.errors import ReportError, ReportGenerationError, ValidationError
from app.core.report.catalog import RawSchemaInfo, build_catalog
from app.core.report.classify import classify
from app.core.report.plan import plan
from app.core.report.summarize import summarize
from app.core.schemas import ReportResult


# -----------------------------------------------------------------------------
# PIPELINE MODULE - Orchestration
# Purpose: run catalog -> classify -> plan -> execute -> summarize for one question
# Any failing step stops the run and is reported as a single error; no partial reports
# -----------------------------------------------------------------------------


QueryExecutor = Callable[[str], Awaitable[List[Dict[str, Any]]]]


# Configure logging for pipeline
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ReportLogger:
    """Step log for a single question."""

    def __init__(self, question: str):
        self.question = question
        self.start_time = datetime.now()
        self.logs = []

    def log(self, step: str, message: str, level: str = "info"):
        """Record a step message and mirror it to the module logger."""
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "step": step,
            "message": message,
            "level": level,
            "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
        }
        self.logs.append(log_entry)

        if level == "error":
            logger.error(f"[Report] {step}: {message}")
        elif level == "warning":
            logger.warning(f"[Report] {step}: {message}")
        else:
            logger.info(f"[Report] {step}: {message}")

    def get_summary(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "duration_seconds": (datetime.now() - self.start_time).total_seconds(),
            "steps": [entry["step"] for entry in self.logs],
            "logs": self.logs,
        }


def _fail(report_logger: ReportLogger, step: str, error: Exception) -> ReportGenerationError:
    report_logger.log(step, f"Failed: {error}", "error")
    if isinstance(error, ReportError):
        message = str(error)
    else:
        message = f"Unexpected error during {step}: {error}"
    return ReportGenerationError(step, message)


async def produce_report(
    question: str,
    introspection: RawSchemaInfo,
    execute_query: QueryExecutor,
) -> ReportResult:
    """
    Answer one question end to end.

    Args:
        question: free-form question text
        introspection: {table_name: [{column_name, data_type, sampleValues}]}
        execute_query: async callable running SQL and returning row dicts

    Returns:
        ReportResult with the intent, the SQL that ran, the raw rows and the report

    Raises:
        ValidationError: question is empty (checked before anything runs)
        ReportGenerationError: any step failed; the original error is chained
    """
    if not question or not question.strip():
        raise ValidationError("Question is required")

    report_logger = ReportLogger(question)

    try:
        catalog = build_catalog(introspection)
    except Exception as error:
        raise _fail(report_logger, "catalog", error) from error
    resolved = ", ".join(f"{role.value}={table.name}" for role, table in catalog.tables.items())
    report_logger.log("catalog", f"Resolved tables: {resolved or 'none'}")

    try:
        intent = classify(question)
    except Exception as error:
        raise _fail(report_logger, "classify", error) from error
    report_logger.log("classify", f"Question classified as {intent.value}")

    try:
        query_plan = plan(intent, catalog)
    except Exception as error:
        raise _fail(report_logger, "plan", error) from error
    report_logger.log("plan", f"Planned {query_plan.visualization.value} query")

    try:
        rows = await execute_query(query_plan.sql)
    except Exception as error:
        raise _fail(report_logger, "execute", error) from error
    report_logger.log("execute", f"Query returned {len(rows)} rows")

    try:
        report = summarize(intent, rows)
    except Exception as error:
        raise _fail(report_logger, "summarize", error) from error
    report_logger.log("summarize", "Report ready")

    logger.debug(f"Report run summary: {report_logger.get_summary()}")

    return ReportResult(
        question=question,
        intent=intent,
        sql=query_plan.sql,
        data=rows,
        report=report,
    )
