import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.core import schemas
from app.core.config import settings
from app.core.errors import ReportError, ValidationError
from app.core.report.pipeline import produce_report
from app.core.warehouse import Warehouse, get_warehouse

router = APIRouter(prefix="/api", tags=["Query"])

warehouse_dep = Annotated[Warehouse, Depends(get_warehouse)]


def _error_detail(error: Exception) -> str:
    detail = str(error)
    # Development builds also show what went wrong underneath
    if settings.is_development and error.__cause__ is not None:
        detail += f" ({type(error.__cause__).__name__}: {error.__cause__})"
    return detail


@router.post("/query", response_model=schemas.QueryResponse)
async def answer_question(payload: schemas.QueryRequest, warehouse: warehouse_dep):
    """
    Answer a free-form question about the sales data:
    introspect -> classify -> plan -> execute -> summarize.
    """
    try:
        introspection = await warehouse.analyze_schema()
        result = await produce_report(
            payload.question, introspection, warehouse.execute_query
        )
    except ValidationError as error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(error))
    except ReportError as error:
        logging.error(f"Failed to answer question {payload.question!r}: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_detail(error),
        )

    return schemas.QueryResponse(
        question=result.question,
        question_type=result.intent,
        sql_query=result.sql,
        data=result.data,
        response=result.report.narrative,
        visualization=result.report.visualization,
    )
