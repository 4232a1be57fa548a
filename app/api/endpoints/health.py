import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.core import schemas
from app.core.warehouse import Warehouse, get_warehouse

router = APIRouter(tags=["Health"])


@router.get("/test-db", response_model=schemas.HealthResponse)
async def test_db(warehouse: Annotated[Warehouse, Depends(get_warehouse)]):
    """Check the database connection by asking for its current time."""
    try:
        return {"time": await warehouse.current_time()}
    except (SQLAlchemyError, OSError) as error:
        logging.error(f"Database connection failed: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database connection failed",
        )
