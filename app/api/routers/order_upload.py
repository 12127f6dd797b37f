"""
app/api/routers/order_upload.py

Order CSV upload HTTP endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from app.api.dependencies import get_category_repository, get_order_upload, get_owner_id
from app.diagnostics.policy import is_client_fault
from app.domain.order_ingestion import IngestionOutcome, RawUpload
from app.repositories.category_repository import CategoryRepository
from app.schemas.order_ingestion import OrderIngestionResponse
from app.services.order_ingestion_service import (
    OrderIngestionService,
    get_order_ingestion_service,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _status_for(outcome: IngestionOutcome) -> int:
    critical = outcome.critical_diagnostic
    if critical is None:
        return status.HTTP_200_OK
    if is_client_fault(critical):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@router.post(
    "/upload",
    response_model=OrderIngestionResponse,
    responses={
        400: {"model": OrderIngestionResponse, "description": "The file was rejected."},
        500: {"model": OrderIngestionResponse, "description": "Unexpected ingestion failure."},
    },
)
def upload_orders(
    file: UploadFile = Depends(get_order_upload),
    category_id: int | None = Form(default=None),
    data_source: str | None = Form(default=None),
    owner_id: str = Depends(get_owner_id),
    categories: CategoryRepository = Depends(get_category_repository),
    ingestion_service: OrderIngestionService = Depends(get_order_ingestion_service),
) -> JSONResponse:
    """
    Ingest one order export file for the calling owner.
    """

    if category_id is not None and not categories.belongs_to(owner_id, category_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found.",
        )

    upload = RawUpload(
        content=file.file.read(),
        filename=file.filename or "",
        source_hint=data_source,
    )
    outcome = ingestion_service.ingest(upload, owner_id=owner_id, grouping_id=category_id)

    response = OrderIngestionResponse.from_outcome(
        outcome,
        include_debug=ingestion_service.diagnostics.debug_mode,
    )
    return JSONResponse(
        status_code=_status_for(outcome),
        content=response.model_dump(mode="json"),
    )
