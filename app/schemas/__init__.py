"""
app/schemas package marker.
"""

from app.schemas.order_ingestion import (
    DiagnosticResponse,
    HealthResponse,
    OrderIngestionResponse,
    RowValidationErrorResponse,
    SkippedRowResponse,
)

__all__ = [
    "DiagnosticResponse",
    "HealthResponse",
    "OrderIngestionResponse",
    "RowValidationErrorResponse",
    "SkippedRowResponse",
]
