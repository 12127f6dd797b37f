"""
app/schemas/order_ingestion.py

Response schemas for order upload endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.domain.order_ingestion import IngestionOutcome


class DiagnosticResponse(BaseModel):
    """
    API response model for one structured diagnostic.
    """

    severity: str
    category: str
    code: str
    title: str
    message: str
    suggestions: list[str] = Field(default_factory=list)
    details: dict[str, Any] | None = None
    debug: dict[str, Any] | None = None


class SkippedRowResponse(BaseModel):
    line_number: int = Field(..., ge=1)
    order_code: str | None = None
    reason: str
    message: str
    existing: dict[str, Any] | None = None
    incoming: dict[str, Any] | None = None


class RowValidationErrorResponse(BaseModel):
    line_number: int = Field(..., ge=1)
    field: str
    message: str
    value: str | None = None


class OrderIngestionResponse(BaseModel):
    """
    API response model for one order upload.

    Counts are always present; when ``aborted`` is true the critical
    diagnostic explains why processing stopped.
    """

    request_id: str
    success: bool
    aborted: bool
    data_source: str | None = None
    detected_encoding: str | None = None
    batch_policy: str
    total_rows: int = Field(..., ge=0)
    registered_count: int = Field(..., ge=0)
    skipped_count: int = Field(..., ge=0)
    duplicate_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    skipped_details: list[SkippedRowResponse] = Field(default_factory=list)
    validation_errors: list[RowValidationErrorResponse] = Field(default_factory=list)
    diagnostics: list[DiagnosticResponse] = Field(default_factory=list)

    @classmethod
    def from_outcome(
        cls,
        outcome: IngestionOutcome,
        *,
        include_debug: bool = False,
    ) -> OrderIngestionResponse:
        return cls(
            request_id=outcome.request_id,
            success=not outcome.aborted,
            aborted=outcome.aborted,
            data_source=outcome.data_source.value if outcome.data_source else None,
            detected_encoding=outcome.detected_encoding,
            batch_policy=outcome.batch_policy.value,
            total_rows=outcome.total_rows,
            registered_count=outcome.registered_count,
            skipped_count=outcome.skipped_count,
            duplicate_count=outcome.duplicate_count,
            error_count=outcome.error_count,
            skipped_details=[
                SkippedRowResponse(
                    line_number=detail.line_number,
                    order_code=detail.order_code,
                    reason=detail.reason.value,
                    message=detail.message,
                    existing=detail.existing,
                    incoming=detail.incoming,
                )
                for detail in outcome.skipped_details
            ],
            validation_errors=[
                RowValidationErrorResponse(
                    line_number=error.line_number,
                    field=error.field,
                    message=error.message,
                    value=error.value,
                )
                for error in outcome.validation_errors
            ],
            diagnostics=[
                DiagnosticResponse(**diagnostic.to_payload(include_debug=include_debug))
                for diagnostic in outcome.diagnostics
            ],
        )


class HealthResponse(BaseModel):
    status: str
    service: str
