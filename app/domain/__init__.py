"""
app/domain package marker.
"""

from app.domain.order_ingestion import (
    BatchPolicy,
    CanonicalOrderRecord,
    DataSource,
    Diagnostic,
    DiagnosticCategory,
    IngestionOutcome,
    RawUpload,
    RowValidationError,
    Severity,
)

__all__ = [
    "BatchPolicy",
    "CanonicalOrderRecord",
    "DataSource",
    "Diagnostic",
    "DiagnosticCategory",
    "IngestionOutcome",
    "RawUpload",
    "RowValidationError",
    "Severity",
]
