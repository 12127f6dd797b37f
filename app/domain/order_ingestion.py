"""
app/domain/order_ingestion.py

Domain models used by the order CSV ingestion flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class DataSource(str, Enum):
    """
    Known upstream export schemas.

    Declaration order is the registration order used for tie-breaks.
    """

    COLORMI = "colormi"
    TABECHOKU = "tabechoku"
    UNKNOWN = "unknown"

    @classmethod
    def from_hint(cls, value: str | None) -> DataSource | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if not normalized:
            return None
        for member in cls:
            if member.value == normalized:
                return member
        return None


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class DiagnosticCategory(str, Enum):
    ENCODING = "ENCODING"
    MISSING_FIELDS = "MISSING_FIELDS"
    FILE_FORMAT = "FILE_FORMAT"
    DATA_VALIDATION = "DATA_VALIDATION"
    DUPLICATE = "DUPLICATE"
    UNKNOWN = "UNKNOWN"


class BatchPolicy(str, Enum):
    """
    How row validation failures affect the rest of the batch.
    """

    PARTIAL = "partial"
    REJECT_ALL = "reject_all"


class SkipReason(str, Enum):
    DUPLICATE = "duplicate"
    VALIDATION = "validation"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class RawUpload:
    """
    One uploaded file, fully materialized in memory.
    """

    content: bytes
    filename: str
    source_hint: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class EncodingAttempt:
    encoding: str
    success: bool
    score: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class EncodingDetectionResult:
    """
    Outcome of byte-encoding inference and decoding.
    """

    detected_encoding: str
    confidence: float
    text: str
    is_likely_localized_script: bool
    has_garbled_text: bool
    bom_detected: bool = False
    encoding_attempts: tuple[EncodingAttempt, ...] = ()


@dataclass(frozen=True)
class HeaderAnalysisResult:
    """
    Parsed header tokens and per-schema match scores.
    """

    headers: tuple[str, ...]
    match_scores: dict[DataSource, float]
    data_source: DataSource
    has_required_fields: bool
    missing_fields: frozenset[str]

    @property
    def best_score(self) -> float:
        return max(self.match_scores.values(), default=0.0)


@dataclass(frozen=True)
class RawRow:
    """
    One data row keyed by header token.

    ``line_number`` counts data rows from 1 (header excluded).
    """

    values: dict[str, str]
    line_number: int


@dataclass(frozen=True)
class CanonicalOrderRecord:
    """
    Schema-independent representation of one order row.
    """

    order_code: str
    customer_name: str
    price: int
    order_date: date
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    delivery_date: date | None = None
    source: DataSource = DataSource.UNKNOWN

    def snapshot(self) -> dict[str, Any]:
        return {
            "order_code": self.order_code,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "address": self.address,
            "price": self.price,
            "order_date": self.order_date.isoformat(),
            "delivery_date": self.delivery_date.isoformat() if self.delivery_date else None,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class RowValidationError:
    """
    One row validation error detail.
    """

    line_number: int
    field: str
    message: str
    value: str | None = None

    def render(self) -> str:
        return f"Row {self.line_number}: {self.field}: {self.message}"


@dataclass(frozen=True)
class RowResult:
    """
    Either a normalized record or the errors that prevented one.
    """

    line_number: int
    record: CanonicalOrderRecord | None
    errors: tuple[RowValidationError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.record is not None and not self.errors


@dataclass(frozen=True)
class InsertResult:
    success: bool
    reason: str | None = None


@dataclass(frozen=True)
class Diagnostic:
    """
    Structured, user-facing description of a failure or notable outcome.
    """

    severity: Severity
    category: DiagnosticCategory
    code: str
    title: str
    message: str
    suggestions: tuple[str, ...] = ()
    details: dict[str, Any] | None = None
    debug: dict[str, Any] | None = None

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_payload(self, *, include_debug: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "severity": self.severity.value,
            "category": self.category.value,
            "code": self.code,
            "title": self.title,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "details": self.details,
        }
        if include_debug and self.debug is not None:
            payload["debug"] = self.debug
        return payload


@dataclass(frozen=True)
class SkipDetail:
    """
    One row that was not persisted, and why.
    """

    line_number: int
    order_code: str | None
    reason: SkipReason
    message: str
    existing: dict[str, Any] | None = None
    incoming: dict[str, Any] | None = None


@dataclass(frozen=True)
class IngestionOutcome:
    """
    End-of-run ingestion summary.
    """

    request_id: str
    registered_count: int
    skipped_count: int
    duplicate_count: int = 0
    error_count: int = 0
    total_rows: int = 0
    aborted: bool = False
    data_source: DataSource | None = None
    detected_encoding: str | None = None
    batch_policy: BatchPolicy = BatchPolicy.PARTIAL
    skipped_details: list[SkipDetail] = field(default_factory=list)
    validation_errors: list[RowValidationError] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def critical_diagnostic(self) -> Diagnostic | None:
        for diagnostic in self.diagnostics:
            if diagnostic.is_critical:
                return diagnostic
        return None
