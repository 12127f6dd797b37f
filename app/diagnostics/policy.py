"""
app/diagnostics/policy.py

Severity and halting rules for ingestion diagnostics.
"""

from __future__ import annotations

from app.domain.order_ingestion import (
    BatchPolicy,
    Diagnostic,
    DiagnosticCategory,
    EncodingDetectionResult,
    Severity,
)

DEFAULT_MIN_ENCODING_CONFIDENCE = 0.3

SEVERITY_BY_CATEGORY: dict[DiagnosticCategory, Severity] = {
    DiagnosticCategory.ENCODING: Severity.CRITICAL,
    DiagnosticCategory.MISSING_FIELDS: Severity.CRITICAL,
    DiagnosticCategory.FILE_FORMAT: Severity.CRITICAL,
    DiagnosticCategory.DUPLICATE: Severity.INFO,
    DiagnosticCategory.UNKNOWN: Severity.CRITICAL,
}

# Categories caused by the uploaded file rather than by the service.
CLIENT_FAULT_CATEGORIES: frozenset[DiagnosticCategory] = frozenset(
    {
        DiagnosticCategory.ENCODING,
        DiagnosticCategory.MISSING_FIELDS,
        DiagnosticCategory.FILE_FORMAT,
        DiagnosticCategory.DATA_VALIDATION,
    }
)


def data_validation_severity(batch_policy: BatchPolicy) -> Severity:
    if batch_policy is BatchPolicy.REJECT_ALL:
        return Severity.CRITICAL
    return Severity.WARNING


def severity_for(
    category: DiagnosticCategory,
    *,
    batch_policy: BatchPolicy = BatchPolicy.PARTIAL,
) -> Severity:
    if category is DiagnosticCategory.DATA_VALIDATION:
        return data_validation_severity(batch_policy)
    return SEVERITY_BY_CATEGORY[category]


def is_encoding_unrecoverable(
    result: EncodingDetectionResult,
    min_confidence: float = DEFAULT_MIN_ENCODING_CONFIDENCE,
) -> bool:
    return result.has_garbled_text or result.confidence < min_confidence


def halts(diagnostic: Diagnostic) -> bool:
    """
    True when the diagnostic must stop the pipeline before persistence.
    """

    return diagnostic.severity is Severity.CRITICAL


def is_client_fault(diagnostic: Diagnostic) -> bool:
    return diagnostic.category in CLIENT_FAULT_CATEGORIES
