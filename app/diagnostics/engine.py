"""
app/diagnostics/engine.py

Translates failure evidence from every pipeline stage into user-facing
Diagnostic objects with concrete remediation steps.

Internal detail (raw exception text, tracebacks, per-encoding attempts) is
only ever placed in ``Diagnostic.debug`` and is dropped from payloads unless
debug mode is enabled.
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping, Sequence
from difflib import SequenceMatcher
from typing import Any

from app.diagnostics.policy import data_validation_severity, severity_for
from app.domain.order_ingestion import (
    BatchPolicy,
    DataSource,
    Diagnostic,
    DiagnosticCategory,
    EncodingDetectionResult,
    HeaderAnalysisResult,
    RowValidationError,
    Severity,
)
from app.mappers.source_classifier import ClassificationDecision
from app.mappers.source_schemas import (
    FIELD_LABELS,
    REQUIRED_FIELDS,
    get_schema,
    normalize_header,
)
from app.validators.file_validator import (
    ALLOWED_EXTENSIONS,
    ISSUE_EMPTY_FILE,
    ISSUE_FILE_TOO_LARGE,
    check_upload,
)
from app.validators.order_validator import (
    MESSAGE_INVALID_DATE,
    MESSAGE_INVALID_PRICE,
    MESSAGE_NEGATIVE_PRICE,
    MESSAGE_REQUIRED,
)

SIMILAR_HEADER_RATIO = 0.6
MAX_HEADERS_SHOWN = 5

SUGGESTION_RESAVE_UTF8 = "Re-save the CSV file with UTF-8 encoding and upload it again."
SUGGESTION_EXCEL_UTF8 = (
    "In Excel: File > Save As (or Export) > choose 'CSV UTF-8 (Comma delimited)'."
)
SUGGESTION_COLORMI_SJIS = (
    "Color Me Shop's default CSV export (Shift_JIS) can be uploaded as-is without conversion."
)
SUGGESTION_CHECK_EDITOR = "Open the file in a text editor and check that the text is not garbled."


class DiagnosticsEngine:
    """
    Builds Diagnostic objects for each failure category.
    """

    def __init__(self, *, max_error_samples: int = 5, debug_mode: bool = False) -> None:
        self._max_error_samples = max(1, max_error_samples)
        self._debug_mode = debug_mode

    @property
    def debug_mode(self) -> bool:
        return self._debug_mode

    # ------------------------------------------------------------------
    # ENCODING
    # ------------------------------------------------------------------

    def diagnose_encoding(
        self,
        result: EncodingDetectionResult,
        *,
        min_confidence: float = 0.3,
    ) -> Diagnostic:
        confidence_pct = round(result.confidence * 100)
        if result.has_garbled_text:
            code = "encoding_garbled"
            message = (
                "The file's characters could not be read correctly; the text is garbled "
                f"(detected encoding: {result.detected_encoding}, confidence {confidence_pct}%)."
            )
        else:
            code = "encoding_low_confidence"
            message = (
                "The file's character encoding could not be determined reliably "
                f"(detected encoding: {result.detected_encoding}, confidence {confidence_pct}%, "
                f"minimum {round(min_confidence * 100)}%)."
            )

        return Diagnostic(
            severity=severity_for(DiagnosticCategory.ENCODING),
            category=DiagnosticCategory.ENCODING,
            code=code,
            title="Character encoding problem",
            message=message,
            suggestions=(
                SUGGESTION_RESAVE_UTF8,
                SUGGESTION_EXCEL_UTF8,
                SUGGESTION_COLORMI_SJIS,
                SUGGESTION_CHECK_EDITOR,
            ),
            details={
                "detected_encoding": result.detected_encoding,
                "confidence": result.confidence,
                "has_garbled_text": result.has_garbled_text,
                "bom_detected": result.bom_detected,
            },
            debug={
                "encoding_attempts": [
                    {
                        "encoding": attempt.encoding,
                        "success": attempt.success,
                        "score": attempt.score,
                        "error": attempt.error,
                    }
                    for attempt in result.encoding_attempts
                ],
                "is_likely_localized_script": result.is_likely_localized_script,
                "text_sample": result.text[:200],
            },
        )

    # ------------------------------------------------------------------
    # MISSING_FIELDS
    # ------------------------------------------------------------------

    def diagnose_missing_fields(
        self,
        analysis: HeaderAnalysisResult,
        data_source: DataSource,
        missing_fields: Sequence[str] | frozenset[str] | None = None,
    ) -> Diagnostic:
        """
        List each missing required field with the spellings accepted for it.

        For an unidentified file the closest-scoring known schema is used as
        the best guess for spellings and export instructions.
        """

        guess = data_source
        if guess is DataSource.UNKNOWN and analysis.best_score > 0:
            guess = max(analysis.match_scores, key=lambda source: analysis.match_scores[source])
        schema = get_schema(guess)

        missing = missing_fields if missing_fields is not None else analysis.missing_fields
        # Keep the canonical order stable for users.
        ordered_missing = [name for name in REQUIRED_FIELDS if name in missing]
        ordered_missing.extend(sorted(name for name in missing if name not in REQUIRED_FIELDS))

        missing_details = []
        similar: dict[str, list[str]] = {}
        for name in ordered_missing:
            spellings = list(schema.accepted_spellings(name))
            candidates = self._similar_headers(analysis.headers, spellings)
            if candidates:
                similar[name] = candidates
            missing_details.append(
                {
                    "field": name,
                    "label": FIELD_LABELS.get(name, name),
                    "accepted_headers": spellings,
                }
            )

        suggestions = list(schema.export_instructions)
        for detail in missing_details:
            suggestions.append(
                f"Add or rename a column for {detail['label']}. Accepted headers: "
                + ", ".join(detail["accepted_headers"])
            )
        for name, candidates in similar.items():
            suggestions.append(
                f"Similar column(s) {', '.join(candidates)} found; rename to an accepted "
                f"header for {FIELD_LABELS.get(name, name)}."
            )
        suggestions.append("Check the header row (line 1) of the CSV file in a text editor or Excel.")

        shown = list(analysis.headers[:MAX_HEADERS_SHOWN])
        labels = ", ".join(FIELD_LABELS.get(name, name) for name in ordered_missing)
        return Diagnostic(
            severity=severity_for(DiagnosticCategory.MISSING_FIELDS),
            category=DiagnosticCategory.MISSING_FIELDS,
            code="missing_required_fields",
            title=f"Required columns are missing ({get_schema(data_source).display_name})",
            message=f"The CSV file is missing required columns: {labels}.",
            suggestions=tuple(suggestions),
            details={
                "data_source": data_source.value,
                "best_guess_source": guess.value,
                "missing_fields": missing_details,
                "similar_headers": similar,
                "detected_headers": shown,
                "header_count": len(analysis.headers),
            },
            debug={
                "headers": list(analysis.headers),
                "match_scores": {
                    source.value: score for source, score in analysis.match_scores.items()
                },
            },
        )

    @staticmethod
    def _similar_headers(headers: Sequence[str], spellings: Sequence[str]) -> list[str]:
        normalized_spellings = [normalize_header(value) for value in spellings if value]
        matches: list[str] = []
        for header in headers:
            key = normalize_header(header)
            if not key:
                continue
            for spelling in normalized_spellings:
                if not spelling:
                    continue
                contained = spelling in key or key in spelling
                ratio = SequenceMatcher(a=key, b=spelling).ratio()
                if contained or ratio >= SIMILAR_HEADER_RATIO:
                    matches.append(header)
                    break
        return matches

    # ------------------------------------------------------------------
    # FILE_FORMAT
    # ------------------------------------------------------------------

    def diagnose_file_format(
        self,
        filename: str | None,
        size: int,
        max_size: int,
    ) -> Diagnostic | None:
        issue = check_upload(filename=filename, size=size, max_bytes=max_size)
        if issue is None:
            return None

        if issue.code == ISSUE_EMPTY_FILE:
            title = "The file is empty"
            suggestions = (
                "Make sure the CSV file contains a header row and order data.",
                "Check that you selected the correct file and that it is not corrupted.",
            )
        elif issue.code == ISSUE_FILE_TOO_LARGE:
            title = "The file is too large"
            suggestions = (
                f"Keep each upload at or below {max_size // (1024 * 1024) or 1} MB.",
                "Split the CSV into several files and upload them separately.",
                "Re-export a shorter date range from the source platform.",
            )
        else:
            title = "Unsupported file type"
            suggestions = (
                f"Upload a CSV file ({', '.join(ALLOWED_EXTENSIONS)}).",
                "For Excel workbooks (.xlsx), use Save As and choose a CSV format.",
            )

        return Diagnostic(
            severity=severity_for(DiagnosticCategory.FILE_FORMAT),
            category=DiagnosticCategory.FILE_FORMAT,
            code=issue.code,
            title=title,
            message=issue.message,
            suggestions=suggestions,
            details=issue.context,
        )

    def diagnose_unreadable_table(
        self,
        exc: Exception | None = None,
        *,
        code: str = "table_unreadable",
    ) -> Diagnostic:
        """
        File decoded but could not be read as a table with data rows.
        """

        if code == "no_data_rows":
            title = "No order rows found"
            message = "The CSV file has a header row but no data rows."
            suggestions: tuple[str, ...] = (
                "Make sure the export contains at least one order.",
                "Check that the export period on the source platform includes orders.",
            )
        elif code == "empty_header":
            title = "Header row not found"
            message = "The first line of the file is empty; a header row is required."
            suggestions = (
                "Make sure line 1 of the CSV contains the column names.",
                "Remove blank lines above the header row.",
            )
        else:
            title = "The CSV file could not be parsed"
            message = "The file's tabular format is invalid."
            suggestions = (
                "Check that quotes (\") are balanced and fields containing commas are quoted.",
                "Open the file in a text editor and check its contents.",
            )

        return Diagnostic(
            severity=severity_for(DiagnosticCategory.FILE_FORMAT),
            category=DiagnosticCategory.FILE_FORMAT,
            code=code,
            title=title,
            message=message,
            suggestions=suggestions,
            debug={"error": str(exc)} if exc is not None else None,
        )

    def diagnose_source_fallback(self, decision: ClassificationDecision) -> Diagnostic | None:
        """
        INFO note when a hint overrode detection or no schema was recognised.
        """

        if decision.hint_overrode_auto:
            return Diagnostic(
                severity=Severity.INFO,
                category=DiagnosticCategory.FILE_FORMAT,
                code="source_hint_applied",
                title="Declared data source applied",
                message=(
                    f"The file was processed as {get_schema(decision.data_source).display_name} "
                    "as declared, instead of the automatically detected "
                    f"{get_schema(decision.auto_source).display_name}."
                ),
                details={
                    "data_source": decision.data_source.value,
                    "auto_source": decision.auto_source.value,
                    "hint_score": decision.hint_score,
                    "auto_score": decision.auto_score,
                },
            )
        if decision.data_source is DataSource.UNKNOWN:
            return Diagnostic(
                severity=Severity.INFO,
                category=DiagnosticCategory.FILE_FORMAT,
                code="source_unidentified",
                title="Data source not identified",
                message=(
                    "The file did not match a known platform export; generic column names "
                    "were used."
                ),
                suggestions=(
                    "Select the source platform when uploading to use its column rules.",
                ),
                details={"auto_score": decision.auto_score},
            )
        return None

    # ------------------------------------------------------------------
    # DATA_VALIDATION
    # ------------------------------------------------------------------

    def diagnose_data_validation(
        self,
        errors: Sequence[RowValidationError],
        total_rows: int,
        valid_rows: int,
        *,
        critical: bool = False,
    ) -> Diagnostic:
        invalid_rows = len({error.line_number for error in errors})
        samples = [error.render() for error in errors[: self._max_error_samples]]
        patterns = self._error_patterns(errors)

        message = (
            f"{invalid_rows} of {total_rows} rows have data errors "
            f"({valid_rows} valid)."
        )
        if samples:
            message += " " + " / ".join(samples)
        if len(errors) > len(samples):
            message += f" (and {len(errors) - len(samples)} more)"

        policy = BatchPolicy.REJECT_ALL if critical else BatchPolicy.PARTIAL
        return Diagnostic(
            severity=data_validation_severity(policy),
            category=DiagnosticCategory.DATA_VALIDATION,
            code="rows_rejected" if critical else "rows_skipped",
            title="Data validation errors",
            message=message,
            suggestions=tuple(self._validation_suggestions(patterns, critical=critical)),
            details={
                "total_rows": total_rows,
                "valid_rows": valid_rows,
                "invalid_rows": invalid_rows,
                "error_count": len(errors),
                "sample_errors": samples,
                "error_patterns": patterns,
            },
        )

    @staticmethod
    def _error_patterns(errors: Sequence[RowValidationError]) -> dict[str, int]:
        patterns = {
            "missing_order_code": 0,
            "missing_customer_name": 0,
            "missing_price": 0,
            "invalid_price": 0,
            "invalid_date": 0,
            "other": 0,
        }
        for error in errors:
            if error.message == MESSAGE_REQUIRED and error.field in {
                "order_code",
                "customer_name",
                "price",
            }:
                patterns[f"missing_{error.field}"] += 1
            elif error.field == "price" and error.message in {
                MESSAGE_INVALID_PRICE,
                MESSAGE_NEGATIVE_PRICE,
            }:
                patterns["invalid_price"] += 1
            elif error.message == MESSAGE_INVALID_DATE:
                patterns["invalid_date"] += 1
            else:
                patterns["other"] += 1
        return patterns

    @staticmethod
    def _validation_suggestions(patterns: Mapping[str, int], *, critical: bool) -> list[str]:
        suggestions: list[str] = []
        if patterns.get("missing_order_code"):
            suggestions.append("Some rows have an empty order code; fill in an order code on every row.")
        if patterns.get("missing_customer_name"):
            suggestions.append(
                "Some rows have an empty customer name; fill in a customer name on every row."
            )
        if patterns.get("missing_price"):
            suggestions.append("Some rows have an empty price; fill in a price on every row.")
        if patterns.get("invalid_price"):
            suggestions.append(
                "Some prices are not valid amounts; use non-negative whole numbers (e.g. 1500)."
            )
        if patterns.get("invalid_date"):
            suggestions.append(
                "Some dates could not be read; use a format such as 2024-01-15 or 2024/01/15."
            )
        suggestions.append("Open the CSV in Excel, fix the listed rows and upload again.")
        if critical:
            suggestions.append("No rows were saved; the whole file is rejected while any row is invalid.")
        else:
            suggestions.append("Valid rows were saved; re-upload only the corrected rows.")
        return suggestions

    # ------------------------------------------------------------------
    # DUPLICATE
    # ------------------------------------------------------------------

    def diagnose_duplicate(
        self,
        line_number: int,
        existing: Mapping[str, Any],
        incoming: Mapping[str, Any],
    ) -> Diagnostic:
        order_code = incoming.get("order_code") or existing.get("order_code")
        differences = {
            name: {"existing": existing.get(name), "incoming": incoming.get(name)}
            for name in sorted(set(existing) | set(incoming))
            if existing.get(name) != incoming.get(name)
        }
        return Diagnostic(
            severity=severity_for(DiagnosticCategory.DUPLICATE),
            category=DiagnosticCategory.DUPLICATE,
            code="duplicate_order",
            title="Order already registered",
            message=f"Row {line_number}: order {order_code} already exists and was skipped.",
            suggestions=(
                "Review the differences; edit the existing order if the new values are correct.",
            ),
            details={
                "line_number": line_number,
                "order_code": order_code,
                "existing": dict(existing),
                "incoming": dict(incoming),
                "differences": differences,
            },
        )

    # ------------------------------------------------------------------
    # UNKNOWN
    # ------------------------------------------------------------------

    def diagnose_unknown(
        self,
        exc: BaseException,
        request_id: str,
        context: Mapping[str, Any] | None = None,
    ) -> Diagnostic:
        return Diagnostic(
            severity=severity_for(DiagnosticCategory.UNKNOWN),
            category=DiagnosticCategory.UNKNOWN,
            code="unexpected_error",
            title="Unexpected error",
            message=(
                "An unexpected error occurred while processing the file. "
                f"Reference ID: {request_id}"
            ),
            suggestions=(
                "Wait a moment and try again.",
                f"If the problem persists, contact support with reference ID {request_id}.",
            ),
            details={"request_id": request_id, **dict(context or {})},
            debug={
                "exception_type": type(exc).__name__,
                "error": str(exc),
                "traceback": "".join(
                    traceback.format_exception(type(exc), exc, exc.__traceback__)
                ),
            },
        )

    def to_payload(self, diagnostic: Diagnostic) -> dict[str, Any]:
        return diagnostic.to_payload(include_debug=self._debug_mode)
