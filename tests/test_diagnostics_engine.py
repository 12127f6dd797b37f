"""
tests/test_diagnostics_engine.py

Pytest unit tests for diagnostics construction and severity policy.

Coverage
--------
- Severity mapping per category and batch policy
- ENCODING: garbled vs low-confidence codes, remediation steps, debug isolation
- MISSING_FIELDS: accepted spellings, similar-header hints, export guidance
- FILE_FORMAT: extension, empty and oversize checks
- DATA_VALIDATION: sample truncation, "and N more", error patterns
- DUPLICATE: field differences
- UNKNOWN: reference id, debug traceback hidden unless debug mode
"""

from __future__ import annotations

import pytest

from app.diagnostics.engine import (
    SUGGESTION_COLORMI_SJIS,
    SUGGESTION_EXCEL_UTF8,
    SUGGESTION_RESAVE_UTF8,
    DiagnosticsEngine,
)
from app.diagnostics.policy import (
    halts,
    is_client_fault,
    is_encoding_unrecoverable,
    severity_for,
)
from app.domain.order_ingestion import (
    BatchPolicy,
    DataSource,
    DiagnosticCategory,
    EncodingAttempt,
    EncodingDetectionResult,
    RowValidationError,
    Severity,
)
from app.parsing.header_analyzer import HeaderAnalyzer
from app.validators.order_validator import MESSAGE_INVALID_PRICE, MESSAGE_REQUIRED


@pytest.fixture()
def engine() -> DiagnosticsEngine:
    return DiagnosticsEngine(max_error_samples=2)


def _encoding_result(*, confidence: float, garbled: bool) -> EncodingDetectionResult:
    return EncodingDetectionResult(
        detected_encoding="utf-8",
        confidence=confidence,
        text="name,price\ncaf\ufffd,100\n",
        is_likely_localized_script=False,
        has_garbled_text=garbled,
        encoding_attempts=(EncodingAttempt(encoding="utf-8", success=False, error="invalid"),),
    )


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class TestPolicy:
    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            (DiagnosticCategory.ENCODING, Severity.CRITICAL),
            (DiagnosticCategory.MISSING_FIELDS, Severity.CRITICAL),
            (DiagnosticCategory.FILE_FORMAT, Severity.CRITICAL),
            (DiagnosticCategory.DUPLICATE, Severity.INFO),
            (DiagnosticCategory.UNKNOWN, Severity.CRITICAL),
        ],
    )
    def test_fixed_category_severity(
        self, category: DiagnosticCategory, expected: Severity
    ) -> None:
        assert severity_for(category) is expected

    def test_data_validation_severity_follows_batch_policy(self) -> None:
        assert severity_for(DiagnosticCategory.DATA_VALIDATION) is Severity.WARNING
        assert (
            severity_for(DiagnosticCategory.DATA_VALIDATION, batch_policy=BatchPolicy.REJECT_ALL)
            is Severity.CRITICAL
        )

    def test_encoding_unrecoverable_threshold(self) -> None:
        assert is_encoding_unrecoverable(_encoding_result(confidence=0.9, garbled=True))
        assert is_encoding_unrecoverable(_encoding_result(confidence=0.2, garbled=False))
        assert not is_encoding_unrecoverable(_encoding_result(confidence=0.3, garbled=False))

    def test_halts_and_client_fault(self, engine: DiagnosticsEngine) -> None:
        encoding = engine.diagnose_encoding(_encoding_result(confidence=0.1, garbled=True))
        unknown = engine.diagnose_unknown(RuntimeError("boom"), "abc")
        duplicate = engine.diagnose_duplicate(1, {"order_code": "A1"}, {"order_code": "A1"})

        assert halts(encoding) and is_client_fault(encoding)
        assert halts(unknown) and not is_client_fault(unknown)
        assert not halts(duplicate)


# ---------------------------------------------------------------------------
# ENCODING
# ---------------------------------------------------------------------------


class TestEncoding:
    def test_garbled_text(self, engine: DiagnosticsEngine) -> None:
        diagnostic = engine.diagnose_encoding(_encoding_result(confidence=0.1, garbled=True))

        assert diagnostic.severity is Severity.CRITICAL
        assert diagnostic.category is DiagnosticCategory.ENCODING
        assert diagnostic.code == "encoding_garbled"
        assert "10%" in diagnostic.message
        assert SUGGESTION_RESAVE_UTF8 in diagnostic.suggestions
        assert SUGGESTION_EXCEL_UTF8 in diagnostic.suggestions
        assert SUGGESTION_COLORMI_SJIS in diagnostic.suggestions

    def test_low_confidence(self, engine: DiagnosticsEngine) -> None:
        diagnostic = engine.diagnose_encoding(
            _encoding_result(confidence=0.2, garbled=False), min_confidence=0.3
        )

        assert diagnostic.code == "encoding_low_confidence"
        assert "minimum 30%" in diagnostic.message

    def test_attempts_only_in_debug_payload(self) -> None:
        result = _encoding_result(confidence=0.1, garbled=True)

        hidden = DiagnosticsEngine().to_payload(DiagnosticsEngine().diagnose_encoding(result))
        debug_engine = DiagnosticsEngine(debug_mode=True)
        shown = debug_engine.to_payload(debug_engine.diagnose_encoding(result))

        assert "debug" not in hidden
        assert shown["debug"]["encoding_attempts"][0]["encoding"] == "utf-8"


# ---------------------------------------------------------------------------
# MISSING_FIELDS
# ---------------------------------------------------------------------------


class TestMissingFields:
    def test_lists_accepted_headers_and_similar_columns(self, engine: DiagnosticsEngine) -> None:
        analysis = HeaderAnalyzer().analyze_headers(["注文番号", "顧客名", "金額(税込)"])

        diagnostic = engine.diagnose_missing_fields(analysis, analysis.data_source)

        assert analysis.data_source is DataSource.TABECHOKU
        assert diagnostic.severity is Severity.CRITICAL
        assert diagnostic.code == "missing_required_fields"
        assert "Price (金額)" in diagnostic.message
        details = diagnostic.details
        assert details is not None
        (missing,) = details["missing_fields"]
        assert missing["field"] == "price"
        assert "金額" in missing["accepted_headers"]
        assert details["similar_headers"] == {"price": ["金額(税込)"]}
        assert details["detected_headers"] == ["注文番号", "顧客名", "金額(税込)"]
        assert any("Tabechoku" in suggestion for suggestion in diagnostic.suggestions)

    def test_unknown_source_uses_closest_schema_as_guess(self, engine: DiagnosticsEngine) -> None:
        analysis = HeaderAnalyzer().analyze_headers(["注文番号", "品名", "数量"])

        diagnostic = engine.diagnose_missing_fields(analysis, DataSource.UNKNOWN)

        details = diagnostic.details
        assert details is not None
        assert details["best_guess_source"] == DataSource.TABECHOKU.value
        assert [item["field"] for item in details["missing_fields"]] == ["customer_name", "price"]

    def test_explicit_missing_fields_override_analysis(self, engine: DiagnosticsEngine) -> None:
        analysis = HeaderAnalyzer().analyze_headers(["注文番号", "顧客名", "金額"])

        diagnostic = engine.diagnose_missing_fields(
            analysis, DataSource.COLORMI, frozenset({"order_code"})
        )

        details = diagnostic.details
        assert details is not None
        assert [item["field"] for item in details["missing_fields"]] == ["order_code"]
        assert "Color Me Shop" in diagnostic.title


# ---------------------------------------------------------------------------
# FILE_FORMAT
# ---------------------------------------------------------------------------


class TestFileFormat:
    def test_valid_file_has_no_diagnostic(self, engine: DiagnosticsEngine) -> None:
        assert engine.diagnose_file_format("orders.csv", 100, 1024) is None

    @pytest.mark.parametrize(
        ("filename", "size", "code"),
        [
            ("orders.xlsx", 100, "unsupported_extension"),
            ("orders", 100, "unsupported_extension"),
            ("orders.CSV", 0, "empty_file"),
            ("orders.tsv", 2048, "file_too_large"),
        ],
    )
    def test_issue_codes(
        self, engine: DiagnosticsEngine, filename: str, size: int, code: str
    ) -> None:
        diagnostic = engine.diagnose_file_format(filename, size, 1024)

        assert diagnostic is not None
        assert diagnostic.code == code
        assert diagnostic.category is DiagnosticCategory.FILE_FORMAT
        assert diagnostic.severity is Severity.CRITICAL

    def test_unreadable_table_variants(self, engine: DiagnosticsEngine) -> None:
        no_rows = engine.diagnose_unreadable_table(code="no_data_rows")
        broken = engine.diagnose_unreadable_table(ValueError("field larger than field limit"))

        assert no_rows.code == "no_data_rows"
        assert no_rows.debug is None
        assert broken.code == "table_unreadable"
        assert broken.debug == {"error": "field larger than field limit"}


# ---------------------------------------------------------------------------
# DATA_VALIDATION
# ---------------------------------------------------------------------------


class TestDataValidation:
    def _errors(self) -> list[RowValidationError]:
        return [
            RowValidationError(line_number=1, field="order_code", message=MESSAGE_REQUIRED),
            RowValidationError(line_number=2, field="price", message=MESSAGE_INVALID_PRICE, value="x"),
            RowValidationError(line_number=4, field="customer_name", message=MESSAGE_REQUIRED),
        ]

    def test_partial_policy_is_warning_with_truncated_samples(
        self, engine: DiagnosticsEngine
    ) -> None:
        diagnostic = engine.diagnose_data_validation(self._errors(), total_rows=5, valid_rows=2)

        assert diagnostic.severity is Severity.WARNING
        assert diagnostic.code == "rows_skipped"
        assert "3 of 5 rows" in diagnostic.message
        assert f"Row 1: order_code: {MESSAGE_REQUIRED}" in diagnostic.message
        assert "Row 4" not in diagnostic.message
        assert diagnostic.message.endswith("(and 1 more)")
        details = diagnostic.details
        assert details is not None
        assert details["error_patterns"]["missing_order_code"] == 1
        assert details["error_patterns"]["invalid_price"] == 1
        assert details["error_patterns"]["missing_customer_name"] == 1
        assert any("order code" in suggestion for suggestion in diagnostic.suggestions)

    def test_reject_all_is_critical(self, engine: DiagnosticsEngine) -> None:
        diagnostic = engine.diagnose_data_validation(
            self._errors(), total_rows=5, valid_rows=2, critical=True
        )

        assert diagnostic.severity is Severity.CRITICAL
        assert diagnostic.code == "rows_rejected"
        assert any("No rows were saved" in suggestion for suggestion in diagnostic.suggestions)


# ---------------------------------------------------------------------------
# DUPLICATE and UNKNOWN
# ---------------------------------------------------------------------------


class TestDuplicateAndUnknown:
    def test_duplicate_reports_differences(self, engine: DiagnosticsEngine) -> None:
        diagnostic = engine.diagnose_duplicate(
            3,
            {"order_code": "A1", "price": 1000, "customer_name": "Tanaka"},
            {"order_code": "A1", "price": 1200, "customer_name": "Tanaka"},
        )

        assert diagnostic.severity is Severity.INFO
        assert diagnostic.code == "duplicate_order"
        details = diagnostic.details
        assert details is not None
        assert details["differences"] == {"price": {"existing": 1000, "incoming": 1200}}

    def test_unknown_hides_internals_by_default(self, engine: DiagnosticsEngine) -> None:
        try:
            raise KeyError("secret-column")
        except KeyError as exc:
            diagnostic = engine.diagnose_unknown(exc, "ref123", {"stage": "mapping"})

        payload = engine.to_payload(diagnostic)

        assert diagnostic.severity is Severity.CRITICAL
        assert "Reference ID: ref123" in diagnostic.message
        assert "secret-column" not in diagnostic.message
        assert payload["details"] == {"request_id": "ref123", "stage": "mapping"}
        assert "debug" not in payload
        assert diagnostic.debug is not None
        assert diagnostic.debug["exception_type"] == "KeyError"
        assert "Traceback" in diagnostic.debug["traceback"]
