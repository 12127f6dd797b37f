"""
app/services/order_ingestion_service.py

Service layer for order CSV ingestion.

A run moves through these stages:

    DECODING -> CLASSIFYING -> REQUIRED_FIELDS_CHECK -> ROW_PROCESSING
             -> AGGREGATING -> DONE

Any CRITICAL diagnostic moves the run to ABORTED before persistence starts.
The service never raises to its caller: unexpected failures are reported as
one CRITICAL/UNKNOWN diagnostic carrying the run's request id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from uuid import uuid4

from app.config import OrderIngestionSettings, get_order_ingestion_settings
from app.diagnostics.engine import DiagnosticsEngine
from app.diagnostics.policy import halts, is_encoding_unrecoverable
from app.domain.order_ingestion import (
    BatchPolicy,
    DataSource,
    Diagnostic,
    IngestionOutcome,
    RawUpload,
    RowResult,
    RowValidationError,
    SkipDetail,
    SkipReason,
)
from app.logging_utils import log_event
from app.mappers.field_mapper import FieldMapper
from app.mappers.source_classifier import SourceClassifier
from app.parsing.csv_reader import ParsedTable, TableParseError, read_table
from app.parsing.encoding_detector import EncodingDetector
from app.parsing.header_analyzer import HeaderAnalyzer
from app.repositories.order_repository import OrderStore, OrderStoreFactory, order_store_scope
from app.validators.order_validator import OrderRowValidator

logger = logging.getLogger(__name__)


class IngestionStage(str, Enum):
    DECODING = "decoding"
    CLASSIFYING = "classifying"
    REQUIRED_FIELDS_CHECK = "required_fields_check"
    ROW_PROCESSING = "row_processing"
    AGGREGATING = "aggregating"
    DONE = "done"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IngestionAborted(RuntimeError):
    """
    Raised inside a run when a CRITICAL diagnostic halts the pipeline.
    """

    def __init__(self, diagnostic: Diagnostic) -> None:
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


@dataclass
class _RunState:
    request_id: str
    owner_id: str
    filename: str
    stage: IngestionStage = IngestionStage.DECODING
    data_source: DataSource | None = None
    detected_encoding: str | None = None
    total_rows: int = 0
    registered_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    skipped_details: list[SkipDetail] = field(default_factory=list)
    validation_errors: list[RowValidationError] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.duplicate_count + self.error_count


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class OrderIngestionService:
    """
    Coordinates decoding, classification, validation and persistence of one upload.
    """

    def __init__(
        self,
        *,
        store_factory: OrderStoreFactory,
        settings: OrderIngestionSettings | None = None,
        detector: EncodingDetector | None = None,
        analyzer: HeaderAnalyzer | None = None,
        classifier: SourceClassifier | None = None,
        mapper: FieldMapper | None = None,
        validator: OrderRowValidator | None = None,
        diagnostics: DiagnosticsEngine | None = None,
    ) -> None:
        self._settings = settings or OrderIngestionSettings()
        self._store_factory = store_factory
        self._detector = detector or EncodingDetector()
        self._analyzer = analyzer or HeaderAnalyzer(
            threshold=self._settings.schema_match_threshold
        )
        self._classifier = classifier or SourceClassifier(
            tolerance=self._settings.hint_tolerance
        )
        self._mapper = mapper or FieldMapper()
        self._validator = validator or OrderRowValidator()
        self._diagnostics = diagnostics or DiagnosticsEngine(
            max_error_samples=self._settings.max_error_samples,
            debug_mode=self._settings.debug_mode,
        )

    @property
    def settings(self) -> OrderIngestionSettings:
        return self._settings

    @property
    def diagnostics(self) -> DiagnosticsEngine:
        return self._diagnostics

    def ingest(
        self,
        upload: RawUpload,
        *,
        owner_id: str,
        grouping_id: int | None = None,
    ) -> IngestionOutcome:
        """
        Run the full pipeline for one upload and return its outcome.

        Rows are persisted strictly in file order so a repeated order code
        later in the same file is reported as a duplicate of the earlier row.
        """

        state = _RunState(
            request_id=uuid4().hex,
            owner_id=owner_id,
            filename=upload.filename,
        )
        log_event(
            logger,
            logging.INFO,
            "order_ingestion_started",
            request_id=state.request_id,
            owner_id=owner_id,
            filename=upload.filename,
            size=upload.size,
            source_hint=upload.source_hint,
            batch_policy=self._settings.batch_policy.value,
        )

        try:
            self._run(upload, state, grouping_id=grouping_id)
        except IngestionAborted as exc:
            return self._abort(state, exc.diagnostic)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Order ingestion failed unexpectedly request_id=%s stage=%s",
                state.request_id,
                state.stage.value,
            )
            diagnostic = self._diagnostics.diagnose_unknown(
                exc,
                state.request_id,
                {"stage": state.stage.value, "filename": upload.filename},
            )
            return self._abort(state, diagnostic)

        return self._finish(state)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run(self, upload: RawUpload, state: _RunState, *, grouping_id: int | None) -> None:
        self._enter(state, IngestionStage.DECODING)
        file_issue = self._diagnostics.diagnose_file_format(
            upload.filename,
            upload.size,
            self._settings.max_file_bytes,
        )
        if file_issue is not None:
            raise IngestionAborted(file_issue)

        encoding = self._detector.detect_and_convert(upload.content)
        state.detected_encoding = encoding.detected_encoding
        if is_encoding_unrecoverable(encoding, self._settings.min_encoding_confidence):
            raise IngestionAborted(
                self._diagnostics.diagnose_encoding(
                    encoding,
                    min_confidence=self._settings.min_encoding_confidence,
                )
            )

        self._enter(state, IngestionStage.CLASSIFYING)
        table = self._read_table(encoding.text)
        analysis = self._analyzer.analyze_headers(table.headers)
        decision = self._classifier.classify(analysis, upload.source_hint)
        state.data_source = decision.data_source
        note = self._diagnostics.diagnose_source_fallback(decision)
        if note is not None:
            state.diagnostics.append(note)

        self._enter(state, IngestionStage.REQUIRED_FIELDS_CHECK)
        if not decision.has_required_fields:
            raise IngestionAborted(
                self._diagnostics.diagnose_missing_fields(
                    analysis,
                    decision.data_source,
                    decision.missing_fields,
                )
            )
        if not table.rows:
            raise IngestionAborted(self._diagnostics.diagnose_unreadable_table(code="no_data_rows"))

        state.total_rows = len(table.rows)
        results = [
            self._validator.validate(
                self._mapper.map_row(row, decision.data_source),
                row.line_number,
                data_source=decision.data_source,
            )
            for row in table.rows
        ]
        for result in results:
            for error in result.errors:
                self._record_error(state, error)

        invalid = [result for result in results if not result.is_valid]
        validation_diagnostic: Diagnostic | None = None
        if invalid:
            validation_diagnostic = self._diagnostics.diagnose_data_validation(
                state.validation_errors,
                total_rows=state.total_rows,
                valid_rows=state.total_rows - len(invalid),
                critical=self._settings.batch_policy is BatchPolicy.REJECT_ALL,
            )
            if halts(validation_diagnostic):
                state.error_count = len(invalid)
                raise IngestionAborted(validation_diagnostic)

        self._enter(state, IngestionStage.ROW_PROCESSING)
        with self._store_factory() as store:
            for result in results:
                self._process_row(store, state, result, grouping_id=grouping_id)

        self._enter(state, IngestionStage.AGGREGATING)
        if validation_diagnostic is not None:
            state.diagnostics.append(validation_diagnostic)

    def _read_table(self, text: str) -> ParsedTable:
        try:
            table = read_table(text)
        except TableParseError as exc:
            raise IngestionAborted(self._diagnostics.diagnose_unreadable_table(exc)) from exc
        if not any(header for header in table.headers):
            raise IngestionAborted(self._diagnostics.diagnose_unreadable_table(code="empty_header"))
        return table

    def _process_row(
        self,
        store: OrderStore,
        state: _RunState,
        result: RowResult,
        *,
        grouping_id: int | None,
    ) -> None:
        record = result.record
        if not result.is_valid or record is None:
            state.error_count += 1
            state.skipped_details.append(
                SkipDetail(
                    line_number=result.line_number,
                    order_code=None,
                    reason=SkipReason.VALIDATION,
                    message="; ".join(error.render() for error in result.errors),
                )
            )
            return

        try:
            existing = store.find_by_key(state.owner_id, record.order_code)
            if existing is not None:
                incoming = record.snapshot()
                previous = existing.snapshot()
                state.duplicate_count += 1
                state.skipped_details.append(
                    SkipDetail(
                        line_number=result.line_number,
                        order_code=record.order_code,
                        reason=SkipReason.DUPLICATE,
                        message=f"Order {record.order_code} is already registered.",
                        existing=previous,
                        incoming=incoming,
                    )
                )
                state.diagnostics.append(
                    self._diagnostics.diagnose_duplicate(result.line_number, previous, incoming)
                )
                return

            inserted = store.insert(state.owner_id, record, grouping_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Order persistence raised request_id=%s line=%s order_code=%s: %s",
                state.request_id,
                result.line_number,
                record.order_code,
                exc,
            )
            self._skip_persistence(state, result.line_number, record.order_code, str(exc))
            return

        if inserted.success:
            state.registered_count += 1
            return

        logger.warning(
            "Order insert rejected request_id=%s line=%s order_code=%s reason=%s",
            state.request_id,
            result.line_number,
            record.order_code,
            inserted.reason,
        )
        self._skip_persistence(
            state,
            result.line_number,
            record.order_code,
            inserted.reason or "Insert failed.",
        )

    @staticmethod
    def _skip_persistence(state: _RunState, line_number: int, order_code: str, message: str) -> None:
        state.error_count += 1
        state.skipped_details.append(
            SkipDetail(
                line_number=line_number,
                order_code=order_code,
                reason=SkipReason.PERSISTENCE,
                message=message,
            )
        )

    # ------------------------------------------------------------------
    # Outcome helpers
    # ------------------------------------------------------------------

    def _enter(self, state: _RunState, stage: IngestionStage) -> None:
        state.stage = stage
        log_event(
            logger,
            logging.DEBUG,
            "order_ingestion_stage",
            request_id=state.request_id,
            stage=stage.value,
        )

    def _record_error(self, state: _RunState, error: RowValidationError) -> None:
        if self._settings.log_validation_errors:
            logger.warning(
                "Order validation error request_id=%s line=%s field=%s message=%s value=%r",
                state.request_id,
                error.line_number,
                error.field,
                error.message,
                error.value,
            )
        state.validation_errors.append(error)

    def _abort(self, state: _RunState, diagnostic: Diagnostic) -> IngestionOutcome:
        failed_stage = state.stage
        state.stage = IngestionStage.ABORTED
        state.diagnostics.append(diagnostic)
        log_event(
            logger,
            logging.WARNING,
            "order_ingestion_aborted",
            request_id=state.request_id,
            stage=failed_stage.value,
            category=diagnostic.category.value,
            code=diagnostic.code,
        )
        return IngestionOutcome(
            request_id=state.request_id,
            registered_count=state.registered_count,
            skipped_count=state.skipped_count,
            duplicate_count=state.duplicate_count,
            error_count=state.error_count,
            total_rows=state.total_rows,
            aborted=True,
            data_source=state.data_source,
            detected_encoding=state.detected_encoding,
            batch_policy=self._settings.batch_policy,
            skipped_details=list(state.skipped_details),
            validation_errors=list(state.validation_errors),
            diagnostics=list(state.diagnostics),
        )

    def _finish(self, state: _RunState) -> IngestionOutcome:
        state.stage = IngestionStage.DONE
        log_event(
            logger,
            logging.INFO,
            "order_ingestion_completed",
            request_id=state.request_id,
            data_source=state.data_source.value if state.data_source else None,
            encoding=state.detected_encoding,
            total_rows=state.total_rows,
            registered=state.registered_count,
            duplicates=state.duplicate_count,
            errors=state.error_count,
        )
        return IngestionOutcome(
            request_id=state.request_id,
            registered_count=state.registered_count,
            skipped_count=state.skipped_count,
            duplicate_count=state.duplicate_count,
            error_count=state.error_count,
            total_rows=state.total_rows,
            aborted=False,
            data_source=state.data_source,
            detected_encoding=state.detected_encoding,
            batch_policy=self._settings.batch_policy,
            skipped_details=list(state.skipped_details),
            validation_errors=list(state.validation_errors),
            diagnostics=list(state.diagnostics),
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_order_ingestion_service() -> OrderIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """

    return OrderIngestionService(
        store_factory=order_store_scope,
        settings=get_order_ingestion_settings(),
    )
