"""
app/mappers/source_classifier.py

Resolves the final DataSource from header scores and a caller-declared hint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.domain.order_ingestion import DataSource, HeaderAnalysisResult
from app.mappers.source_schemas import missing_required_fields

logger = logging.getLogger(__name__)

DEFAULT_HINT_TOLERANCE = 0.2

DECIDED_BY_HINT = "hint"
DECIDED_BY_AUTO = "auto"


@dataclass(frozen=True)
class ClassificationDecision:
    """
    Which schema governs the file, and how it was chosen.
    """

    data_source: DataSource
    decided_by: str
    auto_source: DataSource
    auto_score: float
    hint: DataSource | None = None
    hint_score: float | None = None
    missing_fields: frozenset[str] = frozenset()

    @property
    def has_required_fields(self) -> bool:
        return not self.missing_fields

    @property
    def hint_overrode_auto(self) -> bool:
        return self.decided_by == DECIDED_BY_HINT and self.data_source is not self.auto_source


class SourceClassifier:
    """
    Decides between the automatic classification and an explicit hint.

    The hint wins when its own match score is within ``tolerance`` of the
    best automatic score; otherwise the automatic classification wins.
    """

    def __init__(self, *, tolerance: float = DEFAULT_HINT_TOLERANCE) -> None:
        self._tolerance = max(0.0, tolerance)

    def classify(
        self,
        analysis: HeaderAnalysisResult,
        hint: str | DataSource | None = None,
    ) -> ClassificationDecision:
        auto_source = analysis.data_source
        auto_score = analysis.match_scores.get(auto_source, analysis.best_score)
        if auto_source is DataSource.UNKNOWN:
            auto_score = analysis.best_score

        hint_source = self._resolve_hint(hint)
        if hint_source is None:
            return ClassificationDecision(
                data_source=auto_source,
                decided_by=DECIDED_BY_AUTO,
                auto_source=auto_source,
                auto_score=auto_score,
                missing_fields=analysis.missing_fields,
            )

        hint_score = analysis.match_scores.get(hint_source, 0.0)
        if hint_score >= auto_score - self._tolerance:
            logger.info(
                "Source hint accepted hint=%s hint_score=%.2f auto=%s auto_score=%.2f",
                hint_source.value,
                hint_score,
                auto_source.value,
                auto_score,
            )
            missing = (
                analysis.missing_fields
                if hint_source is auto_source
                else missing_required_fields(analysis.headers, hint_source)
            )
            return ClassificationDecision(
                data_source=hint_source,
                decided_by=DECIDED_BY_HINT,
                auto_source=auto_source,
                auto_score=auto_score,
                hint=hint_source,
                hint_score=hint_score,
                missing_fields=missing,
            )

        logger.info(
            "Source hint rejected hint=%s hint_score=%.2f auto=%s auto_score=%.2f",
            hint_source.value,
            hint_score,
            auto_source.value,
            auto_score,
        )
        return ClassificationDecision(
            data_source=auto_source,
            decided_by=DECIDED_BY_AUTO,
            auto_source=auto_source,
            auto_score=auto_score,
            hint=hint_source,
            hint_score=hint_score,
            missing_fields=analysis.missing_fields,
        )

    @staticmethod
    def _resolve_hint(hint: str | DataSource | None) -> DataSource | None:
        if isinstance(hint, DataSource):
            resolved: DataSource | None = hint
        else:
            resolved = DataSource.from_hint(hint)
            if resolved is None and hint is not None and hint.strip():
                logger.warning("Ignoring unrecognised data source hint: %r", hint)
        if resolved is DataSource.UNKNOWN:
            return None
        return resolved
