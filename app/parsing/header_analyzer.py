"""
app/parsing/header_analyzer.py

Header row parsing and schema signature matching.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.domain.order_ingestion import DataSource, HeaderAnalysisResult
from app.mappers.source_schemas import (
    KNOWN_SOURCES,
    SourceSchema,
    build_header_lookup,
    get_schema,
    missing_required_fields,
)
from app.parsing.csv_reader import read_header

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.5


def match_score(schema: SourceSchema, lookup: dict[str, str]) -> float:
    """
    Share of the schema's signature fields present in the header lookup.
    """

    signature = schema.signature_fields
    if not signature:
        return 0.0
    present = sum(1 for name in signature if schema.find_header(name, lookup) is not None)
    return round(present / len(signature), 4)


class HeaderAnalyzer:
    """
    Scores header tokens against each registered schema and picks the best one.
    """

    def __init__(
        self,
        *,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        sources: Sequence[DataSource] = KNOWN_SOURCES,
    ) -> None:
        self._threshold = threshold
        self._sources = tuple(sources)

    def analyze(self, text: str) -> HeaderAnalysisResult:
        """
        Parse the first record of ``text`` and classify it.

        Raises TableParseError when the header line cannot be read.
        """

        return self.analyze_headers(read_header(text))

    def analyze_headers(self, headers: Sequence[str]) -> HeaderAnalysisResult:
        header_tuple = tuple(headers)
        lookup = build_header_lookup(header_tuple)

        scores: dict[DataSource, float] = {}
        selected = DataSource.UNKNOWN
        selected_score = 0.0
        for source in self._sources:
            score = match_score(get_schema(source), lookup)
            scores[source] = score
            # Strict comparison keeps the first-registered schema on ties.
            if score >= self._threshold and score > selected_score:
                selected = source
                selected_score = score

        missing = missing_required_fields(header_tuple, selected)
        logger.debug(
            "Header analysis source=%s scores=%s missing=%s",
            selected.value,
            {source.value: score for source, score in scores.items()},
            sorted(missing),
        )
        return HeaderAnalysisResult(
            headers=header_tuple,
            match_scores=scores,
            data_source=selected,
            has_required_fields=not missing,
            missing_fields=missing,
        )
