"""
app/mappers/field_mapper.py

Syntactic extraction of canonical field values from raw rows.
"""

from __future__ import annotations

from collections.abc import Mapping

from app.domain.order_ingestion import DataSource, RawRow
from app.mappers.source_schemas import (
    CANONICAL_FIELDS,
    CompositeField,
    SourceSchema,
    get_schema,
    normalize_header,
)


class FieldMapper:
    """
    Maps a RawRow to ``{canonical_field: raw string}`` for one DataSource.

    Never validates and never raises; absent fields map to "".
    """

    def map_row(self, row: RawRow, data_source: DataSource) -> dict[str, str]:
        schema = get_schema(data_source)
        normalized_values = self._normalized_values(row.values)
        return {
            name: self._extract(schema, name, normalized_values)
            for name in CANONICAL_FIELDS
        }

    @staticmethod
    def _normalized_values(values: Mapping[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for header, value in values.items():
            key = normalize_header(header)
            if key and key not in normalized:
                normalized[key] = value
        return normalized

    def _extract(
        self,
        schema: SourceSchema,
        canonical_field: str,
        normalized_values: Mapping[str, str],
    ) -> str:
        composite = schema.composite_fields.get(canonical_field)
        if composite is not None:
            combined = self._combine(composite, normalized_values)
            if combined:
                return combined
        return self._first_non_empty(
            schema.field_candidates.get(canonical_field, ()),
            normalized_values,
        )

    def _combine(self, composite: CompositeField, normalized_values: Mapping[str, str]) -> str:
        head = self._first_non_empty(composite.head, normalized_values)
        tail = self._first_non_empty(composite.tail, normalized_values)
        if head and tail:
            return f"{head}{composite.separator}{tail}"
        return head or tail

    @staticmethod
    def _first_non_empty(candidates: tuple[str, ...], normalized_values: Mapping[str, str]) -> str:
        for candidate in candidates:
            value = normalized_values.get(normalize_header(candidate))
            if value is not None and value.strip():
                return value.strip()
        return ""
