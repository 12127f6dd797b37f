"""
app/mappers package marker.
"""

from app.mappers.field_mapper import FieldMapper
from app.mappers.source_classifier import ClassificationDecision, SourceClassifier
from app.mappers.source_schemas import (
    CANONICAL_FIELDS,
    REQUIRED_FIELDS,
    SourceSchema,
    get_schema,
)

__all__ = [
    "CANONICAL_FIELDS",
    "REQUIRED_FIELDS",
    "ClassificationDecision",
    "FieldMapper",
    "SourceClassifier",
    "SourceSchema",
    "get_schema",
]
