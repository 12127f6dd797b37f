"""
app/services package marker.
"""

from app.services.order_ingestion_service import (
    IngestionAborted,
    IngestionStage,
    OrderIngestionService,
    get_order_ingestion_service,
)

__all__ = [
    "IngestionAborted",
    "IngestionStage",
    "OrderIngestionService",
    "get_order_ingestion_service",
]
