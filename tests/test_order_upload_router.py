"""
tests/test_order_upload_router.py

HTTP contract tests for POST /orders/upload using dependency overrides.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_category_repository
from app.api.routers import order_upload_router
from app.config import OrderIngestionSettings
from app.domain.order_ingestion import (
    CanonicalOrderRecord,
    DataSource,
    InsertResult,
    RawRow,
)
from app.mappers.field_mapper import FieldMapper
from app.services.order_ingestion_service import (
    OrderIngestionService,
    get_order_ingestion_service,
)
from app.validators.order_validator import OrderRowValidator

OWNER_HEADERS = {"X-Owner-Id": "owner-1"}
TABECHOKU_CSV = '注文番号,顧客名,金額\nA1,Tanaka,"1,200円"\n'.encode("utf-8")


class InMemoryStore:
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], CanonicalOrderRecord] = {}
        self.groupings: dict[str, int | None] = {}

    @contextmanager
    def scope(self) -> Iterator[InMemoryStore]:
        yield self

    def find_by_key(self, owner_id: str, order_code: str) -> CanonicalOrderRecord | None:
        return self.records.get((owner_id, order_code))

    def insert(
        self,
        owner_id: str,
        record: CanonicalOrderRecord,
        grouping_id: int | None = None,
    ) -> InsertResult:
        self.records[(owner_id, record.order_code)] = record
        self.groupings[record.order_code] = grouping_id
        return InsertResult(success=True)


class StaticCategories:
    def __init__(self, owned: dict[str, set[int]]) -> None:
        self._owned = owned

    def belongs_to(self, owner_id: str, category_id: int) -> bool:
        return category_id in self._owned.get(owner_id, set())


class ExplodingMapper(FieldMapper):
    def map_row(self, row: RawRow, data_source: DataSource) -> dict[str, str]:
        raise RuntimeError("mapper exploded")


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


def _build_client(service: OrderIngestionService) -> TestClient:
    app = FastAPI()
    app.include_router(order_upload_router)
    app.dependency_overrides[get_order_ingestion_service] = lambda: service
    app.dependency_overrides[get_category_repository] = lambda: StaticCategories(
        {"owner-1": {5}}
    )
    return TestClient(app)


def _service(store: InMemoryStore, **overrides) -> OrderIngestionService:
    return OrderIngestionService(
        store_factory=store.scope,
        settings=OrderIngestionSettings(),
        validator=OrderRowValidator(clock=lambda: date(2024, 6, 1)),
        **overrides,
    )


class TestOrderUploadRouter:
    def test_successful_upload(self, store: InMemoryStore) -> None:
        client = _build_client(_service(store))

        response = client.post(
            "/orders/upload",
            headers=OWNER_HEADERS,
            files={"file": ("orders.csv", TABECHOKU_CSV, "text/csv")},
            data={"category_id": "5", "data_source": "tabechoku"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["aborted"] is False
        assert body["registered_count"] == 1
        assert body["data_source"] == "tabechoku"
        assert body["detected_encoding"] == "utf-8"
        assert body["batch_policy"] == "partial"
        assert len(body["request_id"]) == 32
        assert store.groupings["A1"] == 5

    def test_missing_owner_header_is_unauthorized(self, store: InMemoryStore) -> None:
        client = _build_client(_service(store))

        response = client.post(
            "/orders/upload",
            files={"file": ("orders.csv", TABECHOKU_CSV, "text/csv")},
        )

        assert response.status_code == 401
        assert store.records == {}

    def test_foreign_category_is_not_found(self, store: InMemoryStore) -> None:
        client = _build_client(_service(store))

        response = client.post(
            "/orders/upload",
            headers=OWNER_HEADERS,
            files={"file": ("orders.csv", TABECHOKU_CSV, "text/csv")},
            data={"category_id": "99"},
        )

        assert response.status_code == 404
        assert store.records == {}

    def test_rejected_file_is_bad_request_with_diagnostic(self, store: InMemoryStore) -> None:
        client = _build_client(_service(store))

        response = client.post(
            "/orders/upload",
            headers=OWNER_HEADERS,
            files={"file": ("orders.xlsx", b"PK\x03\x04", "application/octet-stream")},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["aborted"] is True
        (diagnostic,) = body["diagnostics"]
        assert diagnostic["severity"] == "CRITICAL"
        assert diagnostic["category"] == "FILE_FORMAT"
        assert diagnostic["code"] == "unsupported_extension"
        assert diagnostic["suggestions"]

    def test_unexpected_failure_is_server_error_without_debug(self, store: InMemoryStore) -> None:
        client = _build_client(_service(store, mapper=ExplodingMapper()))

        response = client.post(
            "/orders/upload",
            headers=OWNER_HEADERS,
            files={"file": ("orders.csv", TABECHOKU_CSV, "text/csv")},
        )

        assert response.status_code == 500
        body = response.json()
        (diagnostic,) = body["diagnostics"]
        assert diagnostic["category"] == "UNKNOWN"
        assert body["request_id"] in diagnostic["message"]
        assert diagnostic["debug"] is None
        assert "mapper exploded" not in response.text
