"""
app/repositories/order_repository.py

Persistence collaborator for canonical order records.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.order_ingestion import CanonicalOrderRecord, DataSource, InsertResult
from db.models.order import Order
from db.session import session_scope

logger = logging.getLogger(__name__)


class OrderPersistenceError(RuntimeError):
    """
    Raised when the order store cannot be read.
    """


class OrderStore(Protocol):
    def find_by_key(self, owner_id: str, order_code: str) -> CanonicalOrderRecord | None:
        ...

    def insert(
        self,
        owner_id: str,
        record: CanonicalOrderRecord,
        grouping_id: int | None = None,
    ) -> InsertResult:
        ...


OrderStoreFactory = Callable[[], AbstractContextManager[OrderStore]]


class OrderRepository:
    """
    SQLAlchemy-backed OrderStore.

    Each insert is its own transaction so one failing row never rolls back
    rows persisted before it, and later lookups see earlier inserts.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_key(self, owner_id: str, order_code: str) -> CanonicalOrderRecord | None:
        stmt = select(Order).where(
            Order.owner_id == owner_id,
            Order.order_code == order_code,
        )
        try:
            row = self._session.scalars(stmt).first()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise OrderPersistenceError(f"Order lookup failed: {exc}") from exc
        if row is None:
            return None
        return self._to_record(row)

    def insert(
        self,
        owner_id: str,
        record: CanonicalOrderRecord,
        grouping_id: int | None = None,
    ) -> InsertResult:
        model = Order(
            owner_id=owner_id,
            order_code=record.order_code,
            customer_name=record.customer_name,
            phone=record.phone,
            address=record.address,
            price=record.price,
            order_date=record.order_date,
            delivery_date=record.delivery_date,
            notes=record.notes,
            source=record.source.value,
            category_id=grouping_id,
        )
        try:
            self._session.add(model)
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            logger.warning(
                "Order insert violated a constraint owner_id=%s order_code=%s: %s",
                owner_id,
                record.order_code,
                exc.orig,
            )
            return InsertResult(success=False, reason=f"Constraint violation: {exc.orig}")
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning(
                "Order insert failed owner_id=%s order_code=%s: %s",
                owner_id,
                record.order_code,
                exc,
            )
            return InsertResult(success=False, reason=str(exc))
        return InsertResult(success=True)

    @staticmethod
    def _to_record(row: Order) -> CanonicalOrderRecord:
        try:
            source = DataSource(row.source)
        except ValueError:
            source = DataSource.UNKNOWN
        return CanonicalOrderRecord(
            order_code=row.order_code,
            customer_name=row.customer_name,
            price=row.price,
            order_date=row.order_date,
            phone=row.phone,
            address=row.address,
            notes=row.notes,
            delivery_date=row.delivery_date,
            source=source,
        )


@contextmanager
def order_store_scope() -> Iterator[OrderRepository]:
    """
    Acquire one database-backed store for a single ingestion run.
    """

    with session_scope() as session:
        yield OrderRepository(session)
