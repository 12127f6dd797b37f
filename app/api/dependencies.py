"""
app/api/dependencies.py

Shared FastAPI dependencies for order upload requests.
"""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, File, Header, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.repositories.category_repository import CategoryRepository
from db.session import get_db


def get_owner_id(x_owner_id: str | None = Header(default=None, alias="X-Owner-Id")) -> str:
    """
    Owner identity already validated by the session layer upstream.
    """

    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Owner identity is required.",
        )
    return owner_id


def get_order_upload(file: UploadFile = File(...)) -> Generator[UploadFile, None, None]:
    """
    Yield the uploaded file and close it once the request is handled.

    Extension and size checks are left to the ingestion diagnostics so the
    user gets a structured FILE_FORMAT diagnostic instead of a bare 400.
    """

    try:
        yield file
    finally:
        file.file.close()


def get_category_repository(db: Session = Depends(get_db)) -> CategoryRepository:
    return CategoryRepository(db)
