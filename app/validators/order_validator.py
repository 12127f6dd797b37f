"""
app/validators/order_validator.py

Row-level normalization and validation of mapped order values.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

from app.domain.order_ingestion import (
    CanonicalOrderRecord,
    DataSource,
    RowResult,
    RowValidationError,
)

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y年%m月%d日",
    "%Y%m%d",
    # US-style exports written by spreadsheet tools.
    "%m/%d/%Y",
)

TIME_SUFFIXES: tuple[str, ...] = ("", " %H:%M", " %H:%M:%S")

_PRICE_STRIP_TOKENS: tuple[str, ...] = ("JPY", "税込", "円", "¥", "$", ",", " ")
_PRICE_PATTERN = re.compile(r"^([+-]?)(\d+)(?:\.0+)?$")

MESSAGE_REQUIRED = "Required value is missing."
MESSAGE_INVALID_PRICE = "Invalid price format."
MESSAGE_NEGATIVE_PRICE = "Price must be zero or greater."
MESSAGE_INVALID_DATE = "Invalid date format."


def normalize_text(value: Any) -> str:
    """
    NFKC-fold and trim a raw cell value; None becomes "".
    """

    if value is None:
        return ""
    return unicodedata.normalize("NFKC", str(value)).strip()


def parse_price(value: Any) -> int | None:
    """
    Parse a localized price string into an integer amount.

    Currency symbols, tax markers and grouping separators are removed
    first. Returns None for empty input or any non-numeric remainder.
    """

    text = normalize_text(value)
    for token in _PRICE_STRIP_TOKENS:
        text = text.replace(token, "")
    match = _PRICE_PATTERN.match(text)
    if match is None:
        return None
    sign, digits = match.groups()
    amount = int(digits)
    return -amount if sign == "-" else amount


def parse_date(value: Any) -> date | None:
    """
    Parse a delimited date notation; returns None when nothing matches.
    """

    text = normalize_text(value)
    if not text:
        return None

    for fmt in DATE_FORMATS:
        for suffix in TIME_SUFFIXES:
            try:
                return datetime.strptime(text, fmt + suffix).date()
            except ValueError:
                continue

    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(normalized).date()
    except ValueError:
        return None


class OrderRowValidator:
    """
    Coerces mapped raw strings into a CanonicalOrderRecord.
    """

    def __init__(self, *, clock: Callable[[], date] = date.today) -> None:
        self._clock = clock

    def validate(
        self,
        mapped_row: Mapping[str, str | None],
        line_number: int,
        *,
        data_source: DataSource = DataSource.UNKNOWN,
    ) -> RowResult:
        """
        Validate one mapped row. Never raises; errors are returned in the result.
        """

        errors: list[RowValidationError] = []

        order_code = self._parse_required_string(
            value=mapped_row.get("order_code"),
            line_number=line_number,
            column="order_code",
            errors=errors,
        )
        customer_name = self._parse_required_string(
            value=mapped_row.get("customer_name"),
            line_number=line_number,
            column="customer_name",
            errors=errors,
        )
        price = self._parse_price(
            value=mapped_row.get("price"),
            line_number=line_number,
            errors=errors,
        )
        order_date = self._parse_order_date(
            value=mapped_row.get("order_date"),
            line_number=line_number,
            errors=errors,
        )

        if errors or price is None or order_date is None:
            return RowResult(line_number=line_number, record=None, errors=tuple(errors))

        return RowResult(
            line_number=line_number,
            record=CanonicalOrderRecord(
                order_code=order_code,
                customer_name=customer_name,
                price=price,
                order_date=order_date,
                phone=self._parse_optional_string(mapped_row.get("phone")),
                address=self._parse_optional_string(mapped_row.get("address")),
                notes=self._parse_optional_string(mapped_row.get("notes")),
                delivery_date=parse_date(mapped_row.get("delivery_date")),
                source=data_source,
            ),
        )

    def _parse_required_string(
        self,
        *,
        value: str | None,
        line_number: int,
        column: str,
        errors: list[RowValidationError],
    ) -> str:
        text = normalize_text(value)
        if not text:
            errors.append(
                RowValidationError(
                    line_number=line_number,
                    field=column,
                    message=MESSAGE_REQUIRED,
                    value=self._stringify_value(value),
                )
            )
        return text

    def _parse_price(
        self,
        *,
        value: str | None,
        line_number: int,
        errors: list[RowValidationError],
    ) -> int | None:
        if not normalize_text(value):
            errors.append(
                RowValidationError(
                    line_number=line_number,
                    field="price",
                    message=MESSAGE_REQUIRED,
                    value=self._stringify_value(value),
                )
            )
            return None

        price = parse_price(value)
        if price is None:
            errors.append(
                RowValidationError(
                    line_number=line_number,
                    field="price",
                    message=MESSAGE_INVALID_PRICE,
                    value=self._stringify_value(value),
                )
            )
            return None
        if price < 0:
            errors.append(
                RowValidationError(
                    line_number=line_number,
                    field="price",
                    message=MESSAGE_NEGATIVE_PRICE,
                    value=self._stringify_value(value),
                )
            )
            return None
        return price

    def _parse_order_date(
        self,
        *,
        value: str | None,
        line_number: int,
        errors: list[RowValidationError],
    ) -> date | None:
        if not normalize_text(value):
            return self._clock()

        parsed = parse_date(value)
        if parsed is None:
            errors.append(
                RowValidationError(
                    line_number=line_number,
                    field="order_date",
                    message=MESSAGE_INVALID_DATE,
                    value=self._stringify_value(value),
                )
            )
        return parsed

    @staticmethod
    def _parse_optional_string(value: str | None) -> str | None:
        text = normalize_text(value)
        return text or None

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
