"""
app/mappers/source_schemas.py

Per-platform export schema definitions.

Each DataSource owns its header synonym table, composite-field rules and
user-facing export guidance. Supporting another upstream platform means
adding a DataSource member and one SourceSchema entry here.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field

from app.domain.order_ingestion import DataSource

CANONICAL_FIELDS: tuple[str, ...] = (
    "order_code",
    "customer_name",
    "phone",
    "address",
    "price",
    "order_date",
    "delivery_date",
    "notes",
)

REQUIRED_FIELDS: tuple[str, ...] = (
    "order_code",
    "customer_name",
    "price",
)

FIELD_LABELS: dict[str, str] = {
    "order_code": "Order code (注文番号)",
    "customer_name": "Customer name (顧客名)",
    "phone": "Phone (電話番号)",
    "address": "Address (住所)",
    "price": "Price (金額)",
    "order_date": "Order date (注文日)",
    "delivery_date": "Delivery date (希望配達日)",
    "notes": "Notes (備考)",
}


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.

    Full-width forms are folded (NFKC), case is dropped and only
    alphanumeric characters are kept, so ``購入者 名前`` and ``購入者名前``
    compare equal.
    """

    folded = unicodedata.normalize("NFKC", header).strip().lower()
    return "".join(ch for ch in folded if ch.isalnum())


@dataclass(frozen=True)
class CompositeField:
    """
    A canonical field assembled from two source columns (e.g. prefecture + street).
    """

    head: tuple[str, ...]
    tail: tuple[str, ...]
    separator: str = ""


@dataclass(frozen=True)
class SourceSchema:
    """
    Header synonyms and extraction rules for one upstream export format.
    """

    data_source: DataSource
    display_name: str
    field_candidates: Mapping[str, tuple[str, ...]]
    composite_fields: Mapping[str, CompositeField] = field(default_factory=dict)
    signature_fields: tuple[str, ...] = REQUIRED_FIELDS
    required_fields: tuple[str, ...] = REQUIRED_FIELDS
    export_instructions: tuple[str, ...] = ()

    def accepted_spellings(self, canonical_field: str) -> tuple[str, ...]:
        """
        Every header spelling that can supply ``canonical_field``.
        """

        spellings = list(self.field_candidates.get(canonical_field, ()))
        composite = self.composite_fields.get(canonical_field)
        if composite is not None:
            spellings.extend(composite.head)
            spellings.extend(composite.tail)
        return tuple(dict.fromkeys(spellings))

    def find_header(
        self,
        canonical_field: str,
        normalized_lookup: Mapping[str, str],
    ) -> str | None:
        """
        Return the first present source header for ``canonical_field``.
        """

        for spelling in self.accepted_spellings(canonical_field):
            match = normalized_lookup.get(normalize_header(spelling))
            if match is not None:
                return match
        return None


def build_header_lookup(headers: tuple[str, ...] | list[str]) -> dict[str, str]:
    """
    Map normalized header -> original header, first occurrence winning.
    """

    lookup: dict[str, str] = {}
    for header in headers:
        key = normalize_header(header)
        if key and key not in lookup:
            lookup[key] = header
    return lookup


COLORMI_SCHEMA = SourceSchema(
    data_source=DataSource.COLORMI,
    display_name="Color Me Shop",
    field_candidates={
        "order_code": ("売上ID", "受注番号"),
        "customer_name": ("購入者 名前", "購入者名", "顧客名", "名前"),
        "phone": ("購入者 電話番号", "電話番号"),
        "address": ("住所",),
        "price": ("購入商品 販売価格(消費税込)", "販売価格", "合計金額", "金額", "価格"),
        "order_date": ("受注日", "注文日"),
        "delivery_date": ("配送希望日", "お届け希望日", "希望配達日"),
        "notes": ("備考", "購入者 備考"),
    },
    composite_fields={
        "address": CompositeField(head=("購入者 都道府県",), tail=("購入者 住所",)),
    },
    export_instructions=(
        "In the Color Me Shop admin, open Order Management (受注管理) and use "
        "CSV Download (CSVダウンロード) to export in the standard format.",
        "Use the sales detail CSV (売上明細CSV) to export one line per order.",
    ),
)

TABECHOKU_SCHEMA = SourceSchema(
    data_source=DataSource.TABECHOKU,
    display_name="Tabechoku",
    field_candidates={
        "order_code": ("注文番号",),
        "customer_name": ("顧客名", "注文者名", "お届け先名", "名前"),
        "phone": ("電話番号", "お届け先電話番号", "注文者電話番号"),
        "address": ("住所",),
        "price": ("金額", "商品代金", "お支払い額", "生産者へのお支払い額", "価格"),
        "order_date": ("注文日", "注文日時"),
        "delivery_date": ("希望配達日", "お届け希望日", "配達希望日"),
        "notes": ("備考", "注文メモ"),
    },
    composite_fields={
        "address": CompositeField(head=("お届け先都道府県",), tail=("お届け先住所",)),
    },
    export_instructions=(
        "In the Tabechoku producer admin, export the order list as CSV.",
        "Make sure the order number (注文番号), customer name (顧客名) and amount "
        "(金額) columns are included.",
    ),
)

GENERIC_SCHEMA = SourceSchema(
    data_source=DataSource.UNKNOWN,
    display_name="Unidentified source",
    field_candidates={
        "order_code": (
            "注文番号",
            "注文ID",
            "受注番号",
            "売上ID",
            "order_code",
            "order_id",
            "order_number",
        ),
        "customer_name": ("顧客名", "氏名", "名前", "購入者名", "customer_name", "customer", "name"),
        "phone": ("電話番号", "phone", "tel"),
        "address": ("住所", "address"),
        "price": ("金額", "価格", "料金", "合計", "price", "amount", "total"),
        "order_date": ("注文日", "受注日", "order_date", "date"),
        "delivery_date": ("希望配達日", "お届け希望日", "delivery_date"),
        "notes": ("備考", "notes", "memo"),
    },
    export_instructions=(
        "Make sure the first line of the CSV is a header row with column names.",
        "At minimum an order code (注文番号), customer name (顧客名) and amount "
        "(金額) column are required.",
    ),
)

# Registration order is the classification tie-break order.
SCHEMA_REGISTRY: dict[DataSource, SourceSchema] = {
    DataSource.COLORMI: COLORMI_SCHEMA,
    DataSource.TABECHOKU: TABECHOKU_SCHEMA,
    DataSource.UNKNOWN: GENERIC_SCHEMA,
}

KNOWN_SOURCES: tuple[DataSource, ...] = tuple(
    source for source in SCHEMA_REGISTRY if source is not DataSource.UNKNOWN
)


def get_schema(data_source: DataSource) -> SourceSchema:
    return SCHEMA_REGISTRY.get(data_source, GENERIC_SCHEMA)


def missing_required_fields(
    headers: tuple[str, ...] | list[str],
    data_source: DataSource,
) -> frozenset[str]:
    """
    Required canonical fields with no accepted header spelling for ``data_source``.
    """

    schema = get_schema(data_source)
    lookup = build_header_lookup(headers)
    return frozenset(
        name for name in schema.required_fields if schema.find_header(name, lookup) is None
    )
