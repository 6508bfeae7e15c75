import math
from typing import Any, Sequence

from app.core.errors import InvalidInput, NotFound
from app.schemas.inventory import DocType, DocumentLine, InventoryDocumentPayload, ProductRow


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_measure_code(value: Any) -> int | None:
    number = _to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def build_line(row: ProductRow, default_currency: str) -> DocumentLine:
    quantity = _to_number(row.quantity)
    if quantity is None:
        raise InvalidInput(f"Invalid quantity {row.quantity!r} for product {row.product_id}")
    return DocumentLine(
        product_id=row.product_id,
        quantity=quantity,
        price=_to_number(row.price),
        currency=row.currency or default_currency,
        measure_code=_to_measure_code(row.measure_code),
    )


def build_document(
    *,
    doc_type: DocType,
    rows: Sequence[ProductRow],
    default_currency: str,
    store_id: int | None = None,
    store_from: int | None = None,
    store_to: int | None = None,
    comment: str | None = None,
    responsible_id: int | None = None,
) -> InventoryDocumentPayload:
    """
    Товарные строки + параметры запроса -> документ складского учёта.

    Чистая функция: без обращений к сети и без скрытого состояния.
    Склады проверяются повторно, т.к. функцию можно вызвать в обход валидатора запроса.
    """
    if not rows:
        raise NotFound("No product rows")

    products = [build_line(row, default_currency) for row in rows]
    base = dict(
        doc_type=doc_type,
        currency=default_currency,
        comment=comment,
        responsible_id=responsible_id,
        products=products,
    )

    if doc_type is DocType.TRANSFER:
        if not store_from or not store_to:
            raise InvalidInput("storeFrom and storeTo are required for transfer")
        return InventoryDocumentPayload(**base, store_from=store_from, store_to=store_to)

    if not store_id:
        raise InvalidInput("storeId is required for A|D")
    return InventoryDocumentPayload(**base, store_id=store_id)
