import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from app.core.errors import NotFound, RemoteError
from app.core.observability import log_step
from app.schemas.inventory import DealOwner, DynamicEntityOwner, Owner, ProductRow


logger = logging.getLogger(__name__)

# crm.deal.productrows.get отдаёт ключи в UPPER_SNAKE, crm.item.productrow.list - в camelCase
_ROW_KEYS = {
    "product_id": ("productId", "PRODUCT_ID"),
    "quantity": ("quantity", "QUANTITY"),
    "price": ("price", "PRICE"),
    "measure_code": ("measureCode", "MEASURE_CODE"),
    "currency": ("currency", "CURRENCY_ID", "CURRENCY"),
}


def _pick(raw: Dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if raw.get(key) not in (None, ""):
            return raw[key]
    return None


def normalize_row(raw: Any) -> ProductRow:
    if not isinstance(raw, dict):
        raise RemoteError(f"Malformed product row from Bitrix24: {raw!r}")
    values = {field: _pick(raw, keys) for field, keys in _ROW_KEYS.items()}
    if values["quantity"] is None:
        values["quantity"] = ""
    try:
        return ProductRow(**values)
    except ValidationError as e:
        raise RemoteError(f"Malformed product row from Bitrix24: {e.errors()[0]['msg']}") from e


class ProductRowFetcher:
    def __init__(self, client):
        self.client = client

    async def _fetch_raw(self, owner: Owner) -> List[Dict[str, Any]]:
        if isinstance(owner, DealOwner):
            return await self.client.get_deal_product_rows(owner.element_id)
        if isinstance(owner, DynamicEntityOwner):
            return await self.client.get_item_product_rows(owner.entity_type_id, owner.element_id)
        raise TypeError(f"Unsupported owner: {owner!r}")

    @log_step("documents.fetch_rows")
    async def fetch(self, owner: Owner) -> List[ProductRow]:
        raw_rows = await self._fetch_raw(owner)
        logger.info("Fetched product rows", extra={"extra": {
            "owner": owner.kind.value, "element_id": owner.element_id, "total": len(raw_rows)}})
        if not raw_rows:
            raise NotFound("No product rows for element")
        return [normalize_row(r) for r in raw_rows]
