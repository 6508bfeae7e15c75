import hashlib
import logging
from typing import Any, Dict, List

import httpx

from .base_client import BaseApiClient
from app.core.config import settings
from app.core.errors import ConfigurationError, RemoteError


logger = logging.getLogger(__name__)

ROW_FIELDS = ["productId", "quantity", "price", "measureCode", "currency"]

# Методы складского учёта, без которых документ не создать (scope "catalog")
INVENTORY_METHODS = ("catalog.document.add", "catalog.document.product.add", "catalog.store.list")


def endpoint_key(webhook_url: str) -> str:
    """Идентификатор портала/вебхука без секрета: URL содержит токен и не должен попадать в логи."""
    return hashlib.sha256(webhook_url.rstrip("/").encode("utf-8")).hexdigest()[:16]


def _platform_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return str(data.get("error_description") or data["error"])
    return f"HTTP {response.status_code}"


class BitrixClient(BaseApiClient):
    """
    Клиент REST API Bitrix24 через входящий вебхук:
    POST <webhook>/<method> с JSON-телом, ответ {"result": ...} или {"error": ..., "error_description": ...}.
    """

    # Методы, которые только читают данные: их безопасно повторять
    READ_METHODS = frozenset({"crm.deal.productrows.get", "crm.item.productrow.list", "methods"})

    def __init__(self, webhook_url: str | None = None, read_retries: int | None = None, timeout: float | None = None):
        webhook_url = webhook_url or settings.B24_WEBHOOK_URL
        if not webhook_url:
            raise ConfigurationError("B24_WEBHOOK_URL is not configured")
        super().__init__(
            base_url=webhook_url.rstrip("/") + "/",
            timeout=timeout if timeout is not None else settings.B24_TIMEOUT_SECONDS,
        )
        self.endpoint = endpoint_key(webhook_url)
        self.read_retries = read_retries if read_retries is not None else settings.B24_READ_RETRIES

    async def call(self, method: str, params: Dict[str, Any] | None = None) -> Any:
        """Вызов REST-метода. Ошибки транспорта и платформы превращаются в RemoteError."""
        tries = self.read_retries if method in self.READ_METHODS else 1
        try:
            data = await self._request("POST", method, tries=tries, json=params or {})
        except httpx.HTTPStatusError as e:
            raise RemoteError(f"Bitrix24 error in {method}: {_platform_message(e.response)}") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"Bitrix24 is unreachable ({method}): {type(e).__name__}") from e

        if not isinstance(data, dict):
            raise RemoteError(f"Bitrix24 error in {method}: unexpected response")
        if data.get("error"):
            msg = data.get("error_description") or data["error"]
            raise RemoteError(f"Bitrix24 error in {method}: {msg}")
        if "result" not in data:
            raise RemoteError(f"Bitrix24 error in {method}: unexpected response")
        return data["result"]

    async def get_deal_product_rows(self, deal_id: int) -> List[Dict[str, Any]]:
        result = await self.call("crm.deal.productrows.get", {"id": deal_id})
        if not isinstance(result, list):
            raise RemoteError("Bitrix24 error in crm.deal.productrows.get: unexpected response")
        return result

    async def get_item_product_rows(self, entity_type_id: int, owner_id: int) -> List[Dict[str, Any]]:
        """Товарные строки элемента смарт-процесса (crm.item.productrow.list)."""
        result = await self.call(
            "crm.item.productrow.list",
            {
                "filter": {"ownerId": owner_id, "entityTypeId": entity_type_id},
                "select": ROW_FIELDS,
            },
        )
        if isinstance(result, dict):
            result = result.get("productRows", result.get("items"))
        if not isinstance(result, list):
            raise RemoteError("Bitrix24 error in crm.item.productrow.list: unexpected response")
        return result

    async def list_methods(self) -> set[str]:
        """Список методов, доступных вебхуку (зависит от выданных прав)."""
        result = await self.call("methods")
        if isinstance(result, dict):
            result = list(result.keys())
        if not isinstance(result, list) or not result:
            raise RemoteError("Bitrix24 error in methods: unexpected response")
        return {str(m).lower() for m in result}

    async def add_document(self, fields: Dict[str, Any]) -> int:
        result = await self.call("catalog.document.add", {"fields": fields})
        document_id = None
        if isinstance(result, dict):
            document = result.get("document")
            document_id = document.get("id") if isinstance(document, dict) else result.get("id")
        elif isinstance(result, (int, str)):
            document_id = result
        try:
            return int(document_id)
        except (TypeError, ValueError):
            raise RemoteError("Bitrix24 error in catalog.document.add: no document id in response")

    async def add_document_product(self, fields: Dict[str, Any]) -> Any:
        return await self.call("catalog.document.product.add", {"fields": fields})


class MockBitrixClient:
    """Заглушка для B24_MOCK=true: те же методы, без сети."""

    endpoint = "mock"
    DOCUMENT_ID = 999

    def __init__(self, methods: set[str] | None = None):
        self.methods = methods
        self.calls: list[tuple[str, Dict[str, Any]]] = []

    async def get_deal_product_rows(self, deal_id: int) -> List[Dict[str, Any]]:
        self.calls.append(("crm.deal.productrows.get", {"id": deal_id}))
        return [{"productId": 101, "quantity": 2}]

    async def get_item_product_rows(self, entity_type_id: int, owner_id: int) -> List[Dict[str, Any]]:
        self.calls.append(("crm.item.productrow.list", {"ownerId": owner_id, "entityTypeId": entity_type_id}))
        return [{"productId": 202, "quantity": 5}]

    async def list_methods(self) -> set[str]:
        self.calls.append(("methods", {}))
        return set(self.methods) if self.methods is not None else set(INVENTORY_METHODS)

    async def add_document(self, fields: Dict[str, Any]) -> int:
        self.calls.append(("catalog.document.add", fields))
        return self.DOCUMENT_ID

    async def add_document_product(self, fields: Dict[str, Any]) -> Any:
        self.calls.append(("catalog.document.product.add", fields))
        return {"id": len(self.calls)}

    async def close(self):
        return None


def create_bitrix_client() -> BitrixClient | MockBitrixClient:
    if settings.B24_MOCK:
        logger.info("B24_MOCK enabled, using mock Bitrix24 client")
        return MockBitrixClient()
    return BitrixClient()
