import logging
from typing import Any, Callable, Dict, Mapping

from app.core.config import Settings, settings as default_settings
from app.core.errors import InvalidInput
from app.core.observability import log_step
from app.core.signature import SignatureVerifier
from app.integrations.bitrix_client import create_bitrix_client
from app.schemas.inventory import DocType, InventoryDocumentRequest
from .capability_cache import CapabilityCache
from .document_builder import build_document
from .document_submitter import DocumentSubmitter
from .product_rows import ProductRowFetcher
from .request_validator import build_request, parse_query


logger = logging.getLogger(__name__)

# Общий на процесс кэш прав вебхуков
capability_cache = CapabilityCache(ttl_seconds=default_settings.CAPABILITY_CACHE_TTL_SECONDS)


def stores_info(request: InventoryDocumentRequest) -> Dict[str, Any]:
    if request.doc_type is DocType.TRANSFER:
        return {"from": request.store_from, "to": request.store_to}
    return {"id": request.store_id}


class InventoryDocumentService:
    """
    Обработка одного запроса робота:
    разбор параметров -> подпись -> склады/владелец -> товарные строки -> документ -> отправка.
    """
    PROCESS_NAME = "InventoryDocument"

    def __init__(
        self,
        settings: Settings = default_settings,
        cache: CapabilityCache | None = None,
        client_factory: Callable[[], Any] = create_bitrix_client,
        verifier: SignatureVerifier | None = None,
    ):
        self.settings = settings
        self.cache = cache if cache is not None else capability_cache
        self.client_factory = client_factory
        if verifier is None and settings.SIGN_KEY:
            verifier = SignatureVerifier(settings.SIGN_KEY, settings.SIGNATURE_WINDOW_SECONDS)
        self.verifier = verifier

    def check_signature(self, signature: str | None, timestamp: str | None) -> None:
        # Проверяем, только если задан ключ и клиент прислал хоть что-то из пары ts/sig
        if self.verifier is None or not (signature or timestamp):
            return
        if not self.verifier.verify(signature, timestamp):
            raise InvalidInput("Invalid signature")

    @log_step("documents.validate")
    def validate(self, raw_query: Mapping[str, Any]) -> InventoryDocumentRequest:
        query = parse_query(raw_query)
        self.check_signature(query.sig, query.ts)
        return build_request(query)

    @log_step("documents.process")
    async def process(self, raw_query: Mapping[str, Any]) -> Dict[str, Any]:
        request = self.validate(raw_query)
        owner = request.owner

        client = self.client_factory()
        try:
            # 1) Получаем товарные строки
            rows = await ProductRowFetcher(client).fetch(owner)

            # 2) Готовим документ складского учёта
            payload = build_document(
                doc_type=request.doc_type,
                rows=rows,
                default_currency=self.settings.DEFAULT_CURRENCY,
                store_id=request.store_id,
                store_from=request.store_from,
                store_to=request.store_to,
                comment=request.comment,
                responsible_id=request.responsible_id,
            )

            # 3) Отправляем в Bitrix24
            result = await DocumentSubmitter(client, self.cache).submit(payload)
        finally:
            await client.close()

        stores = stores_info(request)
        response = {
            "status": "ok",
            "owner": owner.kind.value,
            "elemId": owner.element_id,
            "docType": request.doc_type.value,
            "stores": stores,
            "rowsFound": len(rows),
            "rowsProcessed": result.items_processed,
            "message": f"Document created: {result.document_id}",
        }
        logger.info("Inventory document created", extra={"extra": {
            "owner": owner.kind.value, "doc_type": request.doc_type.value, "elem_id": owner.element_id,
            "stores": stores, "rows_found": len(rows), "rows_processed": result.items_processed,
            "document_id": result.document_id}})
        return response
