import logging
from typing import Any, Dict, Iterable

from app.core.errors import ConfigurationError, RemoteError
from app.core.observability import log_step
from app.integrations.bitrix_client import INVENTORY_METHODS
from app.schemas.inventory import DocType, DocumentLine, InventoryDocumentPayload, SubmissionResult
from .capability_cache import CapabilityCache


logger = logging.getLogger(__name__)

REQUIRED_METHODS = INVENTORY_METHODS


def header_fields(payload: InventoryDocumentPayload) -> Dict[str, Any]:
    fields: Dict[str, Any] = {"docType": payload.doc_type.value, "currency": payload.currency}
    if payload.comment:
        fields["comment"] = payload.comment
    if payload.responsible_id:
        fields["responsibleId"] = payload.responsible_id
    if payload.doc_type is DocType.TRANSFER:
        fields["storeFrom"] = payload.store_from
        fields["storeTo"] = payload.store_to
    else:
        fields["storeId"] = payload.store_id
    return fields


def line_fields(document_id: int, line: DocumentLine, document_currency: str) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "docId": document_id,
        "productId": line.product_id,
        "quantity": line.quantity,
        "price": line.price if line.price is not None else 0,
        "currency": line.currency or document_currency,
    }
    if line.measure_code is not None:
        fields["measureCode"] = line.measure_code
    return fields


class DocumentSubmitter:
    """
    Отправка документа в Bitrix24: проверка прав вебхука, шапка документа, затем строки по одной.

    Шапка и строки не атомарны: если строка N упала, документ и строки 1..N-1
    остаются в Bitrix24, откат не выполняется.
    """

    def __init__(self, client, cache: CapabilityCache, required_methods: Iterable[str] = REQUIRED_METHODS):
        self.client = client
        self.cache = cache
        self.required_methods = tuple(required_methods)

    @log_step("documents.check_capabilities")
    async def check_capabilities(self) -> None:
        key = self.client.endpoint
        methods = self.cache.get(key)
        if methods is None:
            fetched = await self.client.list_methods()
            if not fetched:
                # Пустой список - сбой ответа, а не отсутствие прав: в кэш не кладём
                raise RemoteError("Bitrix24 returned an empty method list")
            methods = self.cache.put(key, fetched).methods
            logger.info("Capability list refreshed", extra={"extra": {"endpoint": key, "methods_count": len(methods)}})

        missing = [m for m in self.required_methods if m.lower() not in methods]
        if missing:
            raise ConfigurationError(
                f"Bitrix24 webhook has no access to: {', '.join(missing)}. "
                "Grant the 'catalog' scope to the inbound webhook and retry.",
                missing_methods=missing,
            )

    @log_step("documents.submit")
    async def submit(self, payload: InventoryDocumentPayload) -> SubmissionResult:
        await self.check_capabilities()

        document_id = await self.client.add_document(header_fields(payload))
        logger.info("Document header created", extra={"extra": {"document_id": document_id,
                                                                 "doc_type": payload.doc_type.value}})

        processed = 0
        for line in payload.products:
            try:
                await self.client.add_document_product(line_fields(document_id, line, payload.currency))
            except RemoteError as e:
                logger.error("Document line failed, remaining lines skipped",
                             extra={"extra": {"document_id": document_id, "product_id": line.product_id,
                                              "lines_created": processed, "lines_total": len(payload.products)}})
                raise RemoteError(
                    f"{e.message} (document {document_id}: {processed} of {len(payload.products)} lines created)"
                ) from e
            processed += 1

        return SubmissionResult(document_id=document_id, items_processed=processed)
