import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.errors import AppError, error_envelope
from app.core.logging import set_request_id
from app.services.document_service import InventoryDocumentService


logger = logging.getLogger(__name__)
router = APIRouter()

ROUTE = "/process_docs_external"


def get_document_service() -> InventoryDocumentService:
    return InventoryDocumentService()


@router.api_route(
    ROUTE,
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    summary="Создать складской документ по товарам сделки или смарт-процесса",
)
async def process_docs_external(
    request: Request,
    service: InventoryDocumentService = Depends(get_document_service),
):
    """
    Точка входа робота Bitrix24. Параметры передаются в query-строке:
    elemId, ownerTypeShort | elemType+spaTypeId, docType (A|D|M), storeId | storeFrom+storeTo,
    responsibleId, comment, ts+sig.
    """
    # Set request correlation ID
    request_id = set_request_id()
    start = time.perf_counter()
    query = dict(request.query_params)
    try:
        return await service.process(query)
    except AppError as e:
        logger.error("Failed to process %s request: %s", ROUTE, e.message,
                     extra={"extra": {"code": e.http_code, "query": query}})
        return JSONResponse(status_code=e.http_code, content=error_envelope(e))
    except Exception:
        logger.exception("Unhandled error in %s", ROUTE, extra={"extra": {"query": query}})
        return JSONResponse(
            status_code=500,
            content={"status": "error", "code": 500, "message": "Internal Server Error"},
        )
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000)
        logger.info("Processed %s", ROUTE, extra={"extra": {
            "duration_ms": duration_ms, "route": ROUTE, "request_id": request_id,
            "doc_type": query.get("docType"), "elem_id": query.get("elemId")}})
