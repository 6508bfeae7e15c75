from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.errors import InvalidInput
from app.schemas.inventory import (
    DealOwner,
    DocType,
    DynamicEntityOwner,
    InventoryDocumentRequest,
    Owner,
)

COMMENT_MAX = 500


def _positive_int(value: Any) -> int:
    text = str(value).strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValueError("must be a positive integer")
    return int(text)


class ProcessDocsQuery(BaseModel):
    """Query-параметры робота как есть: все значения приходят строками."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    elemId: int
    # Владелец: приоритет у краткого типа. D=сделка, S=смарт-процесс
    ownerTypeShort: Literal["D", "S"] | None = None
    elemType: Literal["D", "S"] | None = None
    spaTypeId: int | None = None  # entityTypeId смарт-процесса

    docType: DocType  # A=приход, D=списание, M=перемещение

    storeId: int | None = None
    storeFrom: int | None = None
    storeTo: int | None = None

    responsibleId: int | None = None
    comment: str | None = Field(default=None, max_length=COMMENT_MAX)

    ts: str | None = None
    sig: str | None = None

    @field_validator("elemId", mode="before")
    @classmethod
    def _parse_elem_id(cls, value: Any) -> int:
        return _positive_int(value)

    @field_validator("spaTypeId", "storeId", "storeFrom", "storeTo", "responsibleId", mode="before")
    @classmethod
    def _parse_optional_id(cls, value: Any) -> int | None:
        if value is None or value == "":
            return None
        return _positive_int(value)

    @field_validator("ownerTypeShort", "elemType", "comment", "ts", "sig", mode="before")
    @classmethod
    def _empty_as_missing(cls, value: Any) -> Any:
        return None if value == "" else value


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "query"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


def parse_query(raw: Mapping[str, Any]) -> ProcessDocsQuery:
    try:
        return ProcessDocsQuery.model_validate(dict(raw))
    except ValidationError as e:
        raise InvalidInput(_format_errors(e)) from e


def validate_stores(query: ProcessDocsQuery) -> None:
    if query.docType is DocType.TRANSFER:
        if not query.storeFrom or not query.storeTo:
            raise InvalidInput("storeFrom and storeTo are required for docType=M")
    elif not query.storeId:
        raise InvalidInput("storeId is required for docType=A|D")


def resolve_owner(query: ProcessDocsQuery) -> Owner:
    if query.ownerTypeShort == "D":
        return DealOwner(element_id=query.elemId)
    if query.ownerTypeShort == "S":
        if not query.spaTypeId:
            raise InvalidInput("spaTypeId is required for ownerTypeShort=S")
        return DynamicEntityOwner(element_id=query.elemId, entity_type_id=query.spaTypeId)
    if query.elemType == "D":
        return DealOwner(element_id=query.elemId)
    if query.elemType == "S" and query.spaTypeId:
        return DynamicEntityOwner(element_id=query.elemId, entity_type_id=query.spaTypeId)
    raise InvalidInput(
        "Owner not specified. Provide ownerTypeShort=D|S or elemType+spaTypeId for SPA"
    )


def build_request(query: ProcessDocsQuery) -> InventoryDocumentRequest:
    """Проверки после разбора: склады по типу документа и владелец."""
    validate_stores(query)
    owner = resolve_owner(query)
    return InventoryDocumentRequest(
        doc_type=query.docType,
        owner=owner,
        store_id=query.storeId,
        store_from=query.storeFrom,
        store_to=query.storeTo,
        responsible_id=query.responsibleId,
        comment=query.comment,
        timestamp=query.ts,
        signature=query.sig,
    )


def validate_request(raw: Mapping[str, Any]) -> InventoryDocumentRequest:
    """Сырые query-параметры -> провалидированный запрос, либо InvalidInput."""
    return build_request(parse_query(raw))
