from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DocType(str, Enum):
    RECEIPT = "A"     # приход
    WRITE_OFF = "D"   # списание
    TRANSFER = "M"    # перемещение


class OwnerKind(str, Enum):
    DEAL = "deal"
    SPA = "spa"


# --- Владелец товарных строк: сделка или элемент смарт-процесса ---
class DealOwner(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[OwnerKind.DEAL] = OwnerKind.DEAL
    element_id: int = Field(gt=0)


class DynamicEntityOwner(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[OwnerKind.SPA] = OwnerKind.SPA
    element_id: int = Field(gt=0)
    entity_type_id: int = Field(gt=0)


Owner = DealOwner | DynamicEntityOwner


class ProductRow(BaseModel):
    """Товарная строка в том виде, в каком её вернул Bitrix24 (числа могут прийти строками)."""

    product_id: int = Field(gt=0)
    quantity: float | str
    price: float | str | None = None
    measure_code: int | str | None = None
    currency: str | None = None


class InventoryDocumentRequest(BaseModel):
    """Параметры запроса робота после валидации."""
    model_config = ConfigDict(frozen=True)

    doc_type: DocType
    owner: Owner = Field(discriminator="kind")
    store_id: int | None = None
    store_from: int | None = None
    store_to: int | None = None
    responsible_id: int | None = None
    comment: str | None = Field(default=None, max_length=500)
    timestamp: str | None = None
    signature: str | None = None


class DocumentLine(BaseModel):
    product_id: int
    quantity: float
    price: float | None = None
    currency: str
    measure_code: int | None = None


class InventoryDocumentPayload(BaseModel):
    """Нормализованный документ складского учёта, готовый к отправке в Bitrix24."""

    doc_type: DocType
    currency: str
    store_id: int | None = None
    store_from: int | None = None
    store_to: int | None = None
    comment: str | None = None
    responsible_id: int | None = None
    products: list[DocumentLine] = Field(min_length=1)


class SubmissionResult(BaseModel):
    document_id: int
    items_processed: int
