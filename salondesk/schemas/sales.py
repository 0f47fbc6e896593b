from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.common import PaginationMeta
from salondesk.schemas.inventory import MovementOut, TransactionGroupOut

SaleHistoryKind = Literal["sale", "usage", "all"]


class SaleItemIn(BaseModel):
    material_id: str
    quantity: Decimal = Field(gt=0, description="Quantity in packages.")


class SaleCreate(BaseModel):
    items: list[SaleItemIn] = Field(min_length=1)
    client_id: str | None = None
    total_price: Decimal | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "client_id": "client-id-here",
                "total_price": 890,
                "note": "Paid by card",
                "items": [
                    {"material_id": "shampoo-id", "quantity": 1},
                    {"material_id": "mask-id", "quantity": 1},
                ],
            }
        }
    )


class UsageCreate(BaseModel):
    items: list[SaleItemIn] = Field(min_length=1)
    client_id: str | None = None
    note: str | None = Field(default=None, max_length=500)


class HomeProductOut(BaseModel):
    id: str
    client_id: str
    material_id: str | None = None
    purchase_id: str | None = None
    name: str
    quantity: float
    unit: str
    package_size: float
    total_price: float | None = None
    note: str | None = None
    created_at: datetime

    @classmethod
    def from_row(cls, row) -> "HomeProductOut":
        return cls(
            id=row.id,
            client_id=row.client_id,
            material_id=row.material_id,
            purchase_id=row.purchase_id,
            name=row.name,
            quantity=float(row.quantity),
            unit=row.unit,
            package_size=float(row.package_size),
            total_price=float(row.total_price) if row.total_price is not None else None,
            note=row.note,
            created_at=row.created_at,
        )


class SaleCreateOut(BaseModel):
    transaction_id: str
    reference: str
    movements: list[MovementOut]
    home_products: list[HomeProductOut]


class UsageCreateOut(BaseModel):
    transaction_id: str
    reference: str
    movements: list[MovementOut]


class SaleHistoryListOut(BaseModel):
    items: list[TransactionGroupOut]
    pagination: PaginationMeta
    client_id: str | None = None
    kind: SaleHistoryKind = "sale"
