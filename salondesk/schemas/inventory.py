from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.common import PaginationMeta

MovementTypeName = Literal["DELIVERY", "PURCHASE", "SALE", "USAGE", "VISIT"]


class MovementOut(BaseModel):
    id: str
    material_id: str
    material_name: str | None = None
    transaction_id: str
    type: MovementTypeName
    quantity: float
    note: str | None = None
    client_id: str | None = None
    visit_id: str | None = None
    total_price: float | None = None
    created_at: datetime

    @classmethod
    def from_row(cls, row, material_name: str | None = None) -> "MovementOut":
        return cls(
            id=row.id,
            material_id=row.material_id,
            material_name=material_name,
            transaction_id=row.transaction_id,
            type=row.type,
            quantity=float(row.quantity),
            note=row.note,
            client_id=row.client_id,
            visit_id=row.visit_id,
            total_price=float(row.total_price) if row.total_price is not None else None,
            created_at=row.created_at,
        )


class MovementListOut(BaseModel):
    items: list[MovementOut]
    pagination: PaginationMeta


class ManualMovementIn(BaseModel):
    material_id: str
    quantity: Decimal = Field(gt=0, description="Quantity in packages.")
    direction: Literal["in", "out"]
    type: Literal["DELIVERY", "PURCHASE", "SALE", "USAGE"] | None = Field(
        default=None,
        description="Defaults to PURCHASE for 'in' and USAGE for 'out'.",
    )
    note: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "material_id": "material-id-here",
                "quantity": 2,
                "direction": "out",
                "note": "Tube dropped and cracked",
            }
        }
    )


class TransactionGroupOut(BaseModel):
    transaction_id: str
    reference: str | None = None
    cause: str | None = None
    client_id: str | None = None
    note: str | None = None
    total_price: float | None = None
    created_at: datetime
    movements: list[MovementOut]

    @classmethod
    def from_group(
        cls,
        group,
        *,
        transaction=None,
        material_names: dict[str, str] | None = None,
    ) -> "TransactionGroupOut":
        names = material_names or {}
        return cls(
            transaction_id=group.transaction_id,
            reference=transaction.reference if transaction is not None else None,
            cause=transaction.cause if transaction is not None else None,
            client_id=transaction.client_id if transaction is not None else group.client_id,
            note=group.note,
            total_price=float(group.total_price) if group.total_price is not None else None,
            created_at=group.created_at,
            movements=[
                MovementOut.from_row(row, material_name=names.get(row.material_id))
                for row in group.movements
            ],
        )


class TransactionGroupListOut(BaseModel):
    items: list[TransactionGroupOut]
    pagination: PaginationMeta
