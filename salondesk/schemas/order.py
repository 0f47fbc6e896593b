from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.common import PaginationMeta
from salondesk.schemas.inventory import MovementOut

OrderStatus = Literal["pending", "ordered", "delivered"]


class OrderItemIn(BaseModel):
    material_id: str
    quantity: Decimal = Field(gt=0)
    price: Decimal | None = Field(default=None, ge=0)


class OrderCreate(BaseModel):
    note: str | None = Field(default=None, max_length=500)
    items: list[OrderItemIn] = Field(min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "note": "Monthly colour restock",
                "items": [
                    {"material_id": "material-id-here", "quantity": 10, "price": 189.0},
                ],
            }
        }
    )


class OrderStatusUpdateIn(BaseModel):
    status: OrderStatus


class DeliveryOverrideIn(BaseModel):
    item_id: str
    quantity: Decimal = Field(ge=0, description="Quantity that actually arrived; 0 skips the line.")


class DeliveryExtraItemIn(BaseModel):
    material_id: str
    quantity: Decimal = Field(gt=0)


class OrderDeliverIn(BaseModel):
    overrides: list[DeliveryOverrideIn] = Field(default_factory=list)
    extra_items: list[DeliveryExtraItemIn] = Field(default_factory=list)
    note: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "overrides": [{"item_id": "order-item-id", "quantity": 7}],
                "extra_items": [{"material_id": "material-id-here", "quantity": 2}],
                "note": "Packing slip 2231",
            }
        }
    )


class OrderItemOut(BaseModel):
    id: str
    material_id: str
    material_name: str | None = None
    quantity: float
    price: float | None = None
    delivered_quantity: float | None = None
    added_on_delivery: bool


class OrderOut(BaseModel):
    id: str
    status: OrderStatus
    note: str | None = None
    ordered_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemOut]


class OrderListOut(BaseModel):
    items: list[OrderOut]
    pagination: PaginationMeta
    status: OrderStatus | None = None


class OrderDeliverOut(BaseModel):
    order: OrderOut
    transaction_id: str
    movements: list[MovementOut]
