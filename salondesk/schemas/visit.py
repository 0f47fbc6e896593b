from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.inventory import MovementOut
from salondesk.schemas.material import MaterialUnit


class VisitCreate(BaseModel):
    client_id: str


class VisitUpdate(BaseModel):
    note: str | None = Field(default=None, max_length=1000)
    total_price: Decimal | None = Field(default=None, ge=0)


class VisitServiceCreate(BaseModel):
    service_id: str


class VisitMaterialCreate(BaseModel):
    material_id: str
    quantity: Decimal = Field(gt=0)
    unit: MaterialUnit

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"material_id": "material-id-here", "quantity": 30, "unit": "g"}
        }
    )


class VisitMaterialUpdate(BaseModel):
    quantity: Decimal = Field(gt=0)
    unit: MaterialUnit | None = None


class VisitMaterialOut(BaseModel):
    id: str
    material_id: str
    material_name: str | None = None
    quantity: float
    unit: MaterialUnit
    packages: float


class VisitServiceOut(BaseModel):
    id: str
    service_id: str
    service_name: str | None = None
    sort_order: int
    materials: list[VisitMaterialOut] = []


class VisitOut(BaseModel):
    id: str
    client_id: str
    status: str
    total_price: float | None = None
    note: str | None = None
    closed_at: datetime | None = None
    created_at: datetime
    services: list[VisitServiceOut] = []


class VisitCloseIn(BaseModel):
    total_price: Decimal | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=1000)


class VisitCloseOut(BaseModel):
    visit: VisitOut
    transaction_id: str
    movements: list[MovementOut]
