from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.common import PaginationMeta
from salondesk.schemas.sales import SaleItemIn


class ClientGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class ClientGroupUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class ClientGroupOut(BaseModel):
    id: str
    name: str
    is_system: bool
    sort_order: int
    clients_count: int = 0


class ClientGroupListOut(BaseModel):
    groups: list[ClientGroupOut]
    total_clients: int


class ClientCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    phone: str | None = Field(default=None, max_length=40)
    group_id: str | None = None
    avatar: str | None = Field(default=None, max_length=8)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "first_name": "Jana",
                "last_name": "Novakova",
                "phone": "+420 601 234 567",
                "group_id": None,
            }
        }
    )


class ClientUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=120)
    last_name: str | None = Field(default=None, min_length=1, max_length=120)
    phone: str | None = Field(default=None, max_length=40)
    group_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class ClientOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    phone: str | None = None
    group_id: str | None = None
    avatar: str | None = None
    visits_count: int = 0
    created_at: datetime


class ClientListOut(BaseModel):
    items: list[ClientOut]
    pagination: PaginationMeta


class ClientProductsCreate(BaseModel):
    products: list[SaleItemIn] = Field(min_length=1)
    total_price: Decimal | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=500)


class ClientNoteIn(BaseModel):
    note: str = Field(min_length=1, max_length=2000)


class ClientNoteOut(BaseModel):
    id: str
    client_id: str
    note: str
    created_at: datetime
    updated_at: datetime | None = None
