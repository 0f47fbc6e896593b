from decimal import Decimal

from pydantic import BaseModel, Field


class ServiceGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class ServiceCreate(BaseModel):
    group_id: str
    name: str = Field(min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0)


class ServiceOut(BaseModel):
    id: str
    group_id: str
    name: str
    price: float | None = None
    sort_order: int


class ServiceGroupOut(BaseModel):
    id: str
    name: str
    sort_order: int
    services: list[ServiceOut] = []
