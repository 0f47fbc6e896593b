from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from salondesk.schemas.inventory import MovementOut

MaterialUnit = Literal["g", "ml", "ks"]


class MaterialGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class MaterialGroupOut(BaseModel):
    id: str
    name: str
    sort_order: int
    materials_count: int = 0


class MaterialCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    group_id: str
    unit: MaterialUnit
    package_size: Decimal = Field(gt=0, description="Amount of `unit` in one package.")
    stock_quantity: Decimal = Field(default=Decimal("0"), ge=0, description="Opening balance in packages.")
    min_stock: Decimal = Field(default=Decimal("0"), ge=0, description="Reorder threshold in packages, 0 disables it.")
    is_retail_product: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "INOA 6.0",
                "group_id": "group-id-here",
                "unit": "g",
                "package_size": 60,
                "stock_quantity": 12,
                "min_stock": 4,
                "is_retail_product": False,
            }
        }
    )


class MaterialBulkGroupIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    sort_order: int | None = Field(default=None, ge=0)


class MaterialBulkItemIn(BaseModel):
    """A material for bulk import. `group_index` points into the groups of the same request."""

    name: str = Field(min_length=1, max_length=255)
    group_id: str | None = None
    group_index: int | None = Field(default=None, ge=0)
    unit: MaterialUnit
    package_size: Decimal = Field(gt=0)
    stock_quantity: Decimal = Field(default=Decimal("0"), ge=0)
    min_stock: Decimal = Field(default=Decimal("0"), ge=0)
    is_retail_product: bool = False


class MaterialBulkCreate(BaseModel):
    groups: list[MaterialBulkGroupIn] = Field(default_factory=list, max_length=100)
    materials: list[MaterialBulkItemIn] = Field(default_factory=list, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "groups": [{"name": "Colours"}, {"name": "Retail"}],
                "materials": [
                    {"name": "INOA 6.0", "group_index": 0, "unit": "g", "package_size": 60, "stock_quantity": 12},
                    {"name": "Repair Shampoo", "group_index": 1, "unit": "ml", "package_size": 250, "is_retail_product": True},
                ],
            }
        }
    )


class MaterialUpdate(BaseModel):
    """Catalog fields only. The balance changes exclusively through stock movements."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    group_id: str | None = None
    unit: MaterialUnit | None = None
    package_size: Decimal | None = Field(default=None, gt=0)
    min_stock: Decimal | None = Field(default=None, ge=0)
    is_retail_product: bool | None = None

    model_config = ConfigDict(extra="forbid")


class MaterialOut(BaseModel):
    id: str
    group_id: str
    group_name: str | None = None
    name: str
    unit: MaterialUnit
    package_size: float
    stock_quantity: float
    min_stock: float
    is_retail_product: bool
    is_low_stock: bool
    movements_count: int = 0
    created_at: datetime


class MaterialDetailOut(MaterialOut):
    movements: list[MovementOut]


class LowStockMaterialOut(BaseModel):
    id: str
    name: str
    group_name: str | None = None
    unit: MaterialUnit
    stock_quantity: float
    min_stock: float
    suggested_quantity: int


class MaterialCheckOut(BaseModel):
    has_materials: bool
    has_groups: bool
    materials_count: int
    groups_count: int


class StockReconciliationOut(BaseModel):
    material_id: str
    initial_stock: float
    ledger_sum: float
    stock_quantity: float
    expected_stock: float
    drift: float
    consistent: bool


class MaterialBulkOut(BaseModel):
    groups: list[MaterialGroupOut]
    materials: list[MaterialOut]
