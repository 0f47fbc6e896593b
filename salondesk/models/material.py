from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from salondesk.db.base import Base


class MaterialGroup(Base):
    __tablename__ = "material_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Material(Base):
    """
    A stocked item. ``stock_quantity`` is expressed in packages and is only ever
    changed through the stock coordinator, which writes a ledger row for every change.
    """
    __tablename__ = "materials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(36), ForeignKey("material_groups.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit: Mapped[str] = mapped_column(String(4), nullable=False)  # "g", "ml", "ks"
    package_size: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0"), server_default="0"
    )
    initial_stock: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0"), server_default="0"
    )
    min_stock: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0"), server_default="0"
    )  # 0 disables the low-stock warning
    is_retail_product: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_materials_group_name", "group_id", "name"),
    )
