from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from salondesk.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockTransaction(Base):
    """
    One row per coordinator batch. Owns the batch-level note, price and client/visit/order
    linkage; the movements it produced point back at it through ``transaction_id``.
    """
    __tablename__ = "stock_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    cause: Mapped[str] = mapped_column(String(20), nullable=False)  # "delivery", "sale", "usage", "visit", "manual_in", "manual_out"

    client_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    visit_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_stock_transactions_cause_created_at", "cause", "created_at"),
    )


class MaterialMovement(Base):
    """
    Append-only ledger. Positive = stock in (delivery/purchase). Negative = stock out
    (sale/usage/visit). Quantities are in packages.
    """
    __tablename__ = "material_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("materials.id"), index=True)
    transaction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stock_transactions.id"), index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # DELIVERY, PURCHASE, SALE, USAGE, VISIT
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    client_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    visit_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_material_movements_material_created_at", "material_id", "created_at"),
        Index("ix_material_movements_type_created_at", "type", "created_at"),
    )
