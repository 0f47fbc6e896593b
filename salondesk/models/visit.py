from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from salondesk.db.base import Base


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="saved", server_default="saved")
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_visits_client_created_at", "client_id", "created_at"),
    )


class VisitService(Base):
    __tablename__ = "visit_services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    visit_id: Mapped[str] = mapped_column(String(36), ForeignKey("visits.id"), index=True)
    service_id: Mapped[str] = mapped_column(String(36), ForeignKey("services.id"), index=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class VisitMaterial(Base):
    __tablename__ = "visit_materials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    visit_service_id: Mapped[str] = mapped_column(String(36), ForeignKey("visit_services.id"), index=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("materials.id"), index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(4), nullable=False)  # "g", "ml", "ks"
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
