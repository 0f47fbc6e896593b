from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salondesk.core.errors import InsufficientStock, NotFound
from salondesk.core.id_utils import generate_id
from salondesk.core.quantity import ZERO_QUANTITY, to_packages
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.models.material import Material


class MovementType(str, Enum):
    DELIVERY = "DELIVERY"
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    USAGE = "USAGE"
    VISIT = "VISIT"

    @property
    def is_credit(self) -> bool:
        return self in (MovementType.DELIVERY, MovementType.PURCHASE)


@dataclass(frozen=True)
class StockReconciliation:
    material_id: str
    initial_stock: Decimal
    ledger_sum: Decimal
    stock_quantity: Decimal

    @property
    def expected_stock(self) -> Decimal:
        return to_packages(self.initial_stock + self.ledger_sum)

    @property
    def drift(self) -> Decimal:
        return to_packages(self.stock_quantity - self.expected_stock)


@dataclass
class MovementGroup:
    transaction_id: str
    created_at: datetime
    client_id: str | None
    movements: list[MaterialMovement] = field(default_factory=list)

    @property
    def note(self) -> str | None:
        return self.movements[0].note if self.movements else None

    @property
    def total_price(self) -> Decimal | None:
        return self.movements[0].total_price if self.movements else None


def get_material(db: Session, material_id: str, *, for_update: bool = False) -> Material:
    stmt = select(Material).where(Material.id == material_id)
    if for_update:
        stmt = stmt.with_for_update()
    material = db.execute(stmt).scalar_one_or_none()
    if not material:
        raise NotFound("material", material_id)
    return material


def get_balance(db: Session, material_id: str) -> Decimal:
    return to_packages(get_material(db, material_id).stock_quantity)


def adjust_balance(
    db: Session,
    material_id: str,
    delta: Decimal,
    *,
    allow_negative: bool,
) -> Decimal:
    material = get_material(db, material_id, for_update=True)
    current = to_packages(material.stock_quantity)
    delta = to_packages(delta)
    updated = to_packages(current + delta)
    if delta < 0 and not allow_negative and updated < 0:
        raise InsufficientStock(
            material_id=material.id,
            material_name=material.name,
            requested=-delta,
            available=current,
        )
    material.stock_quantity = updated
    return updated


def append_movement(
    db: Session,
    *,
    material_id: str,
    movement_type: MovementType,
    quantity: Decimal,
    transaction_id: str,
    line_no: int = 0,
    note: str | None = None,
    client_id: str | None = None,
    visit_id: str | None = None,
    total_price: Decimal | None = None,
    created_at: datetime | None = None,
) -> MaterialMovement:
    entry = MaterialMovement(
        id=generate_id(),
        material_id=material_id,
        transaction_id=transaction_id,
        line_no=line_no,
        type=MovementType(movement_type).value,
        quantity=to_packages(quantity),
        note=note,
        client_id=client_id,
        visit_id=visit_id,
        total_price=total_price,
    )
    if created_at is not None:
        entry.created_at = created_at
    db.add(entry)
    return entry


def _newest_first(stmt):
    return stmt.order_by(
        MaterialMovement.created_at.desc(),
        MaterialMovement.transaction_id,
        MaterialMovement.line_no,
    )


def list_movements(
    db: Session,
    material_id: str | None = None,
    *,
    types: set[MovementType] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[MaterialMovement]:
    stmt = select(MaterialMovement)
    if material_id:
        stmt = stmt.where(MaterialMovement.material_id == material_id)
    if types:
        stmt = stmt.where(MaterialMovement.type.in_([MovementType(t).value for t in types]))
    stmt = _newest_first(stmt).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())


def count_movements(
    db: Session,
    material_id: str | None = None,
    *,
    types: set[MovementType] | None = None,
) -> int:
    stmt = select(func.count(MaterialMovement.id))
    if material_id:
        stmt = stmt.where(MaterialMovement.material_id == material_id)
    if types:
        stmt = stmt.where(MaterialMovement.type.in_([MovementType(t).value for t in types]))
    return int(db.execute(stmt).scalar_one())


def list_movements_by_cause(
    db: Session,
    types: set[MovementType],
    *,
    client_id: str | None = None,
    transaction_ids: list[str] | None = None,
) -> list[MaterialMovement]:
    stmt = select(MaterialMovement).where(
        MaterialMovement.type.in_([MovementType(t).value for t in types])
    )
    if client_id:
        stmt = stmt.where(MaterialMovement.client_id == client_id)
    if transaction_ids is not None:
        stmt = stmt.where(MaterialMovement.transaction_id.in_(transaction_ids))
    return list(db.execute(_newest_first(stmt)).scalars().all())


def page_transactions_by_cause(
    db: Session,
    types: set[MovementType],
    *,
    client_id: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[StockTransaction]]:
    """Page over transactions that produced at least one movement of ``types``."""
    matching = select(MaterialMovement.transaction_id).where(
        MaterialMovement.type.in_([MovementType(t).value for t in types])
    )
    if client_id:
        matching = matching.where(MaterialMovement.client_id == client_id)
    criteria = StockTransaction.id.in_(matching)

    total = int(db.execute(select(func.count(StockTransaction.id)).where(criteria)).scalar_one())
    rows = db.execute(
        select(StockTransaction)
        .where(criteria)
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id)
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return total, list(rows)


def group_movements(rows: list[MaterialMovement]) -> list[MovementGroup]:
    groups: dict[str, MovementGroup] = {}
    for row in rows:
        group = groups.get(row.transaction_id)
        if group is None:
            group = MovementGroup(
                transaction_id=row.transaction_id,
                created_at=row.created_at,
                client_id=row.client_id,
            )
            groups[row.transaction_id] = group
        group.movements.append(row)
    for group in groups.values():
        group.movements.sort(key=lambda movement: movement.line_no)
    return list(groups.values())


def ledger_sum(db: Session, material_id: str) -> Decimal:
    q = select(func.coalesce(func.sum(MaterialMovement.quantity), 0)).where(
        MaterialMovement.material_id == material_id
    )
    return to_packages(db.execute(q).scalar_one() or ZERO_QUANTITY)


def movement_counts(db: Session, material_ids: list[str]) -> dict[str, int]:
    if not material_ids:
        return {}
    rows = db.execute(
        select(MaterialMovement.material_id, func.count(MaterialMovement.id))
        .where(MaterialMovement.material_id.in_(material_ids))
        .group_by(MaterialMovement.material_id)
    ).all()
    return {material_id: int(count) for material_id, count in rows}


def reconcile_material(db: Session, material_id: str) -> StockReconciliation:
    material = get_material(db, material_id)
    return StockReconciliation(
        material_id=material.id,
        initial_stock=to_packages(material.initial_stock),
        ledger_sum=ledger_sum(db, material.id),
        stock_quantity=to_packages(material.stock_quantity),
    )


def material_names(db: Session, material_ids: list[str]) -> dict[str, str]:
    if not material_ids:
        return {}
    rows = db.execute(
        select(Material.id, Material.name).where(Material.id.in_(list(set(material_ids))))
    ).all()
    return {material_id: name for material_id, name in rows}

