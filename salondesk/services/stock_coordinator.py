"""Stock coordinator.

Every operation that changes a material balance goes through this module. One call
is one batch: the stock check, the balance updates and the ledger rows are applied
inside a single session transaction and committed together, or rolled back together
when any line fails. Entry points return an ``Outcome`` instead of raising, so the
HTTP layer (or any other caller) can render the specific failure.
"""

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from salondesk.core.config import settings
from salondesk.core.errors import Conflict, InsufficientStock, InventoryError, NotFound, ValidationError
from salondesk.core.id_utils import generate_id, generate_transaction_reference
from salondesk.core.money import to_optional_money
from salondesk.core.observability import get_request_id
from salondesk.core.outcome import Err, Ok, Outcome
from salondesk.core.quantity import packages_for_usage, to_packages
from salondesk.models.client import Client, HomeProduct
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.models.material import Material
from salondesk.models.order import Order, OrderItem
from salondesk.models.visit import Visit, VisitMaterial, VisitService
from salondesk.services.inventory_service import (
    MovementType,
    adjust_balance,
    append_movement,
    get_material,
)

logger = logging.getLogger("salondesk.inventory")

T = TypeVar("T")

DELIVERY_NOTE = "Order delivered"


class StockCheck(str, Enum):
    STRICT = "strict"
    NONE = "none"


# Which operations refuse to drive a balance below zero. Visit consumption and manual
# write-offs have always been allowed to overdraw; sales and usage never were.
DEFAULT_STOCK_CHECK_POLICY: dict[str, StockCheck] = {
    "delivery": StockCheck.NONE,
    "manual_in": StockCheck.NONE,
    "manual_out": StockCheck.NONE,
    "sale": StockCheck.STRICT,
    "usage": StockCheck.STRICT,
    "visit": StockCheck.NONE,
}


def stock_check_policy() -> dict[str, StockCheck]:
    policy = dict(DEFAULT_STOCK_CHECK_POLICY)
    if settings.enforce_stock_on_visit_close:
        policy["visit"] = StockCheck.STRICT
    if settings.enforce_stock_on_manual_out:
        policy["manual_out"] = StockCheck.STRICT
    return policy


@dataclass(frozen=True)
class LineItem:
    material_id: str
    quantity: Decimal


@dataclass(frozen=True)
class _StockLine:
    material: Material
    quantity: Decimal  # unsigned, in packages


@dataclass
class BatchResult:
    transaction: StockTransaction
    movements: list[MaterialMovement] = field(default_factory=list)


@dataclass
class SaleResult(BatchResult):
    home_products: list[HomeProduct] = field(default_factory=list)


@dataclass
class DeliveryResult(BatchResult):
    order: Order | None = None
    items: list[OrderItem] = field(default_factory=list)


@dataclass
class VisitCloseResult(BatchResult):
    visit: Visit | None = None


def _log_event(event: str, **fields) -> None:
    logger.info(json.dumps({"event": event, "request_id": get_request_id(), **fields}, default=str))


def _run(db: Session, operation: str, work: Callable[[], T]) -> Outcome[T]:
    try:
        data = work()
        db.commit()
    except InventoryError as exc:
        db.rollback()
        _log_event(
            "inventory.batch_rejected",
            operation=operation,
            **exc.to_dict(),
        )
        return Err(exc)
    except Exception:
        db.rollback()
        raise
    return Ok(data)


def positive_quantity(value: Decimal | int | float | str, field_name: str) -> Decimal:
    try:
        quantity = to_packages(value)
    except (ArithmeticError, ValueError):
        raise ValidationError("Quantity must be a number", field=field_name)
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero", field=field_name)
    return quantity


def _resolve_lines(db: Session, items: Sequence[LineItem]) -> list[_StockLine]:
    if not items:
        raise ValidationError("Items are required", field="items")
    lines: list[_StockLine] = []
    for idx, item in enumerate(items):
        quantity = positive_quantity(item.quantity, f"items.{idx}.quantity")
        material = get_material(db, item.material_id, for_update=True)
        lines.append(_StockLine(material=material, quantity=quantity))
    return lines


def _ensure_client(db: Session, client_id: str | None) -> str | None:
    if not client_id:
        return None
    found = db.execute(select(Client.id).where(Client.id == client_id)).scalar_one_or_none()
    if not found:
        raise NotFound("client", client_id)
    return client_id


def _check_stock(lines: list[_StockLine]) -> None:
    requested_by_material: dict[str, Decimal] = {}
    materials: dict[str, Material] = {}
    for line in lines:
        material_id = line.material.id
        requested_by_material[material_id] = requested_by_material.get(material_id, Decimal("0")) + line.quantity
        materials[material_id] = line.material

    for material_id, requested in requested_by_material.items():
        material = materials[material_id]
        available = to_packages(material.stock_quantity)
        if available < requested:
            raise InsufficientStock(
                material_id=material_id,
                material_name=material.name,
                requested=to_packages(requested),
                available=available,
            )


def _apply_batch(
    db: Session,
    *,
    cause: str,
    movement_type: MovementType,
    lines: list[_StockLine],
    client_id: str | None = None,
    visit_id: str | None = None,
    order_id: str | None = None,
    note: str | None = None,
    total_price: Decimal | None = None,
) -> BatchResult:
    strict = stock_check_policy().get(cause, StockCheck.STRICT) == StockCheck.STRICT
    if strict and not movement_type.is_credit:
        _check_stock(lines)

    now = datetime.now(timezone.utc)
    transaction = StockTransaction(
        id=generate_id(),
        reference=generate_transaction_reference(),
        cause=cause,
        client_id=client_id,
        visit_id=visit_id,
        order_id=order_id,
        note=note,
        total_price=total_price,
        created_at=now,
    )
    db.add(transaction)

    movements: list[MaterialMovement] = []
    for idx, line in enumerate(lines):
        signed = line.quantity if movement_type.is_credit else -line.quantity
        adjust_balance(db, line.material.id, signed, allow_negative=not strict)
        first = idx == 0
        movements.append(
            append_movement(
                db,
                material_id=line.material.id,
                movement_type=movement_type,
                quantity=signed,
                transaction_id=transaction.id,
                line_no=idx,
                note=note if first else None,
                client_id=client_id,
                visit_id=visit_id,
                total_price=total_price if first else None,
                created_at=now,
            )
        )

    db.flush()
    _log_event(
        "inventory.batch_applied",
        cause=cause,
        movement_type=movement_type.value,
        transaction=transaction.reference,
        lines=len(movements),
        client_id=client_id,
        visit_id=visit_id,
        order_id=order_id,
    )
    return BatchResult(transaction=transaction, movements=movements)


def record_sale(
    db: Session,
    items: Sequence[LineItem],
    *,
    client_id: str | None = None,
    total_price: Decimal | int | float | str | None = None,
    note: str | None = None,
) -> Outcome[SaleResult]:
    def work() -> SaleResult:
        lines = _resolve_lines(db, items)
        resolved_client_id = _ensure_client(db, client_id)
        price = to_optional_money(total_price)
        batch = _apply_batch(
            db,
            cause="sale",
            movement_type=MovementType.SALE,
            lines=lines,
            client_id=resolved_client_id,
            note=note or None,
            total_price=price,
        )

        home_products: list[HomeProduct] = []
        if resolved_client_id:
            for idx, line in enumerate(lines):
                product = HomeProduct(
                    id=generate_id(),
                    client_id=resolved_client_id,
                    material_id=line.material.id,
                    transaction_id=batch.transaction.id,
                    purchase_id=batch.transaction.reference,
                    name=line.material.name,
                    quantity=line.quantity,
                    unit=line.material.unit,
                    package_size=line.material.package_size,
                    total_price=price if idx == 0 else None,
                    note=(note or None) if idx == 0 else None,
                    created_at=batch.transaction.created_at,
                )
                db.add(product)
                home_products.append(product)
            db.flush()

        return SaleResult(
            transaction=batch.transaction,
            movements=batch.movements,
            home_products=home_products,
        )

    return _run(db, "sale", work)


def record_usage(
    db: Session,
    items: Sequence[LineItem],
    *,
    client_id: str | None = None,
    note: str | None = None,
) -> Outcome[BatchResult]:
    def work() -> BatchResult:
        lines = _resolve_lines(db, items)
        resolved_client_id = _ensure_client(db, client_id)
        return _apply_batch(
            db,
            cause="usage",
            movement_type=MovementType.USAGE,
            lines=lines,
            client_id=resolved_client_id,
            note=note or None,
        )

    return _run(db, "usage", work)


_MANUAL_TYPES: dict[str, set[MovementType]] = {
    "in": {MovementType.PURCHASE, MovementType.DELIVERY},
    "out": {MovementType.USAGE, MovementType.SALE},
}
_MANUAL_DEFAULT_TYPE: dict[str, MovementType] = {
    "in": MovementType.PURCHASE,
    "out": MovementType.USAGE,
}


def record_manual_movement(
    db: Session,
    material_id: str,
    quantity: Decimal | int | float | str,
    direction: str,
    *,
    note: str | None = None,
    movement_type: MovementType | str | None = None,
) -> Outcome[MaterialMovement]:
    def work() -> MaterialMovement:
        normalized = (direction or "").strip().lower()
        if normalized not in _MANUAL_TYPES:
            raise ValidationError("Direction must be 'in' or 'out'", field="direction")
        if movement_type is None:
            resolved_type = _MANUAL_DEFAULT_TYPE[normalized]
        else:
            try:
                resolved_type = MovementType(movement_type)
            except ValueError:
                raise ValidationError(f"Unknown movement type: {movement_type}", field="type")
            if resolved_type not in _MANUAL_TYPES[normalized]:
                allowed = ", ".join(sorted(t.value for t in _MANUAL_TYPES[normalized]))
                raise ValidationError(
                    f"Movement type {resolved_type.value} is not allowed for direction '{normalized}'. Allowed: {allowed}",
                    field="type",
                )

        amount = positive_quantity(quantity, "quantity")
        material = get_material(db, material_id, for_update=True)
        batch = _apply_batch(
            db,
            cause=f"manual_{normalized}",
            movement_type=resolved_type,
            lines=[_StockLine(material=material, quantity=amount)],
            note=note or None,
        )
        return batch.movements[0]

    return _run(db, "manual_movement", work)


def record_delivery(
    db: Session,
    order_id: str,
    *,
    overrides: dict[str, Decimal | int | float | str] | None = None,
    extra_items: Sequence[LineItem] | None = None,
    note: str | None = None,
) -> Outcome[DeliveryResult]:
    """Receive a purchase order into stock.

    ``overrides`` maps order item ids to the quantity that actually arrived; zero
    means the line did not arrive. ``extra_items`` are materials found on the
    packing slip that were never ordered; they are appended to the order.
    """

    def work() -> DeliveryResult:
        order = db.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        ).scalar_one_or_none()
        if not order:
            raise NotFound("order", order_id)
        if order.status != "ordered":
            raise Conflict(f"Cannot deliver order in status '{order.status}'")

        order_items = list(
            db.execute(
                select(OrderItem)
                .where(OrderItem.order_id == order.id)
                .order_by(OrderItem.created_at, OrderItem.id)
            ).scalars().all()
        )
        item_ids = {item.id for item in order_items}
        overrides_by_item: dict[str, Decimal] = {}
        for item_id, value in (overrides or {}).items():
            if item_id not in item_ids:
                raise ValidationError(f"Order item not found on order: {item_id}", field="overrides")
            try:
                quantity = to_packages(value)
            except (ArithmeticError, ValueError):
                raise ValidationError("Quantity must be a number", field=f"overrides.{item_id}")
            if quantity < 0:
                raise ValidationError("Delivered quantity cannot be negative", field=f"overrides.{item_id}")
            overrides_by_item[item_id] = quantity

        lines: list[_StockLine] = []
        for item in order_items:
            delivered = overrides_by_item.get(item.id, to_packages(item.quantity))
            item.delivered_quantity = delivered
            if delivered > 0:
                lines.append(
                    _StockLine(material=get_material(db, item.material_id, for_update=True), quantity=delivered)
                )

        for idx, extra in enumerate(extra_items or []):
            quantity = positive_quantity(extra.quantity, f"extra_items.{idx}.quantity")
            material = get_material(db, extra.material_id, for_update=True)
            extra_row = OrderItem(
                id=generate_id(),
                order_id=order.id,
                material_id=material.id,
                quantity=quantity,
                delivered_quantity=quantity,
                added_on_delivery=True,
            )
            db.add(extra_row)
            order_items.append(extra_row)
            lines.append(_StockLine(material=material, quantity=quantity))

        if not lines:
            raise ValidationError("Delivery has no quantities to receive", field="overrides")

        batch = _apply_batch(
            db,
            cause="delivery",
            movement_type=MovementType.DELIVERY,
            lines=lines,
            order_id=order.id,
            note=note or DELIVERY_NOTE,
        )
        order.status = "delivered"
        order.delivered_at = batch.transaction.created_at
        db.flush()
        return DeliveryResult(
            transaction=batch.transaction,
            movements=batch.movements,
            order=order,
            items=order_items,
        )

    return _run(db, "delivery", work)


def close_visit(
    db: Session,
    visit_id: str,
    *,
    total_price: Decimal | int | float | str | None = None,
    note: str | None = None,
) -> Outcome[VisitCloseResult]:
    def work() -> VisitCloseResult:
        visit = db.execute(
            select(Visit).where(Visit.id == visit_id).with_for_update()
        ).scalar_one_or_none()
        if not visit:
            raise NotFound("visit", visit_id)
        if visit.status == "closed":
            raise Conflict("Visit is already closed")

        rows = db.execute(
            select(VisitMaterial)
            .join(VisitService, VisitService.id == VisitMaterial.visit_service_id)
            .where(VisitService.visit_id == visit.id)
            .order_by(
                VisitService.sort_order,
                VisitService.created_at,
                VisitMaterial.created_at,
                VisitMaterial.id,
            )
        ).scalars().all()

        lines: list[_StockLine] = []
        for row in rows:
            material = get_material(db, row.material_id, for_update=True)
            packages = packages_for_usage(
                row.quantity,
                unit=row.unit,
                package_size=material.package_size,
            )
            if packages <= 0:
                raise ValidationError(
                    f"{material.name}: {row.quantity} {row.unit} is less than the smallest stock unit",
                    field=f"materials.{row.id}.quantity",
                )
            lines.append(_StockLine(material=material, quantity=packages))

        if total_price is not None:
            visit.total_price = to_optional_money(total_price)
        if note is not None:
            visit.note = note

        batch = _apply_batch(
            db,
            cause="visit",
            movement_type=MovementType.VISIT,
            lines=lines,
            visit_id=visit.id,
            note=visit.note,
            total_price=visit.total_price,
        )
        batch.transaction.client_id = visit.client_id
        visit.status = "closed"
        visit.closed_at = batch.transaction.created_at
        db.flush()
        return VisitCloseResult(
            transaction=batch.transaction,
            movements=batch.movements,
            visit=visit,
        )

    return _run(db, "close_visit", work)
