from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.errors import Conflict
from salondesk.core.id_utils import generate_id
from salondesk.core.money import to_optional_money
from salondesk.core.outcome import unwrap
from salondesk.core.quantity import to_packages
from salondesk.models.order import Order, OrderItem
from salondesk.schemas.common import OkOut, PaginationMeta
from salondesk.schemas.inventory import MovementOut
from salondesk.schemas.order import (
    OrderCreate,
    OrderDeliverIn,
    OrderDeliverOut,
    OrderItemOut,
    OrderListOut,
    OrderOut,
    OrderStatus,
    OrderStatusUpdateIn,
)
from salondesk.services.inventory_service import get_material, material_names
from salondesk.services.stock_coordinator import LineItem, record_delivery

router = APIRouter(prefix="/orders", tags=["orders"])

ALLOWED_ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"ordered"},
    "ordered": {"delivered"},
    "delivered": set(),
}


def _ensure_transition_allowed(current_status: str, next_status: str) -> None:
    allowed_next = ALLOWED_ORDER_TRANSITIONS.get(current_status, set())
    if next_status not in allowed_next:
        raise Conflict(f"Cannot transition order from '{current_status}' to '{next_status}'")


def _get_order(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _order_items(db: Session, order_id: str) -> list[OrderItem]:
    return list(
        db.execute(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.created_at, OrderItem.id)
        ).scalars().all()
    )


def _order_out(db: Session, order: Order) -> OrderOut:
    items = _order_items(db, order.id)
    names = material_names(db, [item.material_id for item in items])
    return OrderOut(
        id=order.id,
        status=order.status,
        note=order.note,
        ordered_at=order.ordered_at,
        delivered_at=order.delivered_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[
            OrderItemOut(
                id=item.id,
                material_id=item.material_id,
                material_name=names.get(item.material_id),
                quantity=float(item.quantity),
                price=float(item.price) if item.price is not None else None,
                delivered_quantity=float(item.delivered_quantity) if item.delivered_quantity is not None else None,
                added_on_delivery=item.added_on_delivery,
            )
            for item in items
        ],
    )


def _deliver(db: Session, order_id: str, payload: OrderDeliverIn | None = None) -> OrderDeliverOut:
    payload = payload or OrderDeliverIn()
    result = unwrap(
        record_delivery(
            db,
            order_id,
            overrides={override.item_id: override.quantity for override in payload.overrides},
            extra_items=[
                LineItem(material_id=extra.material_id, quantity=extra.quantity)
                for extra in payload.extra_items
            ],
            note=payload.note,
        )
    )
    db.refresh(result.order)
    names = material_names(db, [movement.material_id for movement in result.movements])
    return OrderDeliverOut(
        order=_order_out(db, result.order),
        transaction_id=result.transaction.id,
        movements=[
            MovementOut.from_row(movement, material_name=names.get(movement.material_id))
            for movement in result.movements
        ],
    )


@router.post(
    "",
    response_model=OrderOut,
    summary="Create purchase order",
    responses=error_responses(404, 422, 500),
)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    for item in payload.items:
        get_material(db, item.material_id)

    order = Order(id=generate_id(), status="pending", note=payload.note)
    db.add(order)
    for item in payload.items:
        db.add(
            OrderItem(
                id=generate_id(),
                order_id=order.id,
                material_id=item.material_id,
                quantity=to_packages(item.quantity),
                price=to_optional_money(item.price),
            )
        )
    db.commit()
    db.refresh(order)
    return _order_out(db, order)


@router.get(
    "",
    response_model=OrderListOut,
    summary="List purchase orders",
    responses=error_responses(422, 500),
)
def list_orders(
    status: OrderStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    count_stmt = select(func.count(Order.id))
    stmt = select(Order)
    if status:
        count_stmt = count_stmt.where(Order.status == status)
        stmt = stmt.where(Order.status == status)
    total = int(db.execute(count_stmt).scalar_one())
    orders = db.execute(
        stmt.order_by(Order.created_at.desc(), Order.id).offset(offset).limit(limit)
    ).scalars().all()
    items = [_order_out(db, order) for order in orders]
    return OrderListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
        status=status,
    )


@router.get(
    "/{order_id}",
    response_model=OrderOut,
    summary="Get purchase order",
    responses=error_responses(404, 500),
)
def get_order(order_id: str, db: Session = Depends(get_db)):
    return _order_out(db, _get_order(db, order_id))


@router.patch(
    "/{order_id}/status",
    response_model=OrderOut,
    summary="Advance purchase order status",
    description="`pending -> ordered -> delivered`. Delivering receives every line as ordered.",
    responses=error_responses(404, 409, 422, 500),
)
def update_order_status(order_id: str, payload: OrderStatusUpdateIn, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if payload.status == order.status:
        return _order_out(db, order)
    _ensure_transition_allowed(order.status, payload.status)

    if payload.status == "delivered":
        return _deliver(db, order.id).order

    order.status = payload.status
    order.ordered_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(order)
    return _order_out(db, order)


@router.post(
    "/{order_id}/deliver",
    response_model=OrderDeliverOut,
    summary="Receive purchase order into stock",
    description=(
        "Credits stock for each order line, optionally with the quantities that actually arrived "
        "and with extra materials from the packing slip."
    ),
    responses=error_responses(400, 404, 409, 422, 500),
)
def deliver_order(order_id: str, payload: OrderDeliverIn, db: Session = Depends(get_db)):
    return _deliver(db, order_id, payload)


@router.delete(
    "/{order_id}",
    response_model=OkOut,
    summary="Delete purchase order",
    description="Removes the order only; stock already received stays in place.",
    responses=error_responses(404, 500),
)
def delete_order(order_id: str, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    db.execute(delete(OrderItem).where(OrderItem.order_id == order.id))
    db.delete(order)
    db.commit()
    return OkOut()
