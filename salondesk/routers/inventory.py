from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.outcome import unwrap
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.schemas.common import PaginationMeta
from salondesk.schemas.inventory import (
    ManualMovementIn,
    MovementListOut,
    MovementOut,
    MovementTypeName,
    TransactionGroupListOut,
    TransactionGroupOut,
)
from salondesk.services.inventory_service import (
    MovementType,
    count_movements,
    get_material,
    group_movements,
    list_movements,
    material_names,
)
from salondesk.services.stock_coordinator import record_manual_movement

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post(
    "/movements",
    response_model=MovementOut,
    summary="Record a manual stock movement",
    description=(
        "Ad-hoc stock adjustment. `in` credits the balance (PURCHASE by default), "
        "`out` debits it (USAGE by default) without a stock check."
    ),
    responses=error_responses(400, 404, 422, 500),
)
def create_manual_movement(payload: ManualMovementIn, db: Session = Depends(get_db)):
    movement = unwrap(
        record_manual_movement(
            db,
            payload.material_id,
            payload.quantity,
            payload.direction,
            note=payload.note,
            movement_type=payload.type,
        )
    )
    names = material_names(db, [movement.material_id])
    return MovementOut.from_row(movement, material_name=names.get(movement.material_id))


@router.get(
    "/movements",
    response_model=MovementListOut,
    summary="List stock movements",
    responses={
        200: {
            "description": "Paginated movement ledger, newest first",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "movement-id",
                                "material_id": "material-id",
                                "material_name": "INOA 6.0",
                                "transaction_id": "transaction-id",
                                "type": "VISIT",
                                "quantity": -0.5,
                                "note": None,
                                "client_id": None,
                                "visit_id": "visit-id",
                                "total_price": None,
                                "created_at": "2026-10-19T10:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 12,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": True,
                        },
                    }
                }
            },
        },
        **error_responses(404, 422, 500),
    },
)
def list_inventory_movements(
    material_id: str | None = Query(default=None, description="Optional material filter"),
    type: list[MovementTypeName] | None = Query(default=None, description="Optional movement type filter"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    if material_id:
        get_material(db, material_id)
    types = {MovementType(value) for value in type} if type else None

    total = count_movements(db, material_id, types=types)
    rows = list_movements(db, material_id, types=types, limit=limit, offset=offset)
    names = material_names(db, [row.material_id for row in rows])
    items = [MovementOut.from_row(row, material_name=names.get(row.material_id)) for row in rows]
    return MovementListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/transactions",
    response_model=TransactionGroupListOut,
    summary="List stock transactions with their movements",
    responses=error_responses(422, 500),
)
def list_stock_transactions(
    cause: str | None = Query(default=None, description="delivery, sale, usage, visit, manual_in or manual_out"),
    client_id: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    count_stmt = select(func.count(StockTransaction.id))
    stmt = select(StockTransaction)
    if cause:
        count_stmt = count_stmt.where(StockTransaction.cause == cause)
        stmt = stmt.where(StockTransaction.cause == cause)
    if client_id:
        count_stmt = count_stmt.where(StockTransaction.client_id == client_id)
        stmt = stmt.where(StockTransaction.client_id == client_id)

    total = int(db.execute(count_stmt).scalar_one())
    transactions = db.execute(
        stmt.order_by(StockTransaction.created_at.desc(), StockTransaction.id).offset(offset).limit(limit)
    ).scalars().all()

    transaction_ids = [transaction.id for transaction in transactions]
    rows = []
    if transaction_ids:
        rows = db.execute(
            select(MaterialMovement).where(MaterialMovement.transaction_id.in_(transaction_ids))
        ).scalars().all()
    groups = {group.transaction_id: group for group in group_movements(list(rows))}
    names = material_names(db, [row.material_id for row in rows])

    items: list[TransactionGroupOut] = []
    for transaction in transactions:
        group = groups.get(transaction.id)
        if group is None:
            items.append(
                TransactionGroupOut(
                    transaction_id=transaction.id,
                    reference=transaction.reference,
                    cause=transaction.cause,
                    client_id=transaction.client_id,
                    note=transaction.note,
                    total_price=float(transaction.total_price) if transaction.total_price is not None else None,
                    created_at=transaction.created_at,
                    movements=[],
                )
            )
            continue
        items.append(TransactionGroupOut.from_group(group, transaction=transaction, material_names=names))

    return TransactionGroupListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
    )
