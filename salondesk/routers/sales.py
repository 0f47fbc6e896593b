from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.outcome import unwrap
from salondesk.schemas.common import PaginationMeta
from salondesk.schemas.inventory import MovementOut, TransactionGroupOut
from salondesk.schemas.sales import (
    HomeProductOut,
    SaleCreate,
    SaleCreateOut,
    SaleHistoryKind,
    SaleHistoryListOut,
    UsageCreate,
    UsageCreateOut,
)
from salondesk.services.inventory_service import (
    MovementType,
    group_movements,
    list_movements_by_cause,
    material_names,
    page_transactions_by_cause,
)
from salondesk.services.stock_coordinator import LineItem, record_sale, record_usage

router = APIRouter(prefix="/sales", tags=["sales"])

_HISTORY_TYPES: dict[str, set[MovementType]] = {
    "sale": {MovementType.SALE},
    "usage": {MovementType.USAGE},
    "all": {MovementType.SALE, MovementType.USAGE},
}


def _movements_out(db: Session, movements) -> list[MovementOut]:
    names = material_names(db, [movement.material_id for movement in movements])
    return [MovementOut.from_row(movement, material_name=names.get(movement.material_id)) for movement in movements]


@router.post(
    "",
    response_model=SaleCreateOut,
    summary="Sell retail products",
    description=(
        "Debits every item in one transaction. Fails without touching stock if any "
        "material lacks stock. With a client, a purchase history snapshot is stored per line."
    ),
    responses=error_responses(400, 404, 422, 500),
)
def create_sale(payload: SaleCreate, db: Session = Depends(get_db)):
    result = unwrap(
        record_sale(
            db,
            [LineItem(material_id=item.material_id, quantity=item.quantity) for item in payload.items],
            client_id=payload.client_id,
            total_price=payload.total_price,
            note=payload.note,
        )
    )
    return SaleCreateOut(
        transaction_id=result.transaction.id,
        reference=result.transaction.reference,
        movements=_movements_out(db, result.movements),
        home_products=[HomeProductOut.from_row(product) for product in result.home_products],
    )


@router.post(
    "/usage",
    response_model=UsageCreateOut,
    summary="Record product usage",
    description="Same stock check as a sale, without price or purchase history.",
    responses=error_responses(400, 404, 422, 500),
)
def create_usage(payload: UsageCreate, db: Session = Depends(get_db)):
    result = unwrap(
        record_usage(
            db,
            [LineItem(material_id=item.material_id, quantity=item.quantity) for item in payload.items],
            client_id=payload.client_id,
            note=payload.note,
        )
    )
    return UsageCreateOut(
        transaction_id=result.transaction.id,
        reference=result.transaction.reference,
        movements=_movements_out(db, result.movements),
    )


@router.get(
    "",
    response_model=SaleHistoryListOut,
    summary="Sales and usage history",
    description="Ledger rows grouped by the transaction that produced them, newest first.",
    responses=error_responses(422, 500),
)
def list_sales(
    client_id: str | None = Query(default=None),
    kind: SaleHistoryKind = Query(default="sale"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    types = _HISTORY_TYPES[kind]
    total, transactions = page_transactions_by_cause(
        db, types, client_id=client_id, limit=limit, offset=offset
    )
    rows = []
    if transactions:
        rows = list_movements_by_cause(
            db,
            types,
            client_id=client_id,
            transaction_ids=[transaction.id for transaction in transactions],
        )
    groups = {group.transaction_id: group for group in group_movements(rows)}
    names = material_names(db, [row.material_id for row in rows])
    items = [
        TransactionGroupOut.from_group(
            groups[transaction.id],
            transaction=transaction,
            material_names=names,
        )
        for transaction in transactions
        if transaction.id in groups
    ]
    return SaleHistoryListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
        client_id=client_id,
        kind=kind,
    )
