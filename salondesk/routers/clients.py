from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.id_utils import generate_id
from salondesk.core.outcome import unwrap
from salondesk.models.client import Client, ClientGroup, ClientNote, HomeProduct
from salondesk.models.visit import Visit, VisitMaterial, VisitService
from salondesk.schemas.client import (
    ClientCreate,
    ClientGroupCreate,
    ClientGroupListOut,
    ClientGroupOut,
    ClientGroupUpdate,
    ClientListOut,
    ClientNoteIn,
    ClientNoteOut,
    ClientOut,
    ClientProductsCreate,
    ClientUpdate,
)
from salondesk.schemas.common import OkOut, PaginationMeta
from salondesk.schemas.sales import HomeProductOut
from salondesk.services.catalog_service import delete_client_group, next_sort_order
from salondesk.services.stock_coordinator import LineItem, record_sale

router = APIRouter(prefix="/clients", tags=["clients"])
groups_router = APIRouter(prefix="/client-groups", tags=["clients"])


def _get_client(db: Session, client_id: str) -> Client:
    client = db.get(Client, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


def _avatar(first_name: str, last_name: str) -> str:
    return f"{first_name.strip()[:1]}{last_name.strip()[:1]}".upper()


def _client_out(client: Client, visits_count: int = 0) -> ClientOut:
    return ClientOut(
        id=client.id,
        first_name=client.first_name,
        last_name=client.last_name,
        phone=client.phone,
        group_id=client.group_id,
        avatar=client.avatar,
        visits_count=visits_count,
        created_at=client.created_at,
    )


@groups_router.get(
    "",
    response_model=ClientGroupListOut,
    summary="List client groups",
    responses=error_responses(500),
)
def list_client_groups(db: Session = Depends(get_db)):
    rows = db.execute(
        select(ClientGroup, func.count(Client.id))
        .outerjoin(Client, Client.group_id == ClientGroup.id)
        .group_by(ClientGroup.id)
        .order_by(ClientGroup.sort_order, ClientGroup.name)
    ).all()
    total_clients = int(db.execute(select(func.count(Client.id))).scalar_one())
    return ClientGroupListOut(
        groups=[
            ClientGroupOut(
                id=group.id,
                name=group.name,
                is_system=group.is_system,
                sort_order=group.sort_order,
                clients_count=int(count),
            )
            for group, count in rows
        ],
        total_clients=total_clients,
    )


@groups_router.post(
    "",
    response_model=ClientGroupOut,
    summary="Create client group",
    responses=error_responses(422, 500),
)
def create_client_group(payload: ClientGroupCreate, db: Session = Depends(get_db)):
    group = ClientGroup(
        id=generate_id(),
        name=payload.name.strip(),
        is_system=False,
        sort_order=next_sort_order(db, ClientGroup.sort_order),
    )
    db.add(group)
    db.commit()
    return ClientGroupOut(id=group.id, name=group.name, is_system=False, sort_order=group.sort_order)


@groups_router.patch(
    "/{group_id}",
    response_model=ClientGroupOut,
    summary="Rename client group",
    responses=error_responses(404, 422, 500),
)
def update_client_group(group_id: str, payload: ClientGroupUpdate, db: Session = Depends(get_db)):
    group = db.get(ClientGroup, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Client group not found")
    group.name = payload.name.strip()
    db.commit()
    clients_count = int(
        db.execute(select(func.count(Client.id)).where(Client.group_id == group.id)).scalar_one()
    )
    return ClientGroupOut(
        id=group.id,
        name=group.name,
        is_system=group.is_system,
        sort_order=group.sort_order,
        clients_count=clients_count,
    )


@groups_router.delete(
    "/{group_id}",
    response_model=OkOut,
    summary="Delete client group",
    description="System groups and groups that still have clients cannot be deleted.",
    responses=error_responses(404, 409, 500),
)
def remove_client_group(group_id: str, db: Session = Depends(get_db)):
    unwrap(delete_client_group(db, group_id))
    return OkOut()


@router.get(
    "",
    response_model=ClientListOut,
    summary="List clients",
    responses=error_responses(422, 500),
)
def list_clients(
    group_id: str | None = Query(default=None, description="Optional group filter; 'all' disables it"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    count_stmt = select(func.count(Client.id))
    stmt = select(Client)
    if group_id and group_id != "all":
        count_stmt = count_stmt.where(Client.group_id == group_id)
        stmt = stmt.where(Client.group_id == group_id)
    total = int(db.execute(count_stmt).scalar_one())
    clients = db.execute(
        stmt.order_by(Client.last_name, Client.first_name).offset(offset).limit(limit)
    ).scalars().all()

    visit_counts: dict[str, int] = {}
    if clients:
        visit_counts = {
            client_id: int(count)
            for client_id, count in db.execute(
                select(Visit.client_id, func.count(Visit.id))
                .where(Visit.client_id.in_([client.id for client in clients]))
                .group_by(Visit.client_id)
            ).all()
        }
    items = [_client_out(client, visit_counts.get(client.id, 0)) for client in clients]
    return ClientListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.post(
    "",
    response_model=ClientOut,
    summary="Create client",
    responses=error_responses(404, 422, 500),
)
def create_client(payload: ClientCreate, db: Session = Depends(get_db)):
    if payload.group_id and not db.get(ClientGroup, payload.group_id):
        raise HTTPException(status_code=404, detail="Client group not found")
    client = Client(
        id=generate_id(),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        phone=payload.phone,
        group_id=payload.group_id or None,
        avatar=payload.avatar or _avatar(payload.first_name, payload.last_name),
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    return _client_out(client)


@router.get(
    "/{client_id}",
    response_model=ClientOut,
    summary="Get client",
    responses=error_responses(404, 500),
)
def get_client(client_id: str, db: Session = Depends(get_db)):
    client = _get_client(db, client_id)
    visits_count = int(
        db.execute(select(func.count(Visit.id)).where(Visit.client_id == client.id)).scalar_one()
    )
    return _client_out(client, visits_count)


@router.put(
    "/{client_id}",
    response_model=ClientOut,
    summary="Update client",
    description="An empty or null `group_id` moves the client out of every group.",
    responses=error_responses(404, 422, 500),
)
def update_client(client_id: str, payload: ClientUpdate, db: Session = Depends(get_db)):
    client = _get_client(db, client_id)
    changes = payload.model_dump(exclude_unset=True)
    if "group_id" in changes:
        group_id = changes.pop("group_id") or None
        if group_id and not db.get(ClientGroup, group_id):
            raise HTTPException(status_code=404, detail="Client group not found")
        client.group_id = group_id
    for field_name, value in changes.items():
        if field_name in {"first_name", "last_name"}:
            if value is None:
                continue
            value = value.strip()
        setattr(client, field_name, value)
    db.commit()
    db.refresh(client)
    visits_count = int(
        db.execute(select(func.count(Visit.id)).where(Visit.client_id == client.id)).scalar_one()
    )
    return _client_out(client, visits_count)


@router.delete(
    "/{client_id}",
    response_model=OkOut,
    summary="Delete client",
    description="Removes the client with its visits, notes and purchase history. Stock movements keep their client reference.",
    responses=error_responses(404, 500),
)
def delete_client(client_id: str, db: Session = Depends(get_db)):
    client = _get_client(db, client_id)
    visit_ids = select(Visit.id).where(Visit.client_id == client.id)
    service_ids = select(VisitService.id).where(VisitService.visit_id.in_(visit_ids))
    db.execute(delete(VisitMaterial).where(VisitMaterial.visit_service_id.in_(service_ids)))
    db.execute(delete(VisitService).where(VisitService.visit_id.in_(visit_ids)))
    db.execute(delete(Visit).where(Visit.client_id == client.id))
    db.execute(delete(HomeProduct).where(HomeProduct.client_id == client.id))
    db.execute(delete(ClientNote).where(ClientNote.client_id == client.id))
    db.delete(client)
    db.commit()
    return OkOut()


@router.get(
    "/{client_id}/products",
    response_model=list[HomeProductOut],
    summary="Client purchase history",
    responses=error_responses(404, 500),
)
def list_client_products(client_id: str, db: Session = Depends(get_db)):
    _get_client(db, client_id)
    rows = db.execute(
        select(HomeProduct)
        .where(HomeProduct.client_id == client_id)
        .order_by(HomeProduct.created_at.desc(), HomeProduct.purchase_id, HomeProduct.id)
    ).scalars().all()
    return [HomeProductOut.from_row(row) for row in rows]


@router.post(
    "/{client_id}/products",
    response_model=list[HomeProductOut],
    summary="Sell products to a client",
    description="Records a sale bound to the client; see `POST /sales`.",
    responses=error_responses(400, 404, 422, 500),
)
def create_client_products(client_id: str, payload: ClientProductsCreate, db: Session = Depends(get_db)):
    _get_client(db, client_id)
    result = unwrap(
        record_sale(
            db,
            [LineItem(material_id=item.material_id, quantity=item.quantity) for item in payload.products],
            client_id=client_id,
            total_price=payload.total_price,
            note=payload.note,
        )
    )
    return [HomeProductOut.from_row(product) for product in result.home_products]


@router.delete(
    "/{client_id}/products/{product_id}",
    response_model=OkOut,
    summary="Remove a purchase from client history",
    description="Removes every line of the purchase from the history view. Stock is not returned.",
    responses=error_responses(404, 500),
)
def delete_client_product(client_id: str, product_id: str, db: Session = Depends(get_db)):
    product = db.execute(
        select(HomeProduct).where(HomeProduct.id == product_id, HomeProduct.client_id == client_id)
    ).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if product.purchase_id:
        db.execute(
            delete(HomeProduct).where(
                HomeProduct.client_id == client_id,
                HomeProduct.purchase_id == product.purchase_id,
            )
        )
    else:
        db.delete(product)
    db.commit()
    return OkOut()


def _note_out(note: ClientNote) -> ClientNoteOut:
    return ClientNoteOut(
        id=note.id,
        client_id=note.client_id,
        note=note.note,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


def _get_note(db: Session, client_id: str, note_id: str) -> ClientNote:
    note = db.execute(
        select(ClientNote).where(ClientNote.id == note_id, ClientNote.client_id == client_id)
    ).scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.get(
    "/{client_id}/notes",
    response_model=list[ClientNoteOut],
    summary="List client notes",
    responses=error_responses(404, 500),
)
def list_client_notes(client_id: str, db: Session = Depends(get_db)):
    _get_client(db, client_id)
    rows = db.execute(
        select(ClientNote)
        .where(ClientNote.client_id == client_id)
        .order_by(ClientNote.created_at.desc(), ClientNote.id)
    ).scalars().all()
    return [_note_out(row) for row in rows]


@router.post(
    "/{client_id}/notes",
    response_model=ClientNoteOut,
    summary="Add client note",
    responses=error_responses(404, 422, 500),
)
def create_client_note(client_id: str, payload: ClientNoteIn, db: Session = Depends(get_db)):
    _get_client(db, client_id)
    note = ClientNote(id=generate_id(), client_id=client_id, note=payload.note.strip())
    db.add(note)
    db.commit()
    db.refresh(note)
    return _note_out(note)


@router.patch(
    "/{client_id}/notes/{note_id}",
    response_model=ClientNoteOut,
    summary="Edit client note",
    responses=error_responses(404, 422, 500),
)
def update_client_note(client_id: str, note_id: str, payload: ClientNoteIn, db: Session = Depends(get_db)):
    note = _get_note(db, client_id, note_id)
    note.note = payload.note.strip()
    db.commit()
    db.refresh(note)
    return _note_out(note)


@router.delete(
    "/{client_id}/notes/{note_id}",
    response_model=OkOut,
    summary="Delete client note",
    responses=error_responses(404, 500),
)
def delete_client_note(client_id: str, note_id: str, db: Session = Depends(get_db)):
    db.delete(_get_note(db, client_id, note_id))
    db.commit()
    return OkOut()
