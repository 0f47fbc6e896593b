from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.errors import Conflict, ValidationError
from salondesk.core.id_utils import generate_id
from salondesk.core.money import to_optional_money
from salondesk.core.outcome import unwrap
from salondesk.core.quantity import PACKAGE_UNIT, packages_for_usage, to_packages
from salondesk.models.client import Client
from salondesk.models.material import Material
from salondesk.models.service import Service
from salondesk.models.visit import Visit, VisitMaterial, VisitService
from salondesk.schemas.common import OkOut
from salondesk.schemas.inventory import MovementOut
from salondesk.schemas.visit import (
    VisitCloseIn,
    VisitCloseOut,
    VisitCreate,
    VisitMaterialCreate,
    VisitMaterialOut,
    VisitMaterialUpdate,
    VisitOut,
    VisitServiceCreate,
    VisitServiceOut,
    VisitUpdate,
)
from salondesk.services.inventory_service import get_material, material_names
from salondesk.services.stock_coordinator import close_visit, positive_quantity

router = APIRouter(prefix="/visits", tags=["visits"])


def _get_visit(db: Session, visit_id: str) -> Visit:
    visit = db.get(Visit, visit_id)
    if not visit:
        raise HTTPException(status_code=404, detail="Visit not found")
    return visit


def _get_editable_visit(db: Session, visit_id: str) -> Visit:
    visit = _get_visit(db, visit_id)
    if visit.status != "saved":
        raise Conflict("Closed visits cannot be edited")
    return visit


def _get_visit_service(db: Session, visit_id: str, visit_service_id: str) -> VisitService:
    row = db.execute(
        select(VisitService).where(VisitService.id == visit_service_id, VisitService.visit_id == visit_id)
    ).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Visit service not found")
    return row


def _get_visit_material(db: Session, visit_id: str, visit_material_id: str) -> VisitMaterial:
    row = db.execute(
        select(VisitMaterial)
        .join(VisitService, VisitService.id == VisitMaterial.visit_service_id)
        .where(VisitMaterial.id == visit_material_id, VisitService.visit_id == visit_id)
    ).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Visit material not found")
    return row


def _validate_unit(material: Material, unit: str) -> None:
    if unit not in {PACKAGE_UNIT, material.unit}:
        raise ValidationError(
            f"Unit '{unit}' does not match material unit '{material.unit}'",
            field="unit",
        )


def _usage_quantity(material: Material, quantity, unit: str) -> Decimal:
    amount = positive_quantity(quantity, "quantity")
    if packages_for_usage(amount, unit=unit, package_size=material.package_size) <= 0:
        raise ValidationError(
            f"{amount} {unit} is less than the smallest stock unit of {material.name}",
            field="quantity",
        )
    return amount


def _visit_out(db: Session, visit: Visit) -> VisitOut:
    visit_services = db.execute(
        select(VisitService)
        .where(VisitService.visit_id == visit.id)
        .order_by(VisitService.sort_order, VisitService.created_at, VisitService.id)
    ).scalars().all()

    materials_by_service: dict[str, list[VisitMaterial]] = {}
    service_names: dict[str, str] = {}
    if visit_services:
        rows = db.execute(
            select(VisitMaterial)
            .where(VisitMaterial.visit_service_id.in_([row.id for row in visit_services]))
            .order_by(VisitMaterial.created_at, VisitMaterial.id)
        ).scalars().all()
        for row in rows:
            materials_by_service.setdefault(row.visit_service_id, []).append(row)
        service_names = {
            service_id: name
            for service_id, name in db.execute(
                select(Service.id, Service.name).where(
                    Service.id.in_(list({row.service_id for row in visit_services}))
                )
            ).all()
        }

    material_ids = [row.material_id for rows in materials_by_service.values() for row in rows]
    materials = {}
    if material_ids:
        materials = {
            material.id: material
            for material in db.execute(
                select(Material).where(Material.id.in_(list(set(material_ids))))
            ).scalars().all()
        }

    def material_out(row: VisitMaterial) -> VisitMaterialOut:
        material = materials.get(row.material_id)
        packages = (
            packages_for_usage(row.quantity, unit=row.unit, package_size=material.package_size)
            if material is not None
            else to_packages(row.quantity)
        )
        return VisitMaterialOut(
            id=row.id,
            material_id=row.material_id,
            material_name=material.name if material is not None else None,
            quantity=float(row.quantity),
            unit=row.unit,
            packages=float(packages),
        )

    return VisitOut(
        id=visit.id,
        client_id=visit.client_id,
        status=visit.status,
        total_price=float(visit.total_price) if visit.total_price is not None else None,
        note=visit.note,
        closed_at=visit.closed_at,
        created_at=visit.created_at,
        services=[
            VisitServiceOut(
                id=row.id,
                service_id=row.service_id,
                service_name=service_names.get(row.service_id),
                sort_order=row.sort_order,
                materials=[material_out(item) for item in materials_by_service.get(row.id, [])],
            )
            for row in visit_services
        ],
    )


@router.post(
    "",
    response_model=VisitOut,
    summary="Open a visit",
    responses=error_responses(404, 422, 500),
)
def create_visit(payload: VisitCreate, db: Session = Depends(get_db)):
    if not db.get(Client, payload.client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    visit = Visit(id=generate_id(), client_id=payload.client_id, status="saved")
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return _visit_out(db, visit)


@router.get(
    "",
    response_model=list[VisitOut],
    summary="List visits of a client",
    responses=error_responses(422, 500),
)
def list_visits(
    client_id: str = Query(...),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    visits = db.execute(
        select(Visit)
        .where(Visit.client_id == client_id)
        .order_by(Visit.created_at.desc(), Visit.id)
        .limit(limit)
    ).scalars().all()
    return [_visit_out(db, visit) for visit in visits]


@router.get(
    "/{visit_id}",
    response_model=VisitOut,
    summary="Get visit with services and materials",
    responses=error_responses(404, 500),
)
def get_visit(visit_id: str, db: Session = Depends(get_db)):
    return _visit_out(db, _get_visit(db, visit_id))


@router.patch(
    "/{visit_id}",
    response_model=VisitOut,
    summary="Update visit note or price",
    responses=error_responses(404, 409, 422, 500),
)
def update_visit(visit_id: str, payload: VisitUpdate, db: Session = Depends(get_db)):
    visit = _get_editable_visit(db, visit_id)
    if "note" in payload.model_fields_set:
        visit.note = payload.note
    if "total_price" in payload.model_fields_set:
        visit.total_price = to_optional_money(payload.total_price)
    db.commit()
    db.refresh(visit)
    return _visit_out(db, visit)


@router.delete(
    "/{visit_id}",
    response_model=OkOut,
    summary="Delete visit",
    description="Stock consumed by a closed visit is not returned.",
    responses=error_responses(404, 500),
)
def delete_visit(visit_id: str, db: Session = Depends(get_db)):
    visit = _get_visit(db, visit_id)
    service_ids = select(VisitService.id).where(VisitService.visit_id == visit.id)
    db.execute(delete(VisitMaterial).where(VisitMaterial.visit_service_id.in_(service_ids)))
    db.execute(delete(VisitService).where(VisitService.visit_id == visit.id))
    db.delete(visit)
    db.commit()
    return OkOut()


@router.post(
    "/{visit_id}/duplicate",
    response_model=VisitOut,
    summary="Start a new visit from an earlier one",
    description=(
        "Copies the note, services and recorded materials into a new `saved` visit for the same client. "
        "Works for closed visits too; the price is not copied and no stock moves."
    ),
    responses=error_responses(404, 500),
)
def duplicate_visit(visit_id: str, db: Session = Depends(get_db)):
    original = _get_visit(db, visit_id)
    copy = Visit(id=generate_id(), client_id=original.client_id, status="saved", note=original.note)
    db.add(copy)

    visit_services = db.execute(
        select(VisitService)
        .where(VisitService.visit_id == original.id)
        .order_by(VisitService.sort_order, VisitService.created_at, VisitService.id)
    ).scalars().all()
    service_ids = {row.id: generate_id() for row in visit_services}
    for row in visit_services:
        db.add(
            VisitService(
                id=service_ids[row.id],
                visit_id=copy.id,
                service_id=row.service_id,
                sort_order=row.sort_order,
            )
        )
    if service_ids:
        materials = db.execute(
            select(VisitMaterial)
            .where(VisitMaterial.visit_service_id.in_(list(service_ids)))
            .order_by(VisitMaterial.created_at, VisitMaterial.id)
        ).scalars().all()
        for row in materials:
            db.add(
                VisitMaterial(
                    id=generate_id(),
                    visit_service_id=service_ids[row.visit_service_id],
                    material_id=row.material_id,
                    quantity=row.quantity,
                    unit=row.unit,
                )
            )
    db.commit()
    db.refresh(copy)
    return _visit_out(db, copy)


@router.post(
    "/{visit_id}/services",
    response_model=VisitOut,
    summary="Add service to visit",
    responses=error_responses(404, 409, 422, 500),
)
def add_visit_service(visit_id: str, payload: VisitServiceCreate, db: Session = Depends(get_db)):
    visit = _get_editable_visit(db, visit_id)
    if not db.get(Service, payload.service_id):
        raise HTTPException(status_code=404, detail="Service not found")
    max_sort = db.execute(
        select(func.max(VisitService.sort_order)).where(VisitService.visit_id == visit.id)
    ).scalar_one_or_none()
    db.add(
        VisitService(
            id=generate_id(),
            visit_id=visit.id,
            service_id=payload.service_id,
            sort_order=int(max_sort) + 1 if max_sort is not None else 0,
        )
    )
    db.commit()
    return _visit_out(db, visit)


@router.delete(
    "/{visit_id}/services/{visit_service_id}",
    response_model=VisitOut,
    summary="Remove service from visit",
    responses=error_responses(404, 409, 500),
)
def remove_visit_service(visit_id: str, visit_service_id: str, db: Session = Depends(get_db)):
    visit = _get_editable_visit(db, visit_id)
    row = _get_visit_service(db, visit.id, visit_service_id)
    db.execute(delete(VisitMaterial).where(VisitMaterial.visit_service_id == row.id))
    db.delete(row)
    db.commit()
    return _visit_out(db, visit)


@router.post(
    "/{visit_id}/services/{visit_service_id}/materials",
    response_model=VisitOut,
    summary="Record material used for a visit service",
    description="`unit` must be `ks` or the unit of the material. Stock moves only when the visit is closed.",
    responses=error_responses(400, 404, 409, 422, 500),
)
def add_visit_material(
    visit_id: str,
    visit_service_id: str,
    payload: VisitMaterialCreate,
    db: Session = Depends(get_db),
):
    visit = _get_editable_visit(db, visit_id)
    row = _get_visit_service(db, visit.id, visit_service_id)
    material = get_material(db, payload.material_id)
    _validate_unit(material, payload.unit)
    quantity = _usage_quantity(material, payload.quantity, payload.unit)
    db.add(
        VisitMaterial(
            id=generate_id(),
            visit_service_id=row.id,
            material_id=material.id,
            quantity=quantity,
            unit=payload.unit,
        )
    )
    db.commit()
    return _visit_out(db, visit)


@router.patch(
    "/{visit_id}/materials/{visit_material_id}",
    response_model=VisitOut,
    summary="Update material used for a visit",
    responses=error_responses(400, 404, 409, 422, 500),
)
def update_visit_material(
    visit_id: str,
    visit_material_id: str,
    payload: VisitMaterialUpdate,
    db: Session = Depends(get_db),
):
    visit = _get_editable_visit(db, visit_id)
    row = _get_visit_material(db, visit.id, visit_material_id)
    material = get_material(db, row.material_id)
    unit = payload.unit or row.unit
    _validate_unit(material, unit)
    row.quantity = _usage_quantity(material, payload.quantity, unit)
    row.unit = unit
    db.commit()
    return _visit_out(db, visit)


@router.delete(
    "/{visit_id}/materials/{visit_material_id}",
    response_model=VisitOut,
    summary="Remove material from visit",
    responses=error_responses(404, 409, 500),
)
def remove_visit_material(visit_id: str, visit_material_id: str, db: Session = Depends(get_db)):
    visit = _get_editable_visit(db, visit_id)
    row = _get_visit_material(db, visit.id, visit_material_id)
    db.delete(row)
    db.commit()
    return _visit_out(db, visit)


@router.post(
    "/{visit_id}/close",
    response_model=VisitCloseOut,
    summary="Close visit and consume its materials",
    description=(
        "Converts every recorded material to packages and debits stock in one transaction. "
        "Balances may go negative unless stock enforcement on visit close is enabled."
    ),
    responses=error_responses(400, 404, 409, 422, 500),
)
def close(visit_id: str, payload: VisitCloseIn, db: Session = Depends(get_db)):
    result = unwrap(close_visit(db, visit_id, total_price=payload.total_price, note=payload.note))
    db.refresh(result.visit)
    names = material_names(db, [movement.material_id for movement in result.movements])
    return VisitCloseOut(
        visit=_visit_out(db, result.visit),
        transaction_id=result.transaction.id,
        movements=[
            MovementOut.from_row(movement, material_name=names.get(movement.material_id))
            for movement in result.movements
        ],
    )
