from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.config import settings
from salondesk.core.deps import get_db
from salondesk.core.errors import ValidationError
from salondesk.core.id_utils import generate_id
from salondesk.core.outcome import unwrap
from salondesk.core.quantity import to_packages
from salondesk.models.material import Material, MaterialGroup
from salondesk.schemas.common import OkOut
from salondesk.schemas.inventory import MovementOut
from salondesk.schemas.material import (
    LowStockMaterialOut,
    MaterialBulkCreate,
    MaterialBulkItemIn,
    MaterialBulkOut,
    MaterialCheckOut,
    MaterialCreate,
    MaterialDetailOut,
    MaterialGroupCreate,
    MaterialGroupOut,
    MaterialOut,
    MaterialUpdate,
    StockReconciliationOut,
)
from salondesk.services.catalog_service import (
    delete_material,
    delete_material_group,
    is_low_stock,
    next_sort_order,
    suggested_reorder_quantity,
)
from salondesk.services.inventory_service import (
    list_movements,
    movement_counts,
    reconcile_material,
)

router = APIRouter(prefix="/materials", tags=["materials"])
groups_router = APIRouter(prefix="/material-groups", tags=["materials"])


def _get_material(db: Session, material_id: str) -> Material:
    material = db.get(Material, material_id)
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    return material


def _ensure_group(db: Session, group_id: str) -> MaterialGroup:
    group = db.get(MaterialGroup, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Material group not found")
    return group


def _new_material(group_id: str, payload: MaterialCreate | MaterialBulkItemIn) -> Material:
    opening = to_packages(payload.stock_quantity)
    return Material(
        id=generate_id(),
        group_id=group_id,
        name=payload.name.strip(),
        unit=payload.unit,
        package_size=to_packages(payload.package_size),
        stock_quantity=opening,
        initial_stock=opening,
        min_stock=to_packages(payload.min_stock),
        is_retail_product=payload.is_retail_product,
    )


def _material_out(material: Material, *, group_name: str | None, movements_count: int) -> MaterialOut:
    return MaterialOut(
        id=material.id,
        group_id=material.group_id,
        group_name=group_name,
        name=material.name,
        unit=material.unit,
        package_size=float(material.package_size),
        stock_quantity=float(material.stock_quantity),
        min_stock=float(material.min_stock),
        is_retail_product=material.is_retail_product,
        is_low_stock=is_low_stock(material),
        movements_count=movements_count,
        created_at=material.created_at,
    )


@groups_router.get(
    "",
    response_model=list[MaterialGroupOut],
    summary="List material groups",
    responses=error_responses(500),
)
def list_material_groups(db: Session = Depends(get_db)):
    rows = db.execute(
        select(MaterialGroup, func.count(Material.id))
        .outerjoin(Material, Material.group_id == MaterialGroup.id)
        .group_by(MaterialGroup.id)
        .order_by(MaterialGroup.sort_order, MaterialGroup.name)
    ).all()
    return [
        MaterialGroupOut(
            id=group.id,
            name=group.name,
            sort_order=group.sort_order,
            materials_count=int(count),
        )
        for group, count in rows
    ]


@groups_router.post(
    "",
    response_model=MaterialGroupOut,
    summary="Create material group",
    responses=error_responses(422, 500),
)
def create_material_group(payload: MaterialGroupCreate, db: Session = Depends(get_db)):
    group = MaterialGroup(
        id=generate_id(),
        name=payload.name.strip(),
        sort_order=next_sort_order(db, MaterialGroup.sort_order),
    )
    db.add(group)
    db.commit()
    return MaterialGroupOut(id=group.id, name=group.name, sort_order=group.sort_order)


@groups_router.delete(
    "/{group_id}",
    response_model=OkOut,
    summary="Delete material group",
    responses=error_responses(404, 409, 500),
)
def remove_material_group(group_id: str, db: Session = Depends(get_db)):
    unwrap(delete_material_group(db, group_id))
    return OkOut()


@router.get(
    "",
    response_model=list[MaterialOut],
    summary="List materials",
    responses=error_responses(422, 500),
)
def list_materials(
    group_id: str | None = Query(default=None, description="Optional group filter; 'all' disables it"),
    retail_only: bool = Query(default=False, description="Only products sellable at the point of sale"),
    db: Session = Depends(get_db),
):
    stmt = select(Material, MaterialGroup.name).join(MaterialGroup, MaterialGroup.id == Material.group_id)
    if group_id and group_id != "all":
        stmt = stmt.where(Material.group_id == group_id)
    if retail_only:
        stmt = stmt.where(Material.is_retail_product.is_(True))
    rows = db.execute(stmt.order_by(Material.name)).all()
    counts = movement_counts(db, [material.id for material, _ in rows])
    return [
        _material_out(material, group_name=group_name, movements_count=counts.get(material.id, 0))
        for material, group_name in rows
    ]


@router.post(
    "",
    response_model=MaterialOut,
    summary="Create material",
    description="Creates a material with an opening balance. Later balance changes go through stock movements.",
    responses=error_responses(404, 422, 500),
)
def create_material(payload: MaterialCreate, db: Session = Depends(get_db)):
    group = _ensure_group(db, payload.group_id)
    material = _new_material(group.id, payload)
    db.add(material)
    db.commit()
    db.refresh(material)
    return _material_out(material, group_name=group.name, movements_count=0)


@router.post(
    "/bulk",
    response_model=MaterialBulkOut,
    summary="Import material groups and materials",
    description=(
        "Creates groups and materials in one transaction. A material names its group either by "
        "`group_id` of an existing group or by `group_index` into `groups` of the same request. "
        "Opening balances are recorded like `POST /materials`."
    ),
    responses=error_responses(400, 404, 422, 500),
)
def bulk_create_materials(payload: MaterialBulkCreate, db: Session = Depends(get_db)):
    if not payload.groups and not payload.materials:
        raise ValidationError("Nothing to import", field="groups")

    base_order = next_sort_order(db, MaterialGroup.sort_order)
    groups: list[MaterialGroup] = []
    for idx, item in enumerate(payload.groups):
        group = MaterialGroup(
            id=generate_id(),
            name=item.name.strip(),
            sort_order=item.sort_order if item.sort_order is not None else base_order + idx,
        )
        db.add(group)
        groups.append(group)

    group_names = {group.id: group.name for group in groups}
    materials: list[Material] = []
    for idx, item in enumerate(payload.materials):
        if (item.group_id is None) == (item.group_index is None):
            raise ValidationError(
                "Exactly one of group_id or group_index is required",
                field=f"materials.{idx}.group_id",
            )
        if item.group_index is not None:
            if item.group_index >= len(groups):
                raise ValidationError(
                    f"group_index {item.group_index} is out of range",
                    field=f"materials.{idx}.group_index",
                )
            group_id = groups[item.group_index].id
        else:
            existing = _ensure_group(db, item.group_id)
            group_id = existing.id
            group_names.setdefault(group_id, existing.name)
        material = _new_material(group_id, item)
        db.add(material)
        materials.append(material)

    db.commit()
    return MaterialBulkOut(
        groups=[
            MaterialGroupOut(
                id=group.id,
                name=group.name,
                sort_order=group.sort_order,
                materials_count=sum(1 for material in materials if material.group_id == group.id),
            )
            for group in groups
        ],
        materials=[
            _material_out(material, group_name=group_names.get(material.group_id), movements_count=0)
            for material in materials
        ],
    )


@router.get(
    "/check",
    response_model=MaterialCheckOut,
    summary="Check whether the catalog has been set up",
    responses=error_responses(500),
)
def check_materials(db: Session = Depends(get_db)):
    materials_count = int(db.execute(select(func.count(Material.id))).scalar_one())
    groups_count = int(db.execute(select(func.count(MaterialGroup.id))).scalar_one())
    return MaterialCheckOut(
        has_materials=materials_count > 0,
        has_groups=groups_count > 0,
        materials_count=materials_count,
        groups_count=groups_count,
    )


@router.get(
    "/low-stock",
    response_model=list[LowStockMaterialOut],
    summary="List materials at or below their reorder threshold",
    responses=error_responses(500),
)
def list_low_stock_materials(db: Session = Depends(get_db)):
    rows = db.execute(
        select(Material, MaterialGroup.name)
        .join(MaterialGroup, MaterialGroup.id == Material.group_id)
        .where(Material.min_stock > 0, Material.stock_quantity <= Material.min_stock)
        .order_by(Material.name)
    ).all()
    return [
        LowStockMaterialOut(
            id=material.id,
            name=material.name,
            group_name=group_name,
            unit=material.unit,
            stock_quantity=float(material.stock_quantity),
            min_stock=float(material.min_stock),
            suggested_quantity=suggested_reorder_quantity(material),
        )
        for material, group_name in rows
    ]


@router.get(
    "/{material_id}",
    response_model=MaterialDetailOut,
    summary="Get material with recent movements",
    responses=error_responses(404, 500),
)
def get_material_detail(material_id: str, db: Session = Depends(get_db)):
    material = _get_material(db, material_id)
    group = db.get(MaterialGroup, material.group_id)
    movements = list_movements(db, material.id, limit=settings.movement_history_limit)
    counts = movement_counts(db, [material.id])
    base = _material_out(
        material,
        group_name=group.name if group else None,
        movements_count=counts.get(material.id, 0),
    )
    return MaterialDetailOut(
        **base.model_dump(),
        movements=[MovementOut.from_row(row, material_name=material.name) for row in movements],
    )


@router.put(
    "/{material_id}",
    response_model=MaterialOut,
    summary="Update material catalog fields",
    description="Stock balance is not editable here; use `POST /inventory/movements`.",
    responses=error_responses(404, 422, 500),
)
def update_material(material_id: str, payload: MaterialUpdate, db: Session = Depends(get_db)):
    material = _get_material(db, material_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("group_id"):
        _ensure_group(db, changes["group_id"])
    for field_name, value in changes.items():
        if value is None:
            continue
        if field_name in {"package_size", "min_stock"}:
            value = to_packages(value)
        if field_name == "name":
            value = value.strip()
        setattr(material, field_name, value)
    db.commit()
    db.refresh(material)
    group = db.get(MaterialGroup, material.group_id)
    counts = movement_counts(db, [material.id])
    return _material_out(
        material,
        group_name=group.name if group else None,
        movements_count=counts.get(material.id, 0),
    )


@router.delete(
    "/{material_id}",
    response_model=OkOut,
    summary="Delete material",
    description="Only materials without stock movements can be deleted.",
    responses=error_responses(404, 409, 500),
)
def remove_material(material_id: str, db: Session = Depends(get_db)):
    unwrap(delete_material(db, material_id))
    return OkOut()


@router.get(
    "/{material_id}/reconciliation",
    response_model=StockReconciliationOut,
    summary="Compare the stored balance with the movement ledger",
    responses=error_responses(404, 500),
)
def get_material_reconciliation(material_id: str, db: Session = Depends(get_db)):
    result = reconcile_material(db, material_id)
    return StockReconciliationOut(
        material_id=result.material_id,
        initial_stock=float(result.initial_stock),
        ledger_sum=float(result.ledger_sum),
        stock_quantity=float(result.stock_quantity),
        expected_stock=float(result.expected_stock),
        drift=float(result.drift),
        consistent=result.drift == 0,
    )
