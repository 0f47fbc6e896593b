import math
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salondesk.core.errors import Conflict, NotFound
from salondesk.core.outcome import Err, Ok, Outcome
from salondesk.models.client import Client, ClientGroup
from salondesk.models.inventory import MaterialMovement
from salondesk.models.material import Material, MaterialGroup
from salondesk.models.order import OrderItem
from salondesk.models.visit import VisitMaterial


def is_low_stock(material: Material) -> bool:
    min_stock = Decimal(material.min_stock or 0)
    return min_stock > 0 and Decimal(material.stock_quantity) <= min_stock


def suggested_reorder_quantity(material: Material) -> int:
    if not is_low_stock(material):
        return 0
    deficit = Decimal(material.min_stock) - Decimal(material.stock_quantity)
    return max(1, math.ceil(deficit))


def _count(db: Session, column, *criteria) -> int:
    return int(db.execute(select(func.count(column)).where(*criteria)).scalar_one())


def delete_material(db: Session, material_id: str) -> Outcome[None]:
    material = db.get(Material, material_id)
    if not material:
        return Err(NotFound("material", material_id))
    if _count(db, MaterialMovement.id, MaterialMovement.material_id == material_id):
        return Err(Conflict(f"Cannot delete {material.name}: it has stock movements"))
    if _count(db, OrderItem.id, OrderItem.material_id == material_id) or _count(
        db, VisitMaterial.id, VisitMaterial.material_id == material_id
    ):
        return Err(Conflict(f"Cannot delete {material.name}: it is used on orders or visits"))
    db.delete(material)
    db.commit()
    return Ok(None)


def delete_material_group(db: Session, group_id: str) -> Outcome[None]:
    group = db.get(MaterialGroup, group_id)
    if not group:
        return Err(NotFound("material group", group_id))
    if _count(db, Material.id, Material.group_id == group_id):
        return Err(Conflict("Cannot delete group with materials"))
    db.delete(group)
    db.commit()
    return Ok(None)


def delete_client_group(db: Session, group_id: str) -> Outcome[None]:
    group = db.get(ClientGroup, group_id)
    if not group:
        return Err(NotFound("client group", group_id))
    if group.is_system:
        return Err(Conflict("Cannot delete system group"))
    if _count(db, Client.id, Client.group_id == group_id):
        return Err(Conflict("Cannot delete group with clients"))
    db.delete(group)
    db.commit()
    return Ok(None)


def next_sort_order(db: Session, column) -> int:
    current = db.execute(select(func.max(column))).scalar_one_or_none()
    return (current or 0) + 1
