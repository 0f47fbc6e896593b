from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from salondesk.core.api_docs import error_responses
from salondesk.core.deps import get_db
from salondesk.core.id_utils import generate_id
from salondesk.core.money import to_optional_money
from salondesk.models.service import Service, ServiceGroup
from salondesk.schemas.service import ServiceCreate, ServiceGroupCreate, ServiceGroupOut, ServiceOut
from salondesk.services.catalog_service import next_sort_order

router = APIRouter(prefix="/services", tags=["services"])


def _service_out(service: Service) -> ServiceOut:
    return ServiceOut(
        id=service.id,
        group_id=service.group_id,
        name=service.name,
        price=float(service.price) if service.price is not None else None,
        sort_order=service.sort_order,
    )


@router.get(
    "",
    response_model=list[ServiceGroupOut],
    summary="Service catalog grouped by service group",
    responses=error_responses(500),
)
def list_services(db: Session = Depends(get_db)):
    groups = db.execute(select(ServiceGroup).order_by(ServiceGroup.sort_order, ServiceGroup.name)).scalars().all()
    services = db.execute(select(Service).order_by(Service.sort_order, Service.name)).scalars().all()
    by_group: dict[str, list[ServiceOut]] = {}
    for service in services:
        by_group.setdefault(service.group_id, []).append(_service_out(service))
    return [
        ServiceGroupOut(
            id=group.id,
            name=group.name,
            sort_order=group.sort_order,
            services=by_group.get(group.id, []),
        )
        for group in groups
    ]


@router.post(
    "/groups",
    response_model=ServiceGroupOut,
    summary="Create service group",
    responses=error_responses(422, 500),
)
def create_service_group(payload: ServiceGroupCreate, db: Session = Depends(get_db)):
    group = ServiceGroup(
        id=generate_id(),
        name=payload.name.strip(),
        sort_order=next_sort_order(db, ServiceGroup.sort_order),
    )
    db.add(group)
    db.commit()
    return ServiceGroupOut(id=group.id, name=group.name, sort_order=group.sort_order)


@router.post(
    "",
    response_model=ServiceOut,
    summary="Create service",
    responses=error_responses(404, 422, 500),
)
def create_service(payload: ServiceCreate, db: Session = Depends(get_db)):
    if not db.get(ServiceGroup, payload.group_id):
        raise HTTPException(status_code=404, detail="Service group not found")
    service = Service(
        id=generate_id(),
        group_id=payload.group_id,
        name=payload.name.strip(),
        price=to_optional_money(payload.price),
        sort_order=next_sort_order(db, Service.sort_order),
    )
    db.add(service)
    db.commit()
    return _service_out(service)
