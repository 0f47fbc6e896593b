import os
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, delete, inspect, select
from sqlalchemy.orm import sessionmaker

from salondesk.core.errors import InsufficientStock
from salondesk.core.id_utils import generate_id
from salondesk.core.outcome import Err, Ok
from salondesk.models.client import Client, HomeProduct
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.models.material import Material, MaterialGroup
from salondesk.models.service import Service, ServiceGroup
from salondesk.models.visit import Visit, VisitMaterial, VisitService
from salondesk.services.inventory_service import reconcile_material
from salondesk.services.stock_coordinator import LineItem, close_visit, record_sale

pytestmark = pytest.mark.integration


def _test_pg_url() -> str | None:
    return os.getenv("TEST_POSTGRES_DATABASE_URL")


def _alembic(url: str, *targets: str) -> None:
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))

    previous_database_url = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = url
    try:
        for target in targets:
            if target == "base":
                command.downgrade(alembic_cfg, target)
            else:
                command.upgrade(alembic_cfg, target)
    finally:
        if previous_database_url is None:
            os.environ.pop("DATABASE_URL", None)
        else:
            os.environ["DATABASE_URL"] = previous_database_url


@pytest.fixture(scope="module")
def pg_session_factory():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")
    _alembic(url, "head")
    engine = create_engine(url, pool_pre_ping=True)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def salon(pg_session_factory):
    """A material group, a client and a colouring service; removed again after the test."""
    db = pg_session_factory()
    group = MaterialGroup(id=generate_id(), name=f"pg-{generate_id()[:8]}", sort_order=900)
    client = Client(id=generate_id(), first_name="Jana", last_name="Novakova", avatar="JN")
    service_group = ServiceGroup(id=generate_id(), name="Colouring", sort_order=900)
    service = Service(id=generate_id(), group_id=service_group.id, name="Full colour", sort_order=1)
    db.add_all([group, client, service_group])
    db.flush()
    db.add(service)
    db.commit()

    yield db, group, client, service

    db.rollback()
    material_ids = select(Material.id).where(Material.group_id == group.id)
    visit_ids = select(Visit.id).where(Visit.client_id == client.id)
    visit_service_ids = select(VisitService.id).where(VisitService.visit_id.in_(visit_ids))
    db.execute(delete(VisitMaterial).where(VisitMaterial.visit_service_id.in_(visit_service_ids)))
    db.execute(delete(VisitService).where(VisitService.visit_id.in_(visit_ids)))
    db.execute(delete(HomeProduct).where(HomeProduct.client_id == client.id))
    transaction_ids = list(
        db.execute(
            select(MaterialMovement.transaction_id).where(MaterialMovement.material_id.in_(material_ids))
        ).scalars()
    )
    db.execute(delete(MaterialMovement).where(MaterialMovement.material_id.in_(material_ids)))
    db.execute(delete(StockTransaction).where(StockTransaction.id.in_(transaction_ids)))
    db.execute(delete(Visit).where(Visit.client_id == client.id))
    db.execute(delete(Material).where(Material.group_id == group.id))
    db.execute(delete(Service).where(Service.id == service.id))
    db.execute(delete(ServiceGroup).where(ServiceGroup.id == service_group.id))
    db.execute(delete(Client).where(Client.id == client.id))
    db.execute(delete(MaterialGroup).where(MaterialGroup.id == group.id))
    db.commit()
    db.close()


def _material(db, group: MaterialGroup, *, name: str, stock: str, unit: str = "ks", package_size: str = "1") -> Material:
    material = Material(
        id=generate_id(),
        group_id=group.id,
        name=name,
        unit=unit,
        package_size=Decimal(package_size),
        stock_quantity=Decimal(stock),
        initial_stock=Decimal(stock),
        min_stock=Decimal("0"),
    )
    db.add(material)
    db.commit()
    return material


def test_sale_and_visit_close_reconcile_on_postgres(salon):
    db, group, client, service = salon
    shampoo = _material(db, group, name="Repair Shampoo", stock="4")
    colour = _material(db, group, name="INOA 6.0", stock="1", unit="g", package_size="60")

    sale = record_sale(
        db,
        [LineItem(material_id=shampoo.id, quantity=Decimal("1"))],
        client_id=client.id,
        total_price=Decimal("390"),
    )
    assert isinstance(sale, Ok)

    visit = Visit(id=generate_id(), client_id=client.id, status="saved")
    visit_service = VisitService(id=generate_id(), visit_id=visit.id, service_id=service.id, sort_order=0)
    db.add(visit)
    db.flush()
    db.add(visit_service)
    db.flush()
    db.add(
        VisitMaterial(
            id=generate_id(),
            visit_service_id=visit_service.id,
            material_id=colour.id,
            quantity=Decimal("90"),
            unit="g",
        )
    )
    db.commit()

    closed = close_visit(db, visit.id)
    assert isinstance(closed, Ok)
    assert [movement.quantity for movement in closed.data.movements] == [Decimal("-1.5000")]

    db.expire_all()
    assert db.get(Material, shampoo.id).stock_quantity == Decimal("3.0000")
    assert db.get(Material, colour.id).stock_quantity == Decimal("-0.5000")
    for material_id in (shampoo.id, colour.id):
        assert reconcile_material(db, material_id).drift == 0


def test_concurrent_sales_cannot_oversell_on_postgres(salon, pg_session_factory):
    db, group, _, _ = salon
    serum = _material(db, group, name="Serum", stock="5")

    def sell():
        session = pg_session_factory()
        try:
            return record_sale(session, [LineItem(material_id=serum.id, quantity=Decimal("3"))])
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(lambda _: sell(), range(2)))

    assert sum(isinstance(outcome, Ok) for outcome in outcomes) == 1
    rejected = [outcome for outcome in outcomes if isinstance(outcome, Err)]
    assert isinstance(rejected[0].error, InsufficientStock)
    assert rejected[0].error.available == Decimal("2.0000")

    db.expire_all()
    assert db.get(Material, serum.id).stock_quantity == Decimal("2.0000")
    assert reconcile_material(db, serum.id).drift == 0


def test_alembic_downgrade_and_upgrade_round_trip():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run migration smoke tests.")
    if os.getenv("ALLOW_DESTRUCTIVE_MIGRATION_TESTS") != "1":
        pytest.skip("Set ALLOW_DESTRUCTIVE_MIGRATION_TESTS=1 for downgrade smoke test.")

    _alembic(url, "head", "base", "head")

    engine = create_engine(url, pool_pre_ping=True)
    try:
        table_names = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"materials", "material_movements", "stock_transactions", "visit_materials", "client_notes"} <= table_names
