from decimal import Decimal

from sqlalchemy import select

from salondesk.core.errors import Conflict, InsufficientStock, NotFound, ValidationError
from salondesk.core.id_utils import generate_id
from salondesk.core.outcome import Err, Ok
from salondesk.core.quantity import to_packages
from salondesk.models.client import Client, HomeProduct
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.models.material import Material, MaterialGroup
from salondesk.models.order import Order, OrderItem
from salondesk.models.service import Service, ServiceGroup
from salondesk.models.visit import Visit, VisitMaterial, VisitService
from salondesk.services.catalog_service import delete_material
from salondesk.services.inventory_service import (
    MovementType,
    get_balance,
    group_movements,
    list_movements,
    reconcile_material,
)
from salondesk.services.stock_coordinator import (
    LineItem,
    close_visit,
    record_delivery,
    record_manual_movement,
    record_sale,
    record_usage,
)


def _material(db, *, name: str, stock, unit: str = "ks", package_size=1, min_stock=0) -> Material:
    group = db.execute(select(MaterialGroup)).scalars().first()
    if group is None:
        group = MaterialGroup(id=generate_id(), name="Colours", sort_order=1)
        db.add(group)
    material = Material(
        id=generate_id(),
        group_id=group.id,
        name=name,
        unit=unit,
        package_size=Decimal(str(package_size)),
        stock_quantity=to_packages(stock),
        initial_stock=to_packages(stock),
        min_stock=to_packages(min_stock),
    )
    db.add(material)
    db.commit()
    return material


def _client(db, first_name: str = "Jana") -> Client:
    client = Client(id=generate_id(), first_name=first_name, last_name="Novakova", avatar="JN")
    db.add(client)
    db.commit()
    return client


def _visit_with_materials(db, client: Client, usages: list[tuple[Material, str, str]]) -> Visit:
    group = ServiceGroup(id=generate_id(), name="Colouring", sort_order=1)
    service = Service(id=generate_id(), group_id=group.id, name="Full colour", sort_order=1)
    visit = Visit(id=generate_id(), client_id=client.id, status="saved")
    visit_service = VisitService(id=generate_id(), visit_id=visit.id, service_id=service.id, sort_order=0)
    db.add_all([group, service, visit, visit_service])
    for material, quantity, unit in usages:
        db.add(
            VisitMaterial(
                id=generate_id(),
                visit_service_id=visit_service.id,
                material_id=material.id,
                quantity=Decimal(quantity),
                unit=unit,
            )
        )
    db.commit()
    return visit


def _stock(db, material_id: str) -> Decimal:
    db.expire_all()
    return get_balance(db, material_id)


def _movements(db, material_id: str) -> list[MaterialMovement]:
    return list_movements(db, material_id, limit=100)


def test_sale_debits_every_item_and_keeps_ledger_consistent(db_session):
    shampoo = _material(db_session, name="Repair Shampoo", stock=5)
    mask = _material(db_session, name="Repair Mask", stock=3)

    outcome = record_sale(
        db_session,
        [LineItem(material_id=shampoo.id, quantity=Decimal("2")), LineItem(material_id=mask.id, quantity=Decimal("1"))],
    )

    assert isinstance(outcome, Ok)
    assert _stock(db_session, shampoo.id) == Decimal("3")
    assert _stock(db_session, mask.id) == Decimal("2")
    assert [row.quantity for row in _movements(db_session, shampoo.id)] == [Decimal("-2")]
    for material in (shampoo, mask):
        assert reconcile_material(db_session, material.id).drift == 0


def test_sale_batch_is_all_or_nothing_when_last_item_is_short(db_session):
    first = _material(db_session, name="Shampoo", stock=5)
    second = _material(db_session, name="Conditioner", stock=5)
    third = _material(db_session, name="Serum", stock=1)

    outcome = record_sale(
        db_session,
        [
            LineItem(material_id=first.id, quantity=Decimal("1")),
            LineItem(material_id=second.id, quantity=Decimal("1")),
            LineItem(material_id=third.id, quantity=Decimal("2")),
        ],
        total_price=Decimal("900"),
    )

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, InsufficientStock)
    assert outcome.error.material_id == third.id
    assert outcome.error.available == Decimal("1")
    for material in (first, second):
        assert _stock(db_session, material.id) == Decimal("5")
    assert _stock(db_session, third.id) == Decimal("1")
    assert db_session.execute(select(MaterialMovement)).scalars().all() == []
    assert db_session.execute(select(StockTransaction)).scalars().all() == []


def test_sale_single_item_over_stock_is_rejected(db_session):
    material = _material(db_session, name="Hair Oil", stock=2)

    outcome = record_sale(db_session, [LineItem(material_id=material.id, quantity=Decimal("3"))])

    assert isinstance(outcome, Err)
    assert outcome.error.code == "insufficient_stock"
    assert outcome.error.requested == Decimal("3")
    assert _stock(db_session, material.id) == Decimal("2")
    assert _movements(db_session, material.id) == []


def test_sale_check_sums_repeated_lines_of_one_material(db_session):
    material = _material(db_session, name="Hair Spray", stock=3)

    outcome = record_sale(
        db_session,
        [
            LineItem(material_id=material.id, quantity=Decimal("2")),
            LineItem(material_id=material.id, quantity=Decimal("2")),
        ],
    )

    assert isinstance(outcome, Err)
    assert outcome.error.requested == Decimal("4")
    assert _stock(db_session, material.id) == Decimal("3")


def test_sale_note_and_price_live_on_first_line_only(db_session):
    client = _client(db_session)
    first = _material(db_session, name="Shampoo", stock=5)
    second = _material(db_session, name="Mask", stock=5)

    result = record_sale(
        db_session,
        [LineItem(material_id=first.id, quantity=Decimal("1")), LineItem(material_id=second.id, quantity=Decimal("1"))],
        client_id=client.id,
        total_price=Decimal("500"),
        note="x",
    ).data

    head, tail = result.movements
    assert head.line_no == 0 and tail.line_no == 1
    assert head.total_price == Decimal("500")
    assert head.note == "x"
    assert tail.total_price is None
    assert tail.note is None

    products = db_session.execute(
        select(HomeProduct).where(HomeProduct.client_id == client.id).order_by(HomeProduct.name.desc())
    ).scalars().all()
    assert [product.name for product in products] == ["Shampoo", "Mask"]
    assert products[0].total_price == Decimal("500")
    assert products[1].total_price is None
    assert {product.purchase_id for product in products} == {result.transaction.reference}


def test_sale_with_unknown_client_or_material_changes_nothing(db_session):
    material = _material(db_session, name="Shampoo", stock=5)

    missing_client = record_sale(
        db_session,
        [LineItem(material_id=material.id, quantity=Decimal("1"))],
        client_id="missing-client",
    )
    missing_material = record_usage(db_session, [LineItem(material_id="missing", quantity=Decimal("1"))])

    assert isinstance(missing_client.error, NotFound)
    assert isinstance(missing_material.error, NotFound)
    assert missing_material.error.entity == "material"
    assert _stock(db_session, material.id) == Decimal("5")


def test_empty_batch_and_non_positive_quantity_are_validation_errors(db_session):
    material = _material(db_session, name="Shampoo", stock=5)

    empty = record_usage(db_session, [])
    zero = record_usage(db_session, [LineItem(material_id=material.id, quantity=Decimal("0"))])

    assert isinstance(empty.error, ValidationError)
    assert empty.error.field == "items"
    assert isinstance(zero.error, ValidationError)
    assert zero.error.field == "items.0.quantity"


def test_usage_records_usage_movements_without_price(db_session):
    material = _material(db_session, name="Foil", stock=4)

    result = record_usage(
        db_session,
        [LineItem(material_id=material.id, quantity=Decimal("1.5"))],
        note="Backbar",
    ).data

    assert result.transaction.cause == "usage"
    assert result.movements[0].type == MovementType.USAGE.value
    assert result.movements[0].quantity == Decimal("-1.5")
    assert result.movements[0].total_price is None
    assert _stock(db_session, material.id) == Decimal("2.5")


def test_visit_close_overdraws_stock_and_converts_units(db_session):
    client = _client(db_session)
    colour = _material(db_session, name="INOA 6.0", stock=1, unit="g", package_size=50)
    gloves = _material(db_session, name="Gloves", stock=10, unit="ks", package_size=100)
    visit = _visit_with_materials(db_session, client, [(colour, "100", "g"), (gloves, "3", "ks")])

    result = close_visit(db_session, visit.id, total_price=Decimal("1200")).data

    assert _stock(db_session, colour.id) == Decimal("-1")
    assert _stock(db_session, gloves.id) == Decimal("7")
    assert [movement.type for movement in result.movements] == ["VISIT", "VISIT"]
    assert sorted(movement.quantity for movement in result.movements) == [Decimal("-3"), Decimal("-2")]
    assert all(movement.visit_id == visit.id for movement in result.movements)
    assert result.transaction.client_id == client.id
    assert result.visit.status == "closed"
    assert reconcile_material(db_session, colour.id).drift == 0


def test_visit_close_twice_is_a_conflict(db_session):
    client = _client(db_session)
    colour = _material(db_session, name="INOA 7.0", stock=5, unit="g", package_size=60)
    visit = _visit_with_materials(db_session, client, [(colour, "30", "g")])

    assert isinstance(close_visit(db_session, visit.id), Ok)
    second = close_visit(db_session, visit.id)

    assert isinstance(second.error, Conflict)
    assert _stock(db_session, colour.id) == Decimal("4.5")
    assert len(_movements(db_session, colour.id)) == 1


def test_visit_close_respects_strict_policy_toggle(db_session, strict_visit_stock):
    client = _client(db_session)
    colour = _material(db_session, name="INOA 8.0", stock=1, unit="g", package_size=50)
    visit = _visit_with_materials(db_session, client, [(colour, "100", "g")])

    outcome = close_visit(db_session, visit.id)

    assert isinstance(outcome.error, InsufficientStock)
    db_session.expire_all()
    assert db_session.get(Visit, visit.id).status == "saved"
    assert _stock(db_session, colour.id) == Decimal("1")


def test_visit_close_rejects_usage_that_rounds_to_no_stock(db_session):
    client = _client(db_session)
    colour = _material(db_session, name="INOA 9.0", stock=2, unit="g", package_size=60)
    gloves = _material(db_session, name="Gloves", stock=10)
    visit = _visit_with_materials(db_session, client, [(gloves, "1", "ks"), (colour, "0.0001", "g")])

    outcome = close_visit(db_session, visit.id)

    assert isinstance(outcome.error, ValidationError)
    assert outcome.error.field.endswith(".quantity")
    db_session.expire_all()
    assert db_session.get(Visit, visit.id).status == "saved"
    assert _stock(db_session, gloves.id) == Decimal("10")
    assert db_session.execute(select(MaterialMovement)).scalars().all() == []


def _ordered_order(db, items: list[tuple[Material, str]]) -> tuple[Order, list[OrderItem]]:
    order = Order(id=generate_id(), status="ordered", note="Monthly restock")
    db.add(order)
    rows = [
        OrderItem(id=generate_id(), order_id=order.id, material_id=material.id, quantity=Decimal(quantity))
        for material, quantity in items
    ]
    db.add_all(rows)
    db.commit()
    return order, rows


def test_delivery_applies_override_and_extra_items(db_session):
    ordered = _material(db_session, name="Developer 6%", stock=0)
    extra = _material(db_session, name="Developer 9%", stock=1)
    order, (item,) = _ordered_order(db_session, [(ordered, "10")])

    result = record_delivery(
        db_session,
        order.id,
        overrides={item.id: Decimal("7")},
        extra_items=[LineItem(material_id=extra.id, quantity=Decimal("2"))],
    ).data

    assert _stock(db_session, ordered.id) == Decimal("7")
    assert _stock(db_session, extra.id) == Decimal("3")
    assert [movement.type for movement in result.movements] == ["DELIVERY", "DELIVERY"]
    assert result.movements[0].note == "Order delivered"
    assert result.order.status == "delivered"
    added = [row for row in result.items if row.added_on_delivery]
    assert len(added) == 1 and added[0].material_id == extra.id


def test_delivery_zero_override_skips_line(db_session):
    first = _material(db_session, name="Foil", stock=0)
    second = _material(db_session, name="Gloves", stock=0)
    order, (first_item, second_item) = _ordered_order(db_session, [(first, "5"), (second, "4")])

    result = record_delivery(db_session, order.id, overrides={first_item.id: 0}).data

    assert [movement.material_id for movement in result.movements] == [second.id]
    assert _stock(db_session, first.id) == Decimal("0")
    assert _stock(db_session, second.id) == Decimal("4")


def test_delivery_requires_ordered_status(db_session):
    material = _material(db_session, name="Foil", stock=2)
    order, _ = _ordered_order(db_session, [(material, "5")])
    order.status = "pending"
    db_session.commit()

    outcome = record_delivery(db_session, order.id)

    assert isinstance(outcome.error, Conflict)
    assert _stock(db_session, material.id) == Decimal("2")
    db_session.expire_all()
    assert db_session.get(Order, order.id).status == "pending"


def test_manual_movements_follow_direction_and_type(db_session):
    material = _material(db_session, name="Towels", stock=1)

    credit = record_manual_movement(db_session, material.id, Decimal("4"), "in").data
    debit = record_manual_movement(db_session, material.id, Decimal("6"), "out", movement_type="SALE").data
    wrong = record_manual_movement(db_session, material.id, Decimal("1"), "in", movement_type="USAGE")

    assert credit.type == "PURCHASE" and credit.quantity == Decimal("4")
    assert debit.type == "SALE" and debit.quantity == Decimal("-6")
    assert _stock(db_session, material.id) == Decimal("-1")
    assert isinstance(wrong.error, ValidationError)
    assert wrong.error.field == "type"


def test_ledger_stays_consistent_across_mixed_operations(db_session):
    client = _client(db_session)
    colour = _material(db_session, name="INOA 5.0", stock=3, unit="g", package_size=60)
    order, (item,) = _ordered_order(db_session, [(colour, "4")])

    record_delivery(db_session, order.id, overrides={item.id: Decimal("2")})
    record_usage(db_session, [LineItem(material_id=colour.id, quantity=Decimal("0.5"))])
    record_sale(db_session, [LineItem(material_id=colour.id, quantity=Decimal("10"))])
    record_manual_movement(db_session, colour.id, Decimal("1"), "out")
    close_visit(db_session, _visit_with_materials(db_session, client, [(colour, "90", "g")]).id)

    reconciliation = reconcile_material(db_session, colour.id)
    assert reconciliation.drift == 0
    assert reconciliation.stock_quantity == Decimal("2")


def test_history_groups_one_entry_per_batch(db_session):
    first = _material(db_session, name="Shampoo", stock=10)
    second = _material(db_session, name="Mask", stock=10)
    items = [LineItem(material_id=first.id, quantity=Decimal("1")), LineItem(material_id=second.id, quantity=Decimal("1"))]

    one = record_sale(db_session, items, note="first").data
    two = record_sale(db_session, items, note="second").data

    assert len({movement.transaction_id for movement in one.movements}) == 1
    rows = list_movements(db_session, types={MovementType.SALE}, limit=100)
    groups = group_movements(rows)
    assert {group.transaction_id for group in groups} == {one.transaction.id, two.transaction.id}
    assert all(len(group.movements) == 2 for group in groups)
    assert {group.note for group in groups} == {"first", "second"}


def test_delete_material_guarded_by_movements(db_session):
    used = _material(db_session, name="Used", stock=2)
    unused = _material(db_session, name="Unused", stock=0)
    record_usage(db_session, [LineItem(material_id=used.id, quantity=Decimal("1"))])

    blocked = delete_material(db_session, used.id)
    deleted = delete_material(db_session, unused.id)

    assert isinstance(blocked.error, Conflict)
    assert isinstance(deleted, Ok)
    assert db_session.get(Material, unused.id) is None
    assert db_session.get(Material, used.id) is not None
