from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from pos_backend.errors import NotFound, ValidationError
from pos_backend.models import Order, OrderProduct
from pos_backend.orders import collapse_quantities, parse_product_ids


def test_parse_product_ids():
    assert parse_product_ids("[1, 2, 2]") == [1, 2, 2]
    for raw in ["", "nope", "{\"a\": 1}", "3"]:
        with pytest.raises(ValidationError):
            parse_product_ids(raw)


def test_collapse_quantities_keeps_first_seen_order():
    assert list(collapse_quantities([3, 1, 3, 2, 1, 3]).items()) == [(3, 3), (1, 2), (2, 1)]


@pytest.mark.parametrize("bad", [[], [True], ["1"], [1.5], [None]])
def test_collapse_quantities_rejects_bad_input(bad):
    with pytest.raises(ValidationError):
        collapse_quantities(bad)


def test_create_order_rejects_empty(repo, db):
    with pytest.raises(ValidationError):
        repo.create_order([])
    assert db.query(Order).count() == 0


def test_create_order_same_product_twice(repo, products):
    order = repo.create_order([products["espresso"], products["espresso"]])
    assert len(order.line_items) == 1
    assert order.line_items[0].quantity == 2
    assert order.total == Decimal("5.00")
    assert order.cancelled is False
    assert len(order.public_id) == 32


def test_create_order_mixed(repo, products):
    order = repo.create_order([products["bagel"], products["espresso"], products["bagel"]])
    assert [(item.product.name, item.quantity) for item in order.line_items] == [("Bagel", 2), ("Espresso", 1)]
    assert order.total == Decimal("11.00")


def test_create_order_unknown_product_inserts_nothing(repo, db, products):
    with pytest.raises(ValidationError) as excinfo:
        repo.create_order([products["espresso"], 9999])
    assert "9999" in excinfo.value.message
    assert db.query(Order).count() == 0
    assert db.query(OrderProduct).count() == 0


def test_get_order_not_found(repo):
    with pytest.raises(NotFound):
        repo.get_order(42)
    with pytest.raises(NotFound):
        repo.get_by_public_id("0" * 32)


def test_get_by_public_id(repo, products):
    order = repo.create_order([products["croissant"]])
    assert repo.get_by_public_id(order.public_id).id == order.id


def test_public_ids_are_unique(repo, products):
    ids = {repo.create_order([products["croissant"]]).public_id for _ in range(5)}
    assert len(ids) == 5


def test_list_orders_newest_first_and_active_filter(repo, products):
    first = repo.create_order([products["espresso"]])
    second = repo.create_order([products["bagel"]])
    third = repo.create_order([products["croissant"]])
    repo.cancel_order(second.id)

    assert [o.id for o in repo.list_orders()] == [third.id, second.id, first.id]
    assert [o.id for o in repo.list_orders(active_only=True)] == [third.id, first.id]


def test_cancel_is_one_way(repo, products):
    order = repo.create_order([products["espresso"]])
    assert repo.cancel_order(order.id).cancelled is True
    assert repo.cancel_order(order.id).cancelled is True
    assert repo.get_order(order.id).cancelled is True


def test_cancel_missing_order(repo):
    with pytest.raises(NotFound):
        repo.cancel_order(7)


def test_parse_product_ids_deep_nesting():
    with pytest.raises(ValidationError):
        parse_product_ids("[" * 100000 + "]" * 100000)


@pytest.mark.parametrize("bad", [[0], [-1], [2 ** 63], [2 ** 70]])
def test_collapse_quantities_rejects_out_of_range_ids(bad):
    with pytest.raises(ValidationError):
        collapse_quantities(bad)


def test_create_order_with_huge_product_id(repo, db, products):
    with pytest.raises(ValidationError):
        repo.create_order([products["bagel"], 2 ** 70])
    assert db.query(Order).count() == 0


@pytest.mark.parametrize("order_id", [0, -3, 2 ** 63, 2 ** 70])
def test_out_of_range_order_ids_are_not_found(repo, order_id):
    with pytest.raises(NotFound):
        repo.get_order(order_id)
    with pytest.raises(NotFound):
        repo.cancel_order(order_id)


def test_failed_commit_leaves_no_rows(app, repo, db, products):
    # Break the second line item during flush, after the order row is written
    def zero_bagel_quantity(session, flush_context, instances):
        for obj in session.new:
            if isinstance(obj, OrderProduct) and obj.product_id == products["bagel"]:
                obj.quantity = 0

    event.listen(db, "before_flush", zero_bagel_quantity)
    try:
        with pytest.raises(IntegrityError):
            repo.create_order([products["espresso"], products["bagel"]])
    finally:
        event.remove(db, "before_flush", zero_bagel_quantity)

    fresh = app.state.session_factory()
    try:
        assert fresh.query(Order).count() == 0
        assert fresh.query(OrderProduct).count() == 0
    finally:
        fresh.close()

    order = repo.create_order([products["espresso"], products["bagel"]])
    assert [item.quantity for item in order.line_items] == [1, 1]
