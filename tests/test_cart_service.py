from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.errors import InsufficientInventory, InvalidQuantity, NotFound
from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.models.product import Product
from storefront.services.cart_service import CartService
from storefront.utils.clock import utcnow


def cart_lines(session_factory, user_id):
    with session_factory() as s:
        cart = s.query(Cart).filter(Cart.user_id == user_id).first()
        if cart is None:
            return None
        return [(it.product_id, it.variant_id, it.quantity, it.price_cents) for it in cart.items]


def set_stock(session_factory, product_id, quantity):
    with session_factory() as s:
        s.get(Product, product_id).available_quantity = quantity
        s.commit()


def age_cart(session_factory, user_id, days):
    with session_factory() as s:
        cart = s.query(Cart).filter(Cart.user_id == user_id).one()
        cart.updated_at = utcnow() - timedelta(days=days)
        s.commit()


def test_get_or_create_cart_is_idempotent(db, catalog):
    svc = CartService(db)
    first = svc.get_or_create_cart("u1")
    second = svc.get_or_create_cart("u1")
    assert first.id == second.id
    assert second.items == []


def test_add_to_cart_creates_line_priced_by_quantity(db, catalog, session_factory):
    svc = CartService(db)
    out = svc.add_to_cart("u1", catalog["TEA-100"], quantity=2)
    assert out.quantity == 2
    assert out.unit_price_cents == 30000
    assert out.price_cents == 60000
    assert out.available_quantity == 5
    assert cart_lines(session_factory, "u1") == [(catalog["TEA-100"], None, 2, 60000)]


def test_add_to_cart_merges_and_reprices(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=1)
    out = svc.add_to_cart("u1", catalog["TEA-100"], quantity=3)
    assert out.quantity == 4
    assert out.price_cents == 120000
    assert len(cart_lines(session_factory, "u1")) == 1


def test_add_to_cart_rejects_combined_quantity_over_stock(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=4)
    with pytest.raises(InsufficientInventory) as exc:
        svc.add_to_cart("u1", catalog["TEA-100"], quantity=2)
    assert exc.value.available == 5
    assert exc.value.requested == 6
    assert cart_lines(session_factory, "u1") == [(catalog["TEA-100"], None, 4, 120000)]


def test_out_of_stock_product_cannot_be_added(db, catalog):
    with pytest.raises(InsufficientInventory):
        CartService(db).add_to_cart("u1", catalog["GONE-1"], quantity=1)


def test_variant_availability_is_min_of_product_and_variant(db, catalog):
    svc = CartService(db)
    shirt, medium = catalog["SHIRT-1"], catalog["SHIRT-1/M"]
    out = svc.add_to_cart("u1", shirt, quantity=3, variant_id=medium)
    assert out.available_quantity == 3
    with pytest.raises(InsufficientInventory):
        svc.add_to_cart("u1", shirt, quantity=1, variant_id=medium)


def test_variant_surcharge_is_part_of_unit_price(db, catalog):
    out = CartService(db).add_to_cart(
        "u1", catalog["SHIRT-1"], quantity=2, variant_id=catalog["SHIRT-1/XL"]
    )
    assert out.unit_price_cents == 25000
    assert out.price_cents == 50000
    assert out.variant_label == "Size: XL"


def test_unknown_product_and_foreign_variant_are_not_found(db, catalog):
    svc = CartService(db)
    with pytest.raises(NotFound):
        svc.add_to_cart("u1", 9999, quantity=1)
    with pytest.raises(NotFound):
        svc.add_to_cart("u1", catalog["TEA-100"], quantity=1, variant_id=catalog["SHIRT-1/M"])


def test_quantity_below_one_is_invalid(db, catalog):
    with pytest.raises(InvalidQuantity):
        CartService(db).add_to_cart("u1", catalog["TEA-100"], quantity=0)


def test_remove_decrements_then_deletes_line_and_cart(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=3)
    svc.add_to_cart("u1", catalog["MUG-1"], quantity=1)

    res = svc.remove_from_cart("u1", catalog["TEA-100"], quantity=1)
    assert res.item.quantity == 2
    assert not res.line_deleted

    res = svc.remove_from_cart("u1", catalog["TEA-100"], quantity=5)
    assert res.line_deleted and not res.cart_deleted

    res = svc.remove_from_cart("u1", catalog["MUG-1"], quantity=1)
    assert res.line_deleted and res.cart_deleted
    assert cart_lines(session_factory, "u1") is None


def test_remove_missing_line_is_not_found(db, catalog):
    svc = CartService(db)
    with pytest.raises(NotFound):
        svc.remove_from_cart("u1", catalog["TEA-100"])
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=1)
    with pytest.raises(NotFound):
        svc.remove_from_cart("u1", catalog["MUG-1"])


def test_update_quantities_is_all_or_nothing(db, catalog, session_factory):
    svc = CartService(db)
    tea = svc.add_to_cart("u1", catalog["TEA-100"], quantity=1)
    mug = svc.add_to_cart("u1", catalog["MUG-1"], quantity=1)

    out = svc.update_quantities("u1", [{"item_id": tea.id, "quantity": 3}])
    assert [l.quantity for l in out.items] == [3, 1]
    assert out.items[0].price_cents == 90000

    with pytest.raises(InsufficientInventory):
        svc.update_quantities(
            "u1",
            [{"item_id": tea.id, "quantity": 2}, {"item_id": mug.id, "quantity": 2}],
        )
    assert [q for _, _, q, _ in cart_lines(session_factory, "u1")] == [3, 1]

    with pytest.raises(InvalidQuantity):
        svc.update_quantities("u1", [{"item_id": tea.id, "quantity": 100}])


def test_add_items_rolls_back_the_whole_batch(db, catalog, session_factory):
    svc = CartService(db)
    with pytest.raises(InsufficientInventory):
        svc.add_items(
            "u1",
            [
                {"product_id": catalog["TEA-100"], "quantity": 2},
                {"product_id": catalog["MUG-1"], "quantity": 2},
            ],
        )
    assert cart_lines(session_factory, "u1") is None

    out = svc.add_items(
        "u1",
        [
            {"product_id": catalog["TEA-100"], "quantity": 2},
            {"product_id": catalog["MUG-1"], "quantity": 1},
        ],
    )
    assert out.metadata.item_count == 3
    assert out.metadata.unique_item_count == 2


def test_get_cart_reports_savings_and_availability(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=2)
    svc.add_to_cart("u1", catalog["MUG-1"], quantity=1)
    set_stock(session_factory, catalog["MUG-1"], 0)

    cart = svc.get_cart("u1")
    assert cart.metadata.subtotal_cents == 70000
    assert cart.metadata.original_subtotal_cents == 80000
    assert cart.metadata.total_savings_cents == 10000
    assert cart.metadata.has_unavailable_items
    tea, mug = cart.items
    assert tea.is_available and not tea.max_quantity_reached
    assert not mug.is_available and mug.max_quantity_reached


def test_get_cart_without_cart_is_empty(db, catalog):
    cart = CartService(db).get_cart("nobody")
    assert cart.id is None
    assert cart.items == []


def test_validate_inventory_reports_short_lines(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=4)
    assert svc.validate_inventory("u1").is_valid

    set_stock(session_factory, catalog["TEA-100"], 2)
    report = svc.validate_inventory("u1")
    assert not report.is_valid
    [bad] = report.invalid_items
    assert bad.requested_quantity == 4
    assert bad.available_quantity == 2


def test_clear_cart(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=1)
    assert svc.clear_cart("u1") is True
    assert svc.clear_cart("u1") is False
    assert cart_lines(session_factory, "u1") is None


def test_stale_cart_is_dropped_on_read(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["TEA-100"], quantity=1)
    age_cart(session_factory, "u1", 31)
    assert svc.get_cart("u1").items == []
    assert cart_lines(session_factory, "u1") is None


def test_purge_stale_carts_only_removes_old_ones(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("old", catalog["TEA-100"], quantity=1)
    svc.add_to_cart("fresh", catalog["TEA-100"], quantity=1)
    age_cart(session_factory, "old", 45)

    assert svc.purge_stale_carts() == ["old"]
    assert cart_lines(session_factory, "old") is None
    assert cart_lines(session_factory, "fresh") is not None
    with session_factory() as s:
        assert s.query(CartItem).count() == 1


def test_concurrent_adds_never_exceed_stock(catalog, session_factory):
    product_id = catalog["TEA-100"]

    def add_one(_):
        with session_factory() as s:
            try:
                CartService(s).add_to_cart("u1", product_id, quantity=1)
                return "ok"
            except InsufficientInventory:
                return "short"

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(add_one, range(8)))

    assert results.count("ok") == 5
    assert results.count("short") == 3
    assert cart_lines(session_factory, "u1") == [(product_id, None, 5, 150000)]


def test_duplicate_plain_product_line_is_rejected_by_the_schema(db, catalog, session_factory):
    CartService(db).add_to_cart("u1", catalog["TEA-100"], quantity=1)
    with session_factory() as s:
        cart = s.query(Cart).filter(Cart.user_id == "u1").one()
        s.add(CartItem(cart_id=cart.id, product_id=catalog["TEA-100"], variant_id=None, quantity=1))
        with pytest.raises(IntegrityError):
            s.commit()


def test_distinct_variants_of_one_product_are_separate_lines(db, catalog, session_factory):
    svc = CartService(db)
    svc.add_to_cart("u1", catalog["SHIRT-1"], quantity=1, variant_id=catalog["SHIRT-1/M"])
    svc.add_to_cart("u1", catalog["SHIRT-1"], quantity=1, variant_id=catalog["SHIRT-1/XL"])
    svc.add_to_cart("u1", catalog["SHIRT-1"], quantity=1)
    assert sorted(
        (pid, vid or 0) for pid, vid, _q, _p in cart_lines(session_factory, "u1")
    ) == sorted([
        (catalog["SHIRT-1"], catalog["SHIRT-1/M"]),
        (catalog["SHIRT-1"], catalog["SHIRT-1/XL"]),
        (catalog["SHIRT-1"], 0),
    ])
