import pytest
from sqlmodel import select

from freshsheet.agent.tools import (
    _adjust_inventory,
    _compare_prices,
    _create_draft_order_tool,
    _create_price_alert,
    _get_inventory,
    _get_order_history,
    _get_supplier_info,
    _reorder_item,
    _search_products,
)
from freshsheet.models.catalog import PriceAlert
from freshsheet.models.inventory import InventoryChangeType, InventoryItem, InventoryLog
from freshsheet.models.orders import Order, OrderStatus


# ---------------------------------------------------------------------------
# search_products
# ---------------------------------------------------------------------------
def test_search_products_by_name(session, world):
    result = _search_products(session, world.staff_ctx, query="tomato")
    assert result["count"] == 2
    assert {p["name"] for p in result["products"]} == {"Heirloom Tomatoes", "Roma Tomatoes"}


def test_search_products_sorted_by_price(session, world):
    result = _search_products(session, world.staff_ctx, query="tomato", sort_by="price_asc")
    assert [p["price"] for p in result["products"]] == [3.99, 5.99]


def test_search_products_in_stock_only(session, world):
    result = _search_products(session, world.staff_ctx, query="garlic", in_stock_only=True)
    assert result["count"] == 1
    assert result["products"][0]["supplier"] == "Fresh Farms Co."


def test_search_products_unknown_category_raises(session, world):
    with pytest.raises(ValueError):
        _search_products(session, world.staff_ctx, category="SPACESHIPS")


# ---------------------------------------------------------------------------
# get_inventory
# ---------------------------------------------------------------------------
def test_get_inventory_scoped_to_restaurant(session, world):
    result = _get_inventory(session, world.staff_ctx)
    names = [i["name"] for i in result["items"]]
    assert names == ["Garlic", "Garlic Powder", "Heirloom Tomatoes"]
    assert "Roma Tomatoes" not in names


def test_get_inventory_low_stock_only(session, world):
    result = _get_inventory(session, world.staff_ctx, low_stock_only=True)
    assert [i["name"] for i in result["items"]] == ["Heirloom Tomatoes"]
    assert result["items"][0]["isLowStock"] is True
    assert result["items"][0]["supplier"] == "Fresh Farms Co."


# ---------------------------------------------------------------------------
# create_draft_order / get_order_history
# ---------------------------------------------------------------------------
def test_create_draft_order_totals(session, world):
    result = _create_draft_order_tool(
        session, world.staff_ctx,
        supplier_id=world.farms.id,
        items=[{"product_id": world.heirloom.id, "quantity": 10}],
        delivery_notes="Back door",
    )
    assert result["success"] is True
    order = result["order"]
    assert order["status"] == "DRAFT"
    assert order["subtotal"] == 59.9
    assert order["tax"] == round(59.9 * 0.0825, 2)
    assert order["deliveryFee"] == 25.0
    assert order["total"] == round(59.9 + 59.9 * 0.0825 + 25.0, 2)
    assert order["orderNumber"].startswith("ORD-")
    assert order["items"] == [{"product": "Heirloom Tomatoes", "quantity": 10, "subtotal": 59.9}]


def test_create_draft_order_rejects_foreign_product(session, world):
    result = _create_draft_order_tool(
        session, world.staff_ctx,
        supplier_id=world.farms.id,
        items=[{"product_id": world.roma.id, "quantity": 2}],
    )
    assert "error" in result
    assert session.exec(select(Order)).all() == []


def test_create_draft_order_unknown_supplier(session, world):
    result = _create_draft_order_tool(session, world.staff_ctx, supplier_id=9999, items=[])
    assert result == {"error": "Supplier not found"}


def test_order_history_newest_first(session, world):
    for qty in (1, 2):
        _create_draft_order_tool(
            session, world.staff_ctx,
            supplier_id=world.farms.id,
            items=[{"product_id": world.garlic_farms.id, "quantity": qty}],
        )
    result = _get_order_history(session, world.staff_ctx)
    assert result["count"] == 2
    assert result["orders"][0]["items"][0]["quantity"] == 2
    assert result["orders"][0]["itemCount"] == 1

    filtered = _get_order_history(session, world.staff_ctx, status="DELIVERED")
    assert filtered["count"] == 0


# ---------------------------------------------------------------------------
# compare_prices / get_supplier_info
# ---------------------------------------------------------------------------
def test_compare_prices(session, world):
    result = _compare_prices(session, world.staff_ctx, product_name="garlic")
    assert [c["price"] for c in result["comparisons"]] == [4.49, 4.99]
    assert result["summary"]["lowestPrice"] == 4.49
    assert result["summary"]["potentialSavings"] == 0.5
    assert result["summary"]["supplierCount"] == 2


def test_compare_prices_no_match(session, world):
    result = _compare_prices(session, world.staff_ctx, product_name="truffle")
    assert "message" in result


def test_get_supplier_info_by_name(session, world):
    result = _get_supplier_info(session, world.staff_ctx, supplier_name="valley")
    assert result["id"] == world.valley.id
    assert result["location"] == "Fresno, CA"
    assert result["totalProducts"] == 2
    assert result["totalOrders"] == 0


def test_get_supplier_info_missing(session, world):
    assert _get_supplier_info(session, world.staff_ctx) == {"error": "Supplier not found"}


# ---------------------------------------------------------------------------
# create_price_alert
# ---------------------------------------------------------------------------
def test_price_alert_once_per_product(session, world):
    first = _create_price_alert(
        session, world.staff_ctx, product_id=world.heirloom.id, alert_type="PRICE_DROP", target_price=4.5,
    )
    assert first["success"] is True
    assert "drops below $4.50" in first["message"]

    second = _create_price_alert(
        session, world.staff_ctx, product_id=world.heirloom.id, alert_type="PRICE_DROP", target_price=4.0,
    )
    assert second["error"] == "An active alert already exists for this product"
    assert second["existingAlertId"] == first["alert"]["id"]
    assert len(session.exec(select(PriceAlert)).all()) == 1


# ---------------------------------------------------------------------------
# adjust_inventory
# ---------------------------------------------------------------------------
def test_adjust_inventory_usage_logs_change(session, world):
    result = _adjust_inventory(
        session, world.staff_ctx, item_name="heirloom", quantity=3, change_type="USED",
    )
    assert result["previousQuantity"] == 4
    assert result["newQuantity"] == 1
    assert result["belowParLevel"] is True

    log = session.exec(select(InventoryLog)).one()
    assert log.change_type == InventoryChangeType.USED
    assert log.previous_quantity == 4
    assert log.new_quantity == 1
    assert log.created_by_id == world.staff.id


def test_adjust_inventory_clamps_at_zero(session, world):
    result = _adjust_inventory(
        session, world.staff_ctx, item_name="heirloom", quantity=50, change_type="WASTE",
    )
    assert result["newQuantity"] == 0


def test_adjust_inventory_count_sets_quantity(session, world):
    result = _adjust_inventory(
        session, world.staff_ctx, item_name="heirloom", quantity=12, change_type="COUNT",
    )
    assert result["newQuantity"] == 12
    assert result["belowParLevel"] is False
    item = session.get(InventoryItem, world.tomatoes_stock.id)
    assert item.current_quantity == 12


def test_adjust_inventory_ambiguous_name(session, world):
    result = _adjust_inventory(session, world.staff_ctx, item_name="garlic", quantity=1, change_type="USED")
    assert result["error"] == "Multiple items matched. Please be more specific."
    assert {m["name"] for m in result["matches"]} == {"Garlic", "Garlic Powder"}


def test_adjust_inventory_other_restaurant_not_visible(session, world):
    result = _adjust_inventory(session, world.staff_ctx, item_name="roma", quantity=1, change_type="RECEIVED")
    assert "No inventory item found" in result["error"]


# ---------------------------------------------------------------------------
# reorder_item
# ---------------------------------------------------------------------------
def test_reorder_repeats_last_purchase(session, world):
    _create_draft_order_tool(
        session, world.staff_ctx,
        supplier_id=world.farms.id,
        items=[{"product_id": world.heirloom.id, "quantity": 8}],
    )
    result = _reorder_item(session, world.staff_ctx, item_name="heirloom")
    assert result["success"] is True
    assert result["order"]["items"][0]["quantity"] == 8
    assert result["order"]["supplier"] == "Fresh Farms Co."

    orders = session.exec(select(Order)).all()
    assert len(orders) == 2
    assert all(o.status == OrderStatus.DRAFT for o in orders)


def test_reorder_without_history(session, world):
    result = _reorder_item(session, world.staff_ctx, item_name="heirloom")
    assert "No previous orders" in result["error"]
