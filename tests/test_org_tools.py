from datetime import datetime, timezone

import pytest

from freshsheet.agent.org_tools import _compare_restaurants, _org_summary, time_range_bounds
from freshsheet.agent.types import ToolCallContext
from freshsheet.models.core import UserRole
from freshsheet.models.inventory import InventoryChangeType, InventoryLog
from freshsheet.models.orders import Order, OrderStatus


def _order(session, restaurant, supplier, total, status, number):
    order = Order(
        restaurant_id=restaurant.id,
        supplier_id=supplier.id,
        order_number=number,
        status=status,
        subtotal=total,
        total=total,
    )
    session.add(order)
    session.commit()
    return order


@pytest.fixture
def orders(session, world):
    _order(session, world.harbor, world.farms, 120.0, OrderStatus.DELIVERED, "ORD-1")
    _order(session, world.harbor, world.valley, 80.0, OrderStatus.CONFIRMED, "ORD-2")
    _order(session, world.oakland, world.valley, 50.0, OrderStatus.PENDING, "ORD-3")
    # Neither drafts nor cancelled orders count as spend
    _order(session, world.oakland, world.farms, 999.0, OrderStatus.DRAFT, "ORD-4")
    _order(session, world.harbor, world.farms, 999.0, OrderStatus.CANCELLED, "ORD-5")


def test_time_range_bounds():
    now = datetime(2026, 3, 18, 15, 30, tzinfo=timezone.utc)  # a Wednesday
    start, end = time_range_bounds("this_week", now)
    assert start == datetime(2026, 3, 16, tzinfo=timezone.utc)
    assert end == now

    start, end = time_range_bounds("last_month", now)
    assert start == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 1, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        time_range_bounds("forever", now)


def test_org_summary(session, world, orders):
    result = _org_summary(session, world.admin_ctx, time_range="last_30_days")
    assert result["totalRestaurants"] == 2
    assert result["totalOrders"] == 3
    assert result["totalSpend"] == 250.0
    assert result["lowStockItems"] == 2
    assert result["topSuppliers"][0] == {"name": "Valley Produce", "spend": 130.0}

    per = {r["name"]: r for r in result["perRestaurant"]}
    assert per["Harbor Kitchen"]["spend"] == 200.0
    assert per["Harbor Oakland"]["orders"] == 1


def test_org_summary_denies_staff(session, world):
    result = _org_summary(session, world.staff_ctx)
    assert result == {"error": "This tool is only available to organization admins."}


def test_org_summary_without_organization(session, world):
    ctx = ToolCallContext(user_id=world.admin.id, restaurant_id=world.harbor.id, role=UserRole.ORG_ADMIN)
    assert _org_summary(session, ctx) == {"error": "No organization found for this account."}


def test_compare_restaurants_rankings(session, world, orders):
    session.add(InventoryLog(
        inventory_item_id=world.oakland_stock.id,
        change_type=InventoryChangeType.WASTE,
        quantity=2,
        previous_quantity=3,
        new_quantity=1,
    ))
    session.commit()

    result = _compare_restaurants(session, world.admin_ctx, time_range="last_30_days")
    assert result["restaurantsCompared"] == 2
    assert result["rankings"]["spend"] == ["Harbor Kitchen", "Harbor Oakland"]
    assert result["rankings"]["waste"] == ["Harbor Kitchen", "Harbor Oakland"]

    rows = {r["name"]: r for r in result["comparison"]}
    assert rows["Harbor Oakland"]["wasteEvents"] == 1
    assert rows["Harbor Kitchen"]["inventoryItems"] == 3
    assert rows["Harbor Kitchen"]["lowStockItems"] == 1


def test_compare_restaurants_selected_metrics(session, world, orders):
    result = _compare_restaurants(
        session, world.admin_ctx,
        restaurant_ids=[world.oakland.id],
        metrics=["orders"],
        time_range="last_30_days",
    )
    assert result["comparison"] == [{"id": world.oakland.id, "name": "Harbor Oakland", "orders": 1}]
    assert list(result["rankings"]) == ["orders"]
