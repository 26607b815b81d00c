"""
Organization-scope tools, offered only to organization admins.

Same handler signature as ``freshsheet.agent.tools``. Registered with
``ToolScope.ORGANIZATION`` so the dispatcher and the manifest gate them.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlmodel import Session, col, select

from freshsheet.agent.registry import ToolScope, register_tool
from freshsheet.agent.types import ToolCallContext
from freshsheet.models.core import Restaurant
from freshsheet.models.inventory import InventoryChangeType, InventoryItem, InventoryLog
from freshsheet.models.orders import Order, OrderStatus

TIME_RANGES = ["this_week", "last_week", "this_month", "last_month", "last_30_days", "last_90_days"]
METRICS = ["spend", "waste", "orders", "inventory"]

# Orders that never turned into spend
_EXCLUDED_STATUSES = (OrderStatus.DRAFT, OrderStatus.CANCELLED)


def time_range_bounds(time_range: str, now: Optional[datetime] = None) -> tuple:
    """Return (start, end) datetimes in UTC for a named range."""
    now = now or datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    if time_range == "this_week":
        return week_start, now
    if time_range == "last_week":
        return week_start - timedelta(days=7), week_start
    if time_range == "last_month":
        previous_month_start = (month_start - timedelta(days=1)).replace(day=1)
        return previous_month_start, month_start
    if time_range == "last_30_days":
        return now - timedelta(days=30), now
    if time_range == "last_90_days":
        return now - timedelta(days=90), now
    if time_range == "this_month":
        return month_start, now
    raise ValueError(f"Unknown time range: {time_range}")


def _org_restaurants(session: Session, context: ToolCallContext, restaurant_ids: Optional[List[int]] = None) -> List[Restaurant]:
    stmt = select(Restaurant).where(Restaurant.organization_id == context.organization_id)
    if restaurant_ids:
        stmt = stmt.where(col(Restaurant.id).in_(restaurant_ids))
    return list(session.exec(stmt.order_by(Restaurant.name)).all())


def _spend_orders(session: Session, restaurant_ids: List[int], start: datetime, end: datetime) -> List[Order]:
    return list(session.exec(
        select(Order).where(
            col(Order.restaurant_id).in_(restaurant_ids),
            col(Order.status).not_in(_EXCLUDED_STATUSES),
            Order.created_at >= start,
            Order.created_at < end,
        )
    ).all())


def _check_org_admin(context: ToolCallContext) -> Optional[dict]:
    if context.organization_id is None:
        return {"error": "No organization found for this account."}
    if not context.is_org_admin:
        return {"error": "This tool is only available to organization admins."}
    return None


# ---------------------------------------------------------------------------
# org_summary
# ---------------------------------------------------------------------------
def _org_summary(session: Session, context: ToolCallContext, *, time_range: str = "this_month") -> dict:
    """Aggregate spend, orders and stock alerts across the organization."""
    denied = _check_org_admin(context)
    if denied:
        return denied

    start, end = time_range_bounds(time_range)
    restaurants = _org_restaurants(session, context)
    ids = [r.id for r in restaurants]
    orders = _spend_orders(session, ids, start, end) if ids else []
    items = list(session.exec(
        select(InventoryItem).where(col(InventoryItem.restaurant_id).in_(ids))
    ).all()) if ids else []

    spend_by_restaurant: Dict[int, float] = defaultdict(float)
    orders_by_restaurant: Counter = Counter()
    spend_by_supplier: Dict[str, float] = defaultdict(float)
    for order in orders:
        spend_by_restaurant[order.restaurant_id] += order.total
        orders_by_restaurant[order.restaurant_id] += 1
        spend_by_supplier[order.supplier.name] += order.total

    low_stock: Counter = Counter(i.restaurant_id for i in items if i.is_low_stock)
    top_suppliers = sorted(spend_by_supplier.items(), key=lambda kv: kv[1], reverse=True)[:5]

    return {
        "timeRange": time_range,
        "totalRestaurants": len(restaurants),
        "totalSpend": round(sum(spend_by_restaurant.values()), 2),
        "totalOrders": len(orders),
        "lowStockItems": sum(low_stock.values()),
        "topSuppliers": [{"name": name, "spend": round(spend, 2)} for name, spend in top_suppliers],
        "perRestaurant": [
            {
                "id": r.id,
                "name": r.name,
                "spend": round(spend_by_restaurant[r.id], 2),
                "orders": orders_by_restaurant[r.id],
                "lowStockItems": low_stock[r.id],
            }
            for r in restaurants
        ],
    }


register_tool(
    name="org_summary",
    description="Get an aggregate summary of all restaurants in your organization: total spend, total orders, low-stock alerts, top suppliers, and per-restaurant breakdown.",
    parameters={
        "type": "object",
        "properties": {
            "time_range": {"type": "string", "enum": TIME_RANGES, "description": "Time period for summary (default: this_month)"},
        },
    },
    handler=_org_summary,
    scope=ToolScope.ORGANIZATION,
)


# ---------------------------------------------------------------------------
# compare_restaurants
# ---------------------------------------------------------------------------
def _compare_restaurants(
    session: Session,
    context: ToolCallContext,
    *,
    restaurant_ids: Optional[List[int]] = None,
    metrics: Optional[List[str]] = None,
    time_range: str = "this_month",
) -> dict:
    """Side-by-side metrics per restaurant with rankings."""
    denied = _check_org_admin(context)
    if denied:
        return denied

    wanted = [m for m in (metrics or METRICS) if m in METRICS]
    start, end = time_range_bounds(time_range)
    restaurants = _org_restaurants(session, context, restaurant_ids)
    if not restaurants:
        return {"error": "No restaurants found in your organization."}

    comparison = []
    for restaurant in restaurants:
        row = {"id": restaurant.id, "name": restaurant.name}
        if "spend" in wanted or "orders" in wanted:
            orders = _spend_orders(session, [restaurant.id], start, end)
            if "spend" in wanted:
                row["spend"] = round(sum(o.total for o in orders), 2)
            if "orders" in wanted:
                row["orders"] = len(orders)
        if "waste" in wanted:
            waste_logs = session.exec(
                select(InventoryLog)
                .join(InventoryItem, InventoryLog.inventory_item_id == InventoryItem.id)
                .where(
                    InventoryItem.restaurant_id == restaurant.id,
                    InventoryLog.change_type == InventoryChangeType.WASTE,
                    InventoryLog.created_at >= start,
                    InventoryLog.created_at < end,
                )
            ).all()
            row["wasteEvents"] = len(waste_logs)
        if "inventory" in wanted:
            items = session.exec(
                select(InventoryItem).where(InventoryItem.restaurant_id == restaurant.id)
            ).all()
            row["inventoryItems"] = len(items)
            row["lowStockItems"] = sum(1 for i in items if i.is_low_stock)
        comparison.append(row)

    rankings = {}
    for metric, key, descending in (
        ("spend", "spend", True),
        ("orders", "orders", True),
        ("waste", "wasteEvents", False),
        ("inventory", "lowStockItems", False),
    ):
        if metric in wanted:
            ranked = sorted(comparison, key=lambda r: r[key], reverse=descending)
            rankings[metric] = [r["name"] for r in ranked]

    return {
        "timeRange": time_range,
        "restaurantsCompared": len(comparison),
        "comparison": comparison,
        "rankings": rankings,
    }


register_tool(
    name="compare_restaurants",
    description="Compare metrics across restaurants in your organization side-by-side. Shows spend, waste, orders, and inventory metrics per restaurant with rankings.",
    parameters={
        "type": "object",
        "properties": {
            "restaurant_ids": {
                "type": "array",
                "items": {"type": "integer"},
                "description": "Restaurant IDs to compare. If omitted, compares all org restaurants.",
            },
            "metrics": {
                "type": "array",
                "items": {"type": "string", "enum": METRICS},
                "description": "Which metrics to compare (default: all).",
            },
            "time_range": {"type": "string", "enum": TIME_RANGES, "description": "Time period for comparison (default: this_month)"},
        },
    },
    handler=_compare_restaurants,
    scope=ToolScope.ORGANIZATION,
)
