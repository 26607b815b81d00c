"""
Tool implementations for the procurement assistant.

Each tool function signature: handler(session, context, **kwargs) -> dict

Rules:
- The model never writes SQL or touches the database directly.
- Business failures come back as ``{"error": ...}`` so the model can react.
- Orders are only ever created as DRAFT; the operator submits them.
"""
import secrets
import time
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, func, select

from freshsheet.agent.registry import register_tool
from freshsheet.agent.types import ToolCallContext
from freshsheet.config import settings
from freshsheet.logging import logger
from freshsheet.models.catalog import AlertType, PriceAlert, ProductCategory, Supplier, SupplierProduct
from freshsheet.models.inventory import InventoryChangeType, InventoryItem, InventoryLog
from freshsheet.models.orders import Order, OrderItem, OrderStatus

CATEGORY_VALUES = [c.value for c in ProductCategory]


def _money(value: float) -> float:
    return round(float(value), 2)


def _order_number() -> str:
    # base36 millisecond timestamp plus a random suffix
    stamp = int(time.time() * 1000)
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    encoded = ""
    while stamp:
        stamp, rem = divmod(stamp, 36)
        encoded = digits[rem] + encoded
    return f"ORD-{encoded}-{secrets.token_hex(2).upper()}"


def _create_draft_order(
    session: Session,
    context: ToolCallContext,
    supplier: Supplier,
    lines: List[tuple],
    delivery_notes: Optional[str] = None,
) -> Order:
    """Persist a DRAFT order. ``lines`` holds (product, quantity) pairs."""
    subtotal = sum(product.price * quantity for product, quantity in lines)
    tax = subtotal * settings.SALES_TAX_RATE
    delivery_fee = supplier.delivery_fee or 0.0

    order = Order(
        restaurant_id=context.restaurant_id,
        supplier_id=supplier.id,
        created_by_id=context.user_id,
        order_number=_order_number(),
        status=OrderStatus.DRAFT,
        subtotal=_money(subtotal),
        tax=_money(tax),
        delivery_fee=_money(delivery_fee),
        total=_money(subtotal + tax + delivery_fee),
        delivery_notes=delivery_notes,
    )
    session.add(order)
    session.flush()
    for product, quantity in lines:
        session.add(OrderItem(
            order_id=order.id,
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
            subtotal=_money(product.price * quantity),
        ))
    session.commit()
    session.refresh(order)
    logger.info(f"Draft order {order.order_number} created for restaurant {context.restaurant_id}")
    return order


def _order_summary(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status.value,
        "supplier": order.supplier.name if order.supplier else None,
        "subtotal": order.subtotal,
        "tax": order.tax,
        "deliveryFee": order.delivery_fee,
        "total": order.total,
        "items": [
            {
                "product": item.product.name if item.product else None,
                "quantity": item.quantity,
                "subtotal": item.subtotal,
            }
            for item in order.items
        ],
    }


# ---------------------------------------------------------------------------
# search_products
# ---------------------------------------------------------------------------
def _search_products(
    session: Session,
    context: ToolCallContext,
    *,
    query: Optional[str] = None,
    category: Optional[str] = None,
    supplier_id: Optional[int] = None,
    in_stock_only: bool = False,
    sort_by: str = "name",
) -> dict:
    """Search supplier products, at most 20 results."""
    stmt = select(SupplierProduct)
    if query:
        stmt = stmt.where(col(SupplierProduct.name).ilike(f"%{query}%"))
    if category:
        stmt = stmt.where(SupplierProduct.category == ProductCategory(category))
    if supplier_id is not None:
        stmt = stmt.where(SupplierProduct.supplier_id == supplier_id)
    if in_stock_only:
        stmt = stmt.where(SupplierProduct.in_stock == True)  # noqa: E712

    if sort_by == "price_asc":
        stmt = stmt.order_by(col(SupplierProduct.price).asc())
    elif sort_by == "price_desc":
        stmt = stmt.order_by(col(SupplierProduct.price).desc())
    else:
        stmt = stmt.order_by(SupplierProduct.name)

    products = session.exec(stmt.limit(20)).all()
    return {
        "count": len(products),
        "products": [
            {
                "id": p.id,
                "name": p.name,
                "category": p.category.value,
                "price": p.price,
                "unit": p.unit,
                "inStock": p.in_stock,
                "supplier": p.supplier.name,
                "supplierId": p.supplier_id,
            }
            for p in products
        ],
    }


register_tool(
    name="search_products",
    description="Search for products available from suppliers. Use this to find specific ingredients, compare options, or browse by category.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search term for product name"},
            "category": {"type": "string", "enum": CATEGORY_VALUES, "description": "Filter by product category"},
            "supplier_id": {"type": "integer", "description": "Filter by specific supplier ID"},
            "in_stock_only": {"type": "boolean", "description": "Only show in-stock products"},
            "sort_by": {"type": "string", "enum": ["price_asc", "price_desc", "name"], "description": "Sort results"},
        },
    },
    handler=_search_products,
)


# ---------------------------------------------------------------------------
# get_inventory
# ---------------------------------------------------------------------------
def _get_inventory(
    session: Session,
    context: ToolCallContext,
    *,
    category: Optional[str] = None,
    low_stock_only: bool = False,
) -> dict:
    """List the restaurant's inventory with stock and par levels."""
    stmt = select(InventoryItem).where(InventoryItem.restaurant_id == context.restaurant_id)
    if category:
        stmt = stmt.where(InventoryItem.category == ProductCategory(category))
    items = session.exec(stmt.order_by(InventoryItem.name)).all()

    if low_stock_only:
        items = [i for i in items if i.is_low_stock]

    return {
        "count": len(items),
        "items": [
            {
                "id": i.id,
                "name": i.name,
                "category": i.category.value,
                "currentQuantity": i.current_quantity,
                "unit": i.unit,
                "parLevel": i.par_level,
                "isLowStock": i.is_low_stock,
                "supplier": i.supplier_product.supplier.name if i.supplier_product else None,
            }
            for i in items
        ],
    }


register_tool(
    name="get_inventory",
    description="Get the restaurant's current inventory items, including stock levels and par levels.",
    parameters={
        "type": "object",
        "properties": {
            "category": {"type": "string", "enum": CATEGORY_VALUES, "description": "Filter by category"},
            "low_stock_only": {"type": "boolean", "description": "Only show items at or below par level"},
        },
    },
    handler=_get_inventory,
)


# ---------------------------------------------------------------------------
# get_order_history
# ---------------------------------------------------------------------------
def _get_order_history(
    session: Session,
    context: ToolCallContext,
    *,
    status: Optional[str] = None,
    supplier_id: Optional[int] = None,
    limit: int = 10,
) -> dict:
    """Recent orders for the restaurant, newest first."""
    stmt = select(Order).where(Order.restaurant_id == context.restaurant_id)
    if status:
        stmt = stmt.where(Order.status == OrderStatus(status))
    if supplier_id is not None:
        stmt = stmt.where(Order.supplier_id == supplier_id)
    orders = session.exec(
        stmt.order_by(col(Order.created_at).desc(), col(Order.id).desc()).limit(int(limit))
    ).all()

    return {
        "count": len(orders),
        "orders": [
            {**_order_summary(o), "itemCount": len(o.items), "createdAt": o.created_at.isoformat()}
            for o in orders
        ],
    }


register_tool(
    name="get_order_history",
    description="Get recent orders for the restaurant. Use this to check order status, find past orders, or review purchasing patterns.",
    parameters={
        "type": "object",
        "properties": {
            "status": {"type": "string", "enum": [s.value for s in OrderStatus], "description": "Filter by order status"},
            "supplier_id": {"type": "integer", "description": "Filter by supplier"},
            "limit": {"type": "integer", "description": "Max number of orders to return (default 10)"},
        },
    },
    handler=_get_order_history,
)


# ---------------------------------------------------------------------------
# create_draft_order
# ---------------------------------------------------------------------------
def _create_draft_order_tool(
    session: Session,
    context: ToolCallContext,
    *,
    supplier_id: int,
    items: List[Dict[str, Any]],
    delivery_notes: Optional[str] = None,
) -> dict:
    """Create a DRAFT order from explicit product lines."""
    supplier = session.get(Supplier, supplier_id)
    if not supplier:
        return {"error": "Supplier not found"}
    if not items:
        return {"error": "An order needs at least one item"}

    lines = []
    for line in items:
        product = session.get(SupplierProduct, line.get("product_id"))
        if not product:
            return {"error": f"Product not found: {line.get('product_id')}"}
        if product.supplier_id != supplier.id:
            return {"error": f"Product {product.id} is not sold by {supplier.name}"}
        quantity = float(line.get("quantity", 0))
        if quantity <= 0:
            return {"error": f"Quantity for product {product.id} must be positive"}
        lines.append((product, quantity))

    order = _create_draft_order(session, context, supplier, lines, delivery_notes)
    return {
        "success": True,
        "order": _order_summary(order),
        "message": "Draft order created. Go to the Orders page to review and submit it.",
    }


register_tool(
    name="create_draft_order",
    description="Create a new draft order. The order will NOT be submitted automatically - the user must review and submit it.",
    parameters={
        "type": "object",
        "properties": {
            "supplier_id": {"type": "integer", "description": "The supplier to order from"},
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "product_id": {"type": "integer"},
                        "quantity": {"type": "number"},
                    },
                    "required": ["product_id", "quantity"],
                },
                "description": "List of items with product ID and quantity",
            },
            "delivery_notes": {"type": "string", "description": "Optional delivery instructions"},
        },
        "required": ["supplier_id", "items"],
    },
    handler=_create_draft_order_tool,
)


# ---------------------------------------------------------------------------
# compare_prices
# ---------------------------------------------------------------------------
def _compare_prices(
    session: Session,
    context: ToolCallContext,
    *,
    product_name: str,
    category: Optional[str] = None,
) -> dict:
    """Compare one product across suppliers, cheapest first."""
    stmt = select(SupplierProduct).where(col(SupplierProduct.name).ilike(f"%{product_name}%"))
    if category:
        stmt = stmt.where(SupplierProduct.category == ProductCategory(category))
    products = session.exec(stmt.order_by(col(SupplierProduct.price).asc())).all()

    if not products:
        return {"message": "No matching products found for comparison."}

    prices = [p.price for p in products]
    return {
        "productName": product_name,
        "comparisons": [
            {
                "id": p.id,
                "name": p.name,
                "price": p.price,
                "unit": p.unit,
                "inStock": p.in_stock,
                "supplier": p.supplier.name,
                "supplierId": p.supplier_id,
            }
            for p in products
        ],
        "summary": {
            "lowestPrice": min(prices),
            "highestPrice": max(prices),
            "averagePrice": _money(sum(prices) / len(prices)),
            "supplierCount": len({p.supplier_id for p in products}),
            "potentialSavings": _money(max(prices) - min(prices)),
        },
    }


register_tool(
    name="compare_prices",
    description="Compare prices for a product across different suppliers. Helps find the best deals.",
    parameters={
        "type": "object",
        "properties": {
            "product_name": {"type": "string", "description": "Name of the product to compare"},
            "category": {"type": "string", "enum": CATEGORY_VALUES, "description": "Product category to narrow search"},
        },
        "required": ["product_name"],
    },
    handler=_compare_prices,
)


# ---------------------------------------------------------------------------
# get_supplier_info
# ---------------------------------------------------------------------------
def _get_supplier_info(
    session: Session,
    context: ToolCallContext,
    *,
    supplier_id: Optional[int] = None,
    supplier_name: Optional[str] = None,
) -> dict:
    """Supplier details with a sample of their catalogue."""
    supplier = None
    if supplier_id is not None:
        supplier = session.get(Supplier, supplier_id)
    elif supplier_name:
        supplier = session.exec(
            select(Supplier).where(col(Supplier.name).ilike(f"%{supplier_name}%"))
        ).first()

    if not supplier:
        return {"error": "Supplier not found"}

    product_count = session.exec(
        select(func.count(SupplierProduct.id)).where(SupplierProduct.supplier_id == supplier.id)
    ).one()
    order_count = session.exec(
        select(func.count(Order.id)).where(Order.supplier_id == supplier.id)
    ).one()
    sample = session.exec(
        select(SupplierProduct)
        .where(SupplierProduct.supplier_id == supplier.id)
        .order_by(SupplierProduct.name)
        .limit(10)
    ).all()

    return {
        "id": supplier.id,
        "name": supplier.name,
        "description": supplier.description,
        "email": supplier.email,
        "phone": supplier.phone,
        "location": ", ".join(part for part in (supplier.city, supplier.state) if part),
        "minimumOrder": supplier.minimum_order,
        "deliveryFee": supplier.delivery_fee,
        "leadTimeDays": supplier.lead_time_days,
        "rating": supplier.rating,
        "reviewCount": supplier.review_count,
        "totalProducts": product_count,
        "totalOrders": order_count,
        "sampleProducts": [
            {"id": p.id, "name": p.name, "price": p.price, "unit": p.unit, "category": p.category.value}
            for p in sample
        ],
    }


register_tool(
    name="get_supplier_info",
    description="Get detailed information about a supplier including their products, ratings, and delivery terms.",
    parameters={
        "type": "object",
        "properties": {
            "supplier_id": {"type": "integer", "description": "Supplier ID"},
            "supplier_name": {"type": "string", "description": "Supplier name to search for"},
        },
    },
    handler=_get_supplier_info,
)


# ---------------------------------------------------------------------------
# create_price_alert
# ---------------------------------------------------------------------------
def _create_price_alert(
    session: Session,
    context: ToolCallContext,
    *,
    product_id: int,
    alert_type: str,
    target_price: float,
) -> dict:
    """Create a price alert; one active alert per user and product."""
    product = session.get(SupplierProduct, product_id)
    if not product:
        return {"error": "Product not found"}

    existing = session.exec(
        select(PriceAlert).where(
            PriceAlert.user_id == context.user_id,
            PriceAlert.product_id == product_id,
            PriceAlert.is_active == True,  # noqa: E712
        )
    ).first()
    if existing:
        return {"error": "An active alert already exists for this product", "existingAlertId": existing.id}

    kind = AlertType(alert_type)
    alert = PriceAlert(user_id=context.user_id, product_id=product_id, alert_type=kind, target_price=target_price)
    session.add(alert)
    session.commit()
    session.refresh(alert)

    direction = {
        AlertType.PRICE_DROP: "drops below",
        AlertType.PRICE_INCREASE: "rises above",
    }.get(kind, "crosses")
    return {
        "success": True,
        "alert": {
            "id": alert.id,
            "alertType": kind.value,
            "targetPrice": alert.target_price,
            "product": product.name,
            "currentPrice": product.price,
            "supplier": product.supplier.name,
        },
        "message": f"Price alert created for {product.name}. You'll be notified when the price {direction} ${target_price:.2f}.",
    }


register_tool(
    name="create_price_alert",
    description="Set up a price alert to be notified when a product's price changes.",
    parameters={
        "type": "object",
        "properties": {
            "product_id": {"type": "integer", "description": "Product to monitor"},
            "alert_type": {"type": "string", "enum": [a.value for a in AlertType], "description": "Type of price alert"},
            "target_price": {"type": "number", "description": "Target price threshold"},
        },
        "required": ["product_id", "alert_type", "target_price"],
    },
    handler=_create_price_alert,
)


# ---------------------------------------------------------------------------
# adjust_inventory
# ---------------------------------------------------------------------------
def _adjust_inventory(
    session: Session,
    context: ToolCallContext,
    *,
    item_name: str,
    quantity: float,
    change_type: str,
    notes: Optional[str] = None,
) -> dict:
    """Apply a usage, waste, delivery or count to one inventory item."""
    matches = session.exec(
        select(InventoryItem).where(
            InventoryItem.restaurant_id == context.restaurant_id,
            col(InventoryItem.name).ilike(f"%{item_name}%"),
        )
    ).all()

    if not matches:
        return {
            "error": f'No inventory item found matching "{item_name}". Check the name and try again, '
                     "or use get_inventory to see available items.",
        }
    if len(matches) > 1:
        return {
            "error": "Multiple items matched. Please be more specific.",
            "matches": [
                {"id": m.id, "name": m.name, "category": m.category.value,
                 "currentQuantity": m.current_quantity, "unit": m.unit}
                for m in matches
            ],
        }

    item = matches[0]
    kind = InventoryChangeType(change_type)
    previous = item.current_quantity
    if kind == InventoryChangeType.COUNT:
        new_quantity = float(quantity)
    elif kind in (InventoryChangeType.USED, InventoryChangeType.WASTE):
        new_quantity = previous - abs(quantity)
    else:
        new_quantity = previous + quantity
    new_quantity = max(new_quantity, 0.0)

    item.current_quantity = new_quantity
    session.add(item)
    session.add(InventoryLog(
        inventory_item_id=item.id,
        created_by_id=context.user_id,
        change_type=kind,
        quantity=new_quantity - previous if kind == InventoryChangeType.COUNT else quantity,
        previous_quantity=previous,
        new_quantity=new_quantity,
        notes=notes,
    ))
    session.commit()

    below_par = item.par_level is not None and new_quantity < item.par_level
    if below_par:
        logger.info(f"Inventory item {item.id} ({item.name}) fell below par: {new_quantity} < {item.par_level}")

    return {
        "success": True,
        "item": item.name,
        "unit": item.unit,
        "previousQuantity": previous,
        "newQuantity": new_quantity,
        "changeType": kind.value,
        "belowParLevel": below_par,
        "message": f"Updated {item.name}: {previous:g} → {new_quantity:g} {item.unit} ({kind.value})",
    }


register_tool(
    name="adjust_inventory",
    description="Adjust inventory quantity for a specific item. Use this when a user reports using, receiving, wasting, or counting inventory.",
    parameters={
        "type": "object",
        "properties": {
            "item_name": {"type": "string", "description": "Name of the inventory item (fuzzy match)"},
            "quantity": {
                "type": "number",
                "description": "Amount to adjust. For USED/WASTE this is the amount consumed. For RECEIVED this is "
                               "the amount added. For COUNT this is the new absolute quantity.",
            },
            "change_type": {
                "type": "string",
                "enum": [c.value for c in InventoryChangeType],
                "description": "USED (consumed in production), WASTE (spoiled/discarded), RECEIVED (new delivery), "
                               "COUNT (physical count override)",
            },
            "notes": {"type": "string", "description": "Optional notes about the adjustment"},
        },
        "required": ["item_name", "quantity", "change_type"],
    },
    handler=_adjust_inventory,
)


# ---------------------------------------------------------------------------
# reorder_item
# ---------------------------------------------------------------------------
def _reorder_item(
    session: Session,
    context: ToolCallContext,
    *,
    item_name: str,
    quantity: Optional[float] = None,
    supplier_name: Optional[str] = None,
) -> dict:
    """Create a DRAFT order repeating the most recent purchase of an item."""
    stmt = (
        select(OrderItem, Order, SupplierProduct, Supplier)
        .join(Order, OrderItem.order_id == Order.id)
        .join(SupplierProduct, OrderItem.product_id == SupplierProduct.id)
        .join(Supplier, SupplierProduct.supplier_id == Supplier.id)
        .where(
            Order.restaurant_id == context.restaurant_id,
            col(SupplierProduct.name).ilike(f"%{item_name}%"),
        )
    )
    if supplier_name:
        stmt = stmt.where(col(Supplier.name).ilike(f"%{supplier_name}%"))
    last = session.exec(
        stmt.order_by(col(Order.created_at).desc(), col(Order.id).desc())
    ).first()

    if not last:
        return {"error": f'No previous orders found for "{item_name}". Try search_products to find it first.'}

    line, _previous_order, product, supplier = last
    if not product.in_stock:
        return {"error": f"{product.name} is currently out of stock at {supplier.name}."}

    qty = float(quantity) if quantity is not None else line.quantity
    order = _create_draft_order(session, context, supplier, [(product, qty)])
    return {
        "success": True,
        "order": _order_summary(order),
        "message": f"Draft reorder of {qty:g} {product.unit} {product.name} from {supplier.name} created. Review it before submitting.",
    }


register_tool(
    name="reorder_item",
    description="Quickly reorder an item based on past order history. Creates a DRAFT order using the most recent supplier and quantity for that item.",
    parameters={
        "type": "object",
        "properties": {
            "item_name": {"type": "string", "description": "Name of the item to reorder (fuzzy match against past orders)"},
            "quantity": {"type": "number", "description": "Quantity to order. Defaults to the last ordered quantity."},
            "supplier_name": {"type": "string", "description": "Preferred supplier name. Defaults to the most recent supplier."},
        },
        "required": ["item_name"],
    },
    handler=_reorder_item,
)
