from enum import Enum
from typing import List, Optional
from sqlmodel import Field, Relationship
from freshsheet.models.base import TimestampMixin
from freshsheet.models.catalog import Supplier, SupplierProduct


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class Order(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    supplier_id: int = Field(foreign_key="supplier.id", index=True)
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")

    order_number: str = Field(index=True, unique=True)
    status: OrderStatus = Field(default=OrderStatus.DRAFT)
    subtotal: float = Field(default=0.0)
    tax: float = Field(default=0.0)
    delivery_fee: float = Field(default=0.0)
    total: float = Field(default=0.0)
    delivery_notes: Optional[str] = None

    supplier: Optional[Supplier] = Relationship()
    items: List["OrderItem"] = Relationship(back_populates="order")


class OrderItem(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    product_id: int = Field(foreign_key="supplierproduct.id", index=True)

    quantity: float
    unit_price: float
    subtotal: float

    order: Optional[Order] = Relationship(back_populates="items")
    product: Optional[SupplierProduct] = Relationship()
