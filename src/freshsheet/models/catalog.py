from enum import Enum
from typing import List, Optional
from sqlmodel import Field, Relationship
from freshsheet.models.base import TimestampMixin


class ProductCategory(str, Enum):
    PRODUCE = "PRODUCE"
    MEAT = "MEAT"
    SEAFOOD = "SEAFOOD"
    DAIRY = "DAIRY"
    BAKERY = "BAKERY"
    BEVERAGES = "BEVERAGES"
    DRY_GOODS = "DRY_GOODS"
    FROZEN = "FROZEN"
    CLEANING = "CLEANING"
    EQUIPMENT = "EQUIPMENT"
    OTHER = "OTHER"


class Supplier(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    minimum_order: Optional[float] = None
    delivery_fee: Optional[float] = None
    lead_time_days: Optional[int] = None
    rating: Optional[float] = None
    review_count: int = Field(default=0)

    products: List["SupplierProduct"] = Relationship(back_populates="supplier")


class SupplierProduct(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    supplier_id: int = Field(foreign_key="supplier.id", index=True)

    name: str = Field(index=True)
    category: ProductCategory = Field(default=ProductCategory.OTHER)
    price: float
    unit: str
    in_stock: bool = Field(default=True)

    supplier: Optional[Supplier] = Relationship(back_populates="products")


class AlertType(str, Enum):
    PRICE_DROP = "PRICE_DROP"
    PRICE_INCREASE = "PRICE_INCREASE"
    PRICE_THRESHOLD = "PRICE_THRESHOLD"


class PriceAlert(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    product_id: int = Field(foreign_key="supplierproduct.id", index=True)

    alert_type: AlertType
    target_price: float
    is_active: bool = Field(default=True)
