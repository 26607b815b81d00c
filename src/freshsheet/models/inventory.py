from enum import Enum
from typing import Optional
from sqlmodel import Field, Relationship
from freshsheet.models.base import TimestampMixin
from freshsheet.models.catalog import ProductCategory, SupplierProduct


class InventoryItem(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    supplier_product_id: Optional[int] = Field(default=None, foreign_key="supplierproduct.id")

    name: str = Field(index=True)
    category: ProductCategory = Field(default=ProductCategory.OTHER)
    current_quantity: float = Field(default=0.0)
    unit: str
    par_level: Optional[float] = None

    supplier_product: Optional[SupplierProduct] = Relationship()

    @property
    def is_low_stock(self) -> bool:
        return self.par_level is not None and self.current_quantity <= self.par_level


class InventoryChangeType(str, Enum):
    USED = "USED"
    WASTE = "WASTE"
    RECEIVED = "RECEIVED"
    COUNT = "COUNT"


class InventoryLog(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_item_id: int = Field(foreign_key="inventoryitem.id", index=True)
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")

    change_type: InventoryChangeType
    quantity: float
    previous_quantity: float
    new_quantity: float
    notes: Optional[str] = None
