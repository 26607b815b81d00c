from freshsheet.models.core import Organization, Restaurant, User
from freshsheet.models.catalog import Supplier, SupplierProduct, PriceAlert
from freshsheet.models.inventory import InventoryItem, InventoryLog
from freshsheet.models.orders import Order, OrderItem
from freshsheet.models.conversation import Conversation, Message
from freshsheet.models.agent_log import ToolCallLog, LLMCallLog

__all__ = [
    "Organization", "Restaurant", "User",
    "Supplier", "SupplierProduct", "PriceAlert",
    "InventoryItem", "InventoryLog",
    "Order", "OrderItem",
    "Conversation", "Message",
    "ToolCallLog", "LLMCallLog",
]
