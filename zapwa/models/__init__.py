"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import LicenseBase
from .chat import ChatSession, ChatMessage
from .agent import AgentConfiguration
from .commerce import Product, Customer, Order, OrderItem, ORDER_STATUSES

__all__ = [
    "LicenseBase",
    "ChatSession", "ChatMessage",
    "AgentConfiguration",
    "Product", "Customer", "Order", "OrderItem", "ORDER_STATUSES",
]
