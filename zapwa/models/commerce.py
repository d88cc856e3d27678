"""
Catalog and order tables. Owned by the product/order services;
the chat agent only reads products and creates/looks up orders.

Money is stored in thousandths of the currency unit (`*_amount_1000`).
"""

from sqlalchemy import BigInteger, String, Text, Integer, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import LicenseBase

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


class Product(LicenseBase):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="IDR")
    price_amount_1000: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Customer(LicenseBase):
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str] = mapped_column(String, nullable=False, index=True)


class Order(LicenseBase):
    __tablename__ = "orders"

    customer_id: Mapped[str] = mapped_column(
        String, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    currency: Mapped[str] = mapped_column(String, nullable=False, default="IDR")
    total_amount_1000: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    customer: Mapped["Customer"] = relationship(lazy="selectin")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class OrderItem(LicenseBase):
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )
    product_name: Mapped[str] = mapped_column(String, nullable=False)
    price_amount_1000: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")
