"""
Order service — the slice of order management the chat agent needs.

create_order: validates products against the license, upserts the customer
by phone, snapshots names/prices into order items.
find_order: lookup by order-id prefix + customer phone, scoped to a license.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError
from ..models.commerce import Customer, Order, OrderItem, Product

logger = logging.getLogger(__name__)

_PHONE_NOISE_RE = re.compile(r"[\s\-().]")


def normalize_phone(phone: str) -> str:
    """Strip formatting so "0812-3456 789" and "08123456789" match."""
    return _PHONE_NOISE_RE.sub("", phone or "")


@dataclass
class OrderLine:
    product_id: str
    quantity: int


@dataclass
class CustomerInfo:
    name: str
    phone: str


async def create_order(
    db: AsyncSession,
    license_id: str,
    items: list[OrderLine],
    customer: CustomerInfo,
) -> Order:
    """Create a pending order. Raises ConflictError on invalid input."""
    if not items:
        raise ConflictError("Order must contain at least one item.")

    product_ids = {item.product_id for item in items}
    result = await db.execute(
        select(Product).where(
            Product.id.in_(product_ids),
            Product.license_id == license_id,
        )
    )
    products = {p.id: p for p in result.scalars().all()}
    if len(products) != len(product_ids):
        raise ConflictError("One or more products are invalid or do not belong to this store.")
    currencies = {p.currency or "IDR" for p in products.values()}
    if len(currencies) > 1:
        raise ConflictError("All products in one order must share a currency.")

    phone = normalize_phone(customer.phone)
    result = await db.execute(
        select(Customer).where(
            Customer.license_id == license_id,
            Customer.phone == phone,
        )
    )
    db_customer = result.scalar_one_or_none()
    if db_customer is None:
        db_customer = Customer(license_id=license_id, name=customer.name, phone=phone)
        db.add(db_customer)
    else:
        db_customer.name = customer.name
    await db.flush()

    total = 0
    order_items = []
    for item in items:
        product = products[item.product_id]
        total += product.price_amount_1000 * item.quantity
        order_items.append(OrderItem(
            license_id=license_id,
            product_id=product.id,
            product_name=product.name,
            price_amount_1000=product.price_amount_1000,
            quantity=item.quantity,
        ))

    order = Order(
        license_id=license_id,
        customer_id=db_customer.id,
        currency=currencies.pop(),
        total_amount_1000=total,
        status="pending",
        items=order_items,
    )
    order.customer = db_customer
    db.add(order)
    await db.flush()
    logger.info("Created order %s for license %s (%d items)", order.id, license_id, len(order_items))
    return order


async def find_order(
    db: AsyncSession,
    license_id: str,
    order_id_prefix: str,
    phone: str,
) -> Optional[Order]:
    """
    Most recent order whose id starts with the given prefix and whose
    customer phone matches. None if nothing matches.
    """
    prefix = order_id_prefix.strip().lower()
    if not prefix:
        return None

    result = await db.execute(
        select(Order)
        .join(Customer, Order.customer_id == Customer.id)
        .where(
            Order.license_id == license_id,
            Order.id.startswith(prefix, autoescape=True),
            Customer.phone == normalize_phone(phone),
        )
        .order_by(Order.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()

