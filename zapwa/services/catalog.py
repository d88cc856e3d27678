"""
Catalog context — loads a license's products and renders them for the prompt.

Usage:
    products = await list_products(db, license_id)
    block = format_products_for_prompt(products)
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models.commerce import Product

logger = logging.getLogger(__name__)

EMPTY_CATALOG_TEXT = "No products are available in the catalog."


async def list_products(db: AsyncSession, license_id: str, limit: int | None = None) -> list[Product]:
    """
    Visible products for a license, oldest first. One read per chat turn;
    the result is the catalog snapshot the tools validate against.
    """
    limit = limit or get_settings().catalog_snapshot_limit
    result = await db.execute(
        select(Product)
        .where(Product.license_id == license_id, Product.is_hidden == False)  # noqa: E712
        .order_by(Product.created_at.asc(), Product.id.asc())
        .limit(limit)
    )
    products = list(result.scalars().all())
    if len(products) == limit:
        logger.warning("Catalog for license %s hit the snapshot limit (%d)", license_id, limit)
    return products


def format_amount(amount_1000: int) -> str:
    """
    id-ID number formatting: "." groups thousands, "," separates decimals,
    decimals only when non-zero. 200000000 → "200.000", 1500500 → "1.500,5".
    """
    sign = "-" if amount_1000 < 0 else ""
    whole, frac = divmod(abs(amount_1000), 1000)
    text = f"{whole:,}".replace(",", ".")
    frac_digits = f"{frac:03d}".rstrip("0")
    if frac_digits:
        text += "," + frac_digits
    return sign + text


def format_price(amount_1000: int, currency: str = "IDR") -> str:
    return f"{currency or 'IDR'} {format_amount(amount_1000)}"


def format_products_for_prompt(products: list[Product]) -> str:
    """
    Format the catalog into a text block for the system prompt.
    An empty catalog is stated explicitly so the model never reads
    a missing block as "catalog omitted".
    """
    if not products:
        return EMPTY_CATALOG_TEXT

    return "\n\n".join(
        f"- ID: {p.id}\n"
        f"  Name: {p.name}\n"
        f"  Description: {p.description or 'N/A'}\n"
        f"  Price: {format_price(p.price_amount_1000, p.currency)}"
        for p in products
    )
