"""
Order creation tool — places an order for the customer once the agent has
collected their name, phone number and an itemized cart.

Validation happens against the catalog snapshot taken at the start of the
turn. Every failure is returned to the model as text so it can correct itself
or ask the customer again.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models.commerce import Order
from ..services import orders as order_service
from ..services.catalog import format_price
from .registry import CREATE_ORDER, ToolContext, ToolRisk, tool
from .results import ToolErrorKind, ToolResult

logger = logging.getLogger(__name__)


class CustomerArgs(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)


class CartItemArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    qty: int = Field(gt=0)


class CreateOrderArgs(BaseModel):
    customer: CustomerArgs
    cart: list[CartItemArgs] = Field(min_length=1)


def order_reference(order_id: str) -> str:
    """Short customer-facing reference: first 8 characters, upper-cased."""
    return order_id.replace("-", "")[:8].upper()


def format_order_confirmation(order: Order, customer_name: str) -> str:
    lines = [
        f"Order created successfully for {customer_name}.",
        f"Order ID: {order_reference(order.id)}",
        "Items:",
    ]
    for item in order.items:
        lines.append(f"- {item.quantity}x {item.product_name}")
    lines.append(f"Total: {format_price(order.total_amount_1000, order.currency)}")
    return "\n".join(lines)


def _describe_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


@tool(
    name=CREATE_ORDER,
    description=(
        "Creates a new order with the customer's details and cart items. "
        "\n\nWhen to use: ONLY after the customer has explicitly given their full name, "
        "their phone number, and every product + quantity they want. Never assume any of these. "
        "\n\nInput: customer {name, phone} and cart [{productId, qty}] where productId is the "
        "exact ID from the catalog. "
        "\n\nReturns: an order confirmation with the order ID, items and total, "
        "or a reason the order could not be created."
    ),
    parameters={
        "type": "object",
        "properties": {
            "customer": {
                "type": "object",
                "description": "The customer's contact details.",
                "properties": {
                    "name": {"type": "string", "description": "The full name of the customer placing the order."},
                    "phone": {"type": "string", "description": "The active phone number of the customer."},
                },
                "required": ["name", "phone"],
                "additionalProperties": False,
            },
            "cart": {
                "type": "array",
                "description": "The products the customer wants to purchase.",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "properties": {
                        "productId": {"type": "string", "description": "The exact product ID from the catalog."},
                        "qty": {"type": "integer", "minimum": 1, "description": "How many units to order."},
                    },
                    "required": ["productId", "qty"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["customer", "cart"],
    },
    risk=ToolRisk.WRITE,
)
async def create_order(arguments: dict, ctx: ToolContext) -> ToolResult:
    try:
        args = CreateOrderArgs.model_validate(arguments)
    except ValidationError as e:
        return ToolResult.error(
            ToolErrorKind.INVALID_ARGUMENTS,
            f"Invalid arguments for create_order ({_describe_validation_error(e)}). "
            "Make sure you have the customer's name, phone number and at least one cart item "
            "with a catalog product ID and a positive quantity.",
        )

    catalog = {p.id: p for p in ctx.catalog}
    for item in args.cart:
        if item.product_id not in catalog:
            logger.info("create_order rejected unknown product %s (license=%s)", item.product_id, ctx.license_id)
            return ToolResult.error(
                ToolErrorKind.UNKNOWN_PRODUCT,
                f'Product ID "{item.product_id}" was not found in the catalog. Cannot create order. '
                "Use only product IDs listed in the catalog.",
                product_id=item.product_id,
            )

    lines = [
        order_service.OrderLine(product_id=item.product_id, quantity=item.qty)
        for item in args.cart
    ]
    customer = order_service.CustomerInfo(name=args.customer.name.strip(), phone=args.customer.phone.strip())

    try:
        # Savepoint: a failed order must not poison the turn's transaction
        async with ctx.db.begin_nested():
            order = await order_service.create_order(ctx.db, ctx.license_id, lines, customer)
    except Exception as e:
        logger.error("Order creation failed for license %s: %s", ctx.license_id, e)
        return ToolResult.error(
            ToolErrorKind.COLLABORATOR_FAILURE,
            f"Failed to create the order. Reason: {e}",
        )

    return ToolResult.ok(
        format_order_confirmation(order, customer.name),
        order_id=order.id,
    )
