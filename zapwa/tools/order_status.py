"""
Order status tool — looks up an existing order by its reference and the
customer's phone number. Both are optional in the call; whatever the model
leaves out is recovered from the session history (see recovery.py).
"""

import logging

from ..core.config import get_settings
from ..core.flags import get_flags
from ..models.commerce import Order
from ..orchestrator.session_store import get_recent_messages
from ..services import orders as order_service
from ..services.catalog import format_price
from .create_order import order_reference
from .recovery import OrderStatusParams, recover_order_status_params
from .registry import ORDER_STATUS, ToolContext, ToolRisk, tool
from .results import ToolErrorKind, ToolResult

logger = logging.getLogger(__name__)


def format_order_status(order: Order) -> str:
    lines = [
        f"Order ID: {order_reference(order.id)}",
        f"Status: {order.status}",
        "Items:",
    ]
    for item in order.items:
        lines.append(f"- {item.quantity}x {item.product_name}")
    lines.append(f"Total: {format_price(order.total_amount_1000, order.currency)}")
    return "\n".join(lines)


@tool(
    name=ORDER_STATUS,
    description=(
        "Looks up the status of an existing order. "
        "\n\nWhen to use: the customer asks where their order is or what state it is in. "
        "\n\nInput: orderId (the order reference, e.g. 1A2B3C4D) and phone (the phone number used "
        "for the order). Both are optional: leave out anything the customer already gave earlier "
        "in the conversation and it will be found automatically. "
        "\n\nReturns: the order status with items and total, a request for missing details, "
        "or a not-found message."
    ),
    parameters={
        "type": "object",
        "properties": {
            "orderId": {"type": "string", "description": "The order reference given to the customer."},
            "phone": {"type": "string", "description": "The phone number the order was placed with."},
        },
        "required": [],
    },
    risk=ToolRisk.READ,
    enabled=lambda: get_flags().enable_order_status,
)
async def order_status(arguments: dict, ctx: ToolContext) -> ToolResult:
    params = OrderStatusParams(
        order_id=(str(arguments.get("orderId") or "").strip() or None),
        phone=(str(arguments.get("phone") or "").strip() or None),
    )

    if not params.complete:
        window = get_settings().history_search_window
        history = await get_recent_messages(ctx.db, ctx.session.id, limit=window, newest_first=True)
        recovered = recover_order_status_params(history, params, ctx.customer_identifier)
        if recovered != params:
            logger.info(
                "order_status recovered params from history (session=%s): order_id=%s phone=%s",
                ctx.session.id, bool(recovered.order_id), bool(recovered.phone),
            )
        params = recovered

    missing = params.missing()
    if missing:
        return ToolResult.error(
            ToolErrorKind.MISSING_PARAMETERS,
            f"To check the order status I still need the customer's {' and '.join(missing)}. "
            "Ask the customer for it.",
            missing=missing,
        )

    try:
        order = await order_service.find_order(ctx.db, ctx.license_id, params.order_id, params.phone)
    except Exception as e:
        logger.error("Order lookup failed for license %s: %s", ctx.license_id, e)
        return ToolResult.error(
            ToolErrorKind.COLLABORATOR_FAILURE,
            f"Failed to look up the order. Reason: {e}",
        )

    if order is None:
        return ToolResult.error(
            ToolErrorKind.NOT_FOUND,
            f"No order found with ID {params.order_id} for phone number {params.phone}. "
            "Ask the customer to double-check the order ID and phone number.",
            order_id=params.order_id,
        )

    return ToolResult.ok(format_order_status(order), order_id=order.id)
