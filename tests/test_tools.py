from sqlalchemy import func, select

from zapwa.core.flags import get_flags
from zapwa.models.commerce import Customer, Order
from zapwa.orchestrator.session_store import add_message, get_or_create_session
from zapwa.services import orders as order_service
from zapwa.services.catalog import list_products
from zapwa.services.llm import ToolCall
from zapwa.tools import create_order as create_order_tool
from zapwa.tools import order_status as order_status_tool
from zapwa.tools.create_order import order_reference
from zapwa.tools.registry import (
    CREATE_ORDER,
    ORDER_STATUS,
    ToolContext,
    execute_tool_call,
    get_tool_names,
    get_tools_for_llm,
    init_tools,
)
from zapwa.tools.results import ToolErrorKind

ORDER_ARGS = {
    "customer": {"name": "Budi", "phone": "0812-3456-789"},
    "cart": [{"productId": "p1", "qty": 2}],
}


async def _context(db, customer_identifier="08123456789", license_id="lic-1"):
    session_ctx = await get_or_create_session(db, license_id, None, customer_identifier)
    return ToolContext(
        db=db,
        license_id=license_id,
        session=session_ctx.session,
        customer_identifier=customer_identifier,
        catalog=await list_products(db, license_id),
    )


async def _order_count(db):
    return await db.scalar(select(func.count()).select_from(Order))


def test_registry_offers_both_tools():
    init_tools()
    init_tools()

    assert get_tool_names().count(CREATE_ORDER) == 1
    assert ORDER_STATUS in get_tool_names()
    schema = {t["function"]["name"]: t["function"]["parameters"] for t in get_tools_for_llm()}
    assert schema[CREATE_ORDER]["required"] == ["customer", "cart"]
    assert schema[ORDER_STATUS]["required"] == []


def test_disabled_order_status_is_hidden_and_refused(run_db, monkeypatch):
    monkeypatch.setenv("FF_ENABLE_ORDER_STATUS", "false")
    get_flags.cache_clear()
    init_tools()

    async def scenario(db):
        ctx = await _context(db)
        return await execute_tool_call(ToolCall(id="c1", name=ORDER_STATUS, arguments={}), ctx)

    result = run_db(scenario)

    assert get_tool_names() == [CREATE_ORDER]
    assert result.kind is ToolErrorKind.UNKNOWN_TOOL


def test_create_order_confirms_items_and_total(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        ctx = await _context(db)
        result = await create_order_tool.create_order(ORDER_ARGS, ctx)
        order = await db.get(Order, result.data["order_id"])
        customer = await db.get(Customer, order.customer_id)
        return result, order, customer

    result, order, customer = run_db(scenario)

    assert result.is_ok
    assert result.text == (
        "Order created successfully for Budi.\n"
        f"Order ID: {order_reference(order.id)}\n"
        "Items:\n"
        "- 2x Red Shirt\n"
        "Total: IDR 200.000"
    )
    assert order.total_amount_1000 == 200_000_000
    assert order.status == "pending"
    assert customer.phone == "08123456789"


def test_totals_use_the_catalog_currency(run_db, add_product):
    async def scenario(db):
        await add_product(db, product_id="m1", name="Mug", price_amount_1000=12_500, currency="USD")
        ctx = await _context(db)
        placed = await create_order_tool.create_order(
            {"customer": {"name": "Budi", "phone": "08123456789"}, "cart": [{"productId": "m1", "qty": 2}]}, ctx,
        )
        order = await db.get(Order, placed.data["order_id"])
        status = await order_status_tool.order_status(
            {"orderId": order_reference(order.id), "phone": "08123456789"}, ctx,
        )
        return placed, status, order

    placed, status, order = run_db(scenario)

    assert order.currency == "USD"
    assert placed.text.endswith("Total: USD 25")
    assert status.text.endswith("Total: USD 25")


def test_mixed_currency_cart_is_rejected(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        await add_product(db, product_id="m1", name="Mug", price_amount_1000=12_500, currency="USD")
        ctx = await _context(db)
        result = await create_order_tool.create_order(
            {"customer": {"name": "Budi", "phone": "08123456789"},
             "cart": [{"productId": "p1", "qty": 1}, {"productId": "m1", "qty": 1}]},
            ctx,
        )
        return result, await _order_count(db)

    result, count = run_db(scenario)

    assert not result.is_ok
    assert "share a currency" in result.text
    assert count == 0


def test_unknown_product_never_reaches_order_service(run_db, add_product, monkeypatch):
    calls = []

    async def fake_create_order(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(order_service, "create_order", fake_create_order)

    async def scenario(db):
        await add_product(db)
        ctx = await _context(db)
        return await create_order_tool.create_order(
            {"customer": {"name": "Budi", "phone": "0812"}, "cart": [{"productId": "p1", "qty": 1}, {"productId": "ghost", "qty": 1}]},
            ctx,
        )

    result = run_db(scenario)

    assert result.kind is ToolErrorKind.UNKNOWN_PRODUCT
    assert result.text.startswith('Product ID "ghost" was not found in the catalog. Cannot create order.')
    assert calls == []


def test_invalid_arguments_are_reported_as_text(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        ctx = await _context(db)
        missing_cart = await create_order_tool.create_order({"customer": {"name": "Budi", "phone": "0812"}}, ctx)
        zero_qty = await create_order_tool.create_order(
            {"customer": {"name": "Budi", "phone": "0812"}, "cart": [{"productId": "p1", "qty": 0}]}, ctx,
        )
        return missing_cart, zero_qty, await _order_count(db)

    missing_cart, zero_qty, count = run_db(scenario)

    assert missing_cart.kind is ToolErrorKind.INVALID_ARGUMENTS
    assert zero_qty.kind is ToolErrorKind.INVALID_ARGUMENTS
    assert "cart" in missing_cart.text
    assert count == 0


def test_order_service_failure_becomes_tool_text(run_db, add_product, monkeypatch):
    async def broken_create_order(*args, **kwargs):
        raise RuntimeError("warehouse offline")

    monkeypatch.setattr(order_service, "create_order", broken_create_order)

    async def scenario(db):
        await add_product(db)
        ctx = await _context(db)
        return await create_order_tool.create_order(ORDER_ARGS, ctx)

    result = run_db(scenario)

    assert result.kind is ToolErrorKind.COLLABORATOR_FAILURE
    assert "warehouse offline" in result.text


def test_execute_tool_call_isolates_unknown_tools(run_db):
    async def scenario(db):
        ctx = await _context(db)
        return await execute_tool_call(ToolCall(id="c1", name="refund_order", arguments={}), ctx)

    init_tools()
    result = run_db(scenario)

    assert result.kind is ToolErrorKind.UNKNOWN_TOOL
    assert "create_order" in result.text


async def _place_order(db, phone="08123456789"):
    return await order_service.create_order(
        db, "lic-1",
        [order_service.OrderLine(product_id="p1", quantity=2)],
        order_service.CustomerInfo(name="Budi", phone=phone),
    )


def test_order_status_with_full_arguments(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        order = await _place_order(db)
        ctx = await _context(db, customer_identifier="web-visitor")
        return await order_status_tool.order_status(
            {"orderId": order_reference(order.id), "phone": "0812 3456 789"}, ctx,
        )

    result = run_db(scenario)

    assert result.is_ok
    assert "Status: pending" in result.text
    assert "- 2x Red Shirt" in result.text
    assert "Total: IDR 200.000" in result.text


def test_order_status_recovers_order_id_from_prior_call(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        order = await _place_order(db)
        ctx = await _context(db, customer_identifier="web-visitor")
        await add_message(db, ctx.session, "user", "where is my order?")
        await add_message(
            db, ctx.session, "assistant", "",
            tool_calls=[{"id": "c0", "name": "order_status", "arguments": {"orderId": order_reference(order.id)}}],
        )
        await add_message(db, ctx.session, "tool", "To check the order status I still need the customer's phone number.", tool_call_id="c0")
        await add_message(db, ctx.session, "user", "08123456789")
        return await order_status_tool.order_status({"phone": "08123456789"}, ctx)

    result = run_db(scenario)

    assert result.is_ok
    assert "Status: pending" in result.text


def test_order_status_asks_for_missing_details(run_db):
    async def scenario(db):
        ctx = await _context(db, customer_identifier="web-visitor")
        return await order_status_tool.order_status({}, ctx)

    result = run_db(scenario)

    assert result.kind is ToolErrorKind.MISSING_PARAMETERS
    assert result.data["missing"] == ["order ID", "phone number"]


def test_order_status_not_found_for_wrong_phone(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        order = await _place_order(db)
        ctx = await _context(db)
        return await order_status_tool.order_status(
            {"orderId": order_reference(order.id), "phone": "0899999999"}, ctx,
        )

    result = run_db(scenario)

    assert result.kind is ToolErrorKind.NOT_FOUND


def test_find_order_is_license_scoped(run_db, add_product):
    async def scenario(db):
        await add_product(db)
        order = await _place_order(db)
        ref = order_reference(order.id)
        mine = await order_service.find_order(db, "lic-1", ref, "08123456789")
        theirs = await order_service.find_order(db, "lic-2", ref, "08123456789")
        return order.id, mine, theirs

    order_id, mine, theirs = run_db(scenario)

    assert mine is not None and mine.id == order_id
    assert theirs is None
