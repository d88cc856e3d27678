import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import zapwa.models  # noqa: F401  (registers tables on Base.metadata)
from zapwa.core import locks
from zapwa.core.config import get_settings
from zapwa.core.database import Base
from zapwa.core.flags import get_flags
from zapwa.models.commerce import Product
from zapwa.services import llm


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("FF_USE_REDIS", "false")
    monkeypatch.setenv("FF_ENABLE_ORDER_STATUS", "true")
    get_settings.cache_clear()
    get_flags.cache_clear()
    yield
    get_settings.cache_clear()
    get_flags.cache_clear()
    locks._local_locks.clear()
    locks._local_waiters.clear()


@pytest.fixture
def run_db():
    """Run `scenario(db)` against a fresh in-memory database."""

    def runner(scenario):
        async def _run():
            engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
            try:
                async with factory() as db:
                    return await scenario(db)
            finally:
                await engine.dispose()

        return asyncio.run(_run())

    return runner


class ScriptedLLM:
    """Stands in for llm.chat: returns queued replies, raises queued exceptions."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)
        return self

    async def __call__(self, messages, tools=None, tool_choice=None, **kwargs):
        self.calls.append({
            "messages": [dict(m) for m in messages],
            "tools": tools,
            "tool_choice": tool_choice,
        })
        if not self.replies:
            raise AssertionError("unexpected LLM call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_llm(monkeypatch):
    scripted = ScriptedLLM()
    monkeypatch.setattr(llm, "chat", scripted)
    return scripted


@pytest.fixture
def add_product():
    async def _add(db, license_id="lic-1", product_id="p1", name="Red Shirt",
                   price_amount_1000=100_000_000, description="Cotton shirt", is_hidden=False,
                   currency="IDR"):
        product = Product(
            id=product_id,
            license_id=license_id,
            name=name,
            description=description,
            currency=currency,
            price_amount_1000=price_amount_1000,
            is_hidden=is_hidden,
        )
        db.add(product)
        await db.flush()
        return product

    return _add
