"""Pytest bootstrap configuration.

Environment is fixed before any module that reads settings is imported:
no database file, no retry sleeps, quiet logs.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("PAYMENT__VERIFICATION__BASE_BACKOFF", "0")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.settings import PaymentSettings  # noqa: E402
from infrastructure.models import Base, OrderModel  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


WEBHOOK_SECRET = "whsec_test"


def make_payment_settings(**overrides) -> PaymentSettings:
    """All four gateways configured with test credentials."""
    values = dict(
        default_gateway="paystack",
        public_base_url="https://shop.test",
        paystack={"secret_key": "sk_test_paystack", "public_key": "pk_test_paystack", "webhook_secret": WEBHOOK_SECRET},
        flutterwave={"secret_key": "FLWSECK_TEST", "public_key": "FLWPUBK_TEST", "webhook_secret": WEBHOOK_SECRET},
        opay={"secret_key": "opay_secret", "merchant_id": "256612345678901", "webhook_secret": WEBHOOK_SECRET},
        crypto={"api_key": "np_api_key", "ipn_secret": WEBHOOK_SECRET},
        verification={"max_retries": 2, "base_backoff": 0},
    )
    values.update(overrides)
    return PaymentSettings(**values)


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return make_payment_settings()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return lambda: SQLAlchemyUnitOfWork(session_factory=session_factory)


@pytest_asyncio.fixture
async def order_id(session_factory) -> int:
    """A single NGN order numbered ORD1001."""
    async with session_factory() as session:
        order = OrderModel(
            order_number="ORD1001",
            total_amount=Decimal("5000.00"),
            currency="NGN",
            customer_email="ada@example.com",
            customer_name="Ada",
        )
        session.add(order)
        await session.commit()
        return order.id


@pytest.fixture
def settings_factory():
    return make_payment_settings
