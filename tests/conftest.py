# tests/conftest.py
import io
import os
import tempfile
import uuid
from datetime import datetime

_TMP = tempfile.mkdtemp(prefix="thumbcraft-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TMP, 'default.db')}")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from thumbcraft.api.deps import get_image_client, get_payment_provider, get_payment_secret
from thumbcraft.core.database import build_engine, get_billing_db, get_db, init_models
from thumbcraft.models.entitlement import Entitlement
from thumbcraft.models.user import User
from thumbcraft.services.auth_service import create_token
from thumbcraft.services.image_service import GeneratedImage, encode_data_uri
from thumbcraft.services.payment_service import ProviderOrder

RAZORPAY_TEST_SECRET = "rzp_test_secret"


def make_png(width: int = 640, height: int = 360, color=(40, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, "PNG")
    return buf.getvalue()


class FakeImageClient:
    """Stands in for ImageGenerationClient; records prompts."""

    def __init__(self, error: Exception = None, color=(40, 40, 40)):
        self.prompts = []
        self.error = error
        self.color = color

    async def generate(self, prompt: str) -> GeneratedImage:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return GeneratedImage(
            image_url=encode_data_uri(make_png(color=self.color), "image/png"),
            content_type="image/png",
            attempts=1,
        )


class FakePaymentProvider:
    key_id = "rzp_test_key"

    def __init__(self, error: Exception = None):
        self.error = error
        self.orders = []

    async def create_order(self, amount, currency, receipt, notes):
        if self.error is not None:
            raise self.error
        order = ProviderOrder(
            id=f"order_{uuid.uuid4().hex[:14]}",
            amount=amount,
            currency=currency,
            raw={"receipt": receipt, "notes": notes},
        )
        self.orders.append(order)
        return order


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    async def _make(credits: int = 50, plan_type: str = "free", plan_expiry=None, email: str = None) -> str:
        user_id = str(uuid.uuid4())
        async with session_factory() as s:
            s.add(User(
                id=user_id,
                email=email or f"{user_id[:8]}@example.com",
                password_hash="x",
                name="Test User",
                created_at=datetime.utcnow(),
            ))
            await s.flush()
            s.add(Entitlement(
                user_id=user_id,
                credits=credits,
                plan_type=plan_type,
                plan_expiry=plan_expiry,
                updated_at=datetime.utcnow(),
            ))
            await s.commit()
        return user_id

    return _make


def auth_headers(user_id: str, email: str = "user@example.com") -> dict:
    return {"Authorization": f"Bearer {create_token(user_id, email)}"}


@pytest.fixture
def image_client():
    return FakeImageClient()


@pytest.fixture
def payment_provider():
    return FakePaymentProvider()


@pytest_asyncio.fixture
async def client(session_factory, image_client, payment_provider):
    from thumbcraft.server import app

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_billing_db] = override_db
    app.dependency_overrides[get_image_client] = lambda: image_client
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider
    app.dependency_overrides[get_payment_secret] = lambda: RAZORPAY_TEST_SECRET

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
