# thumbcraft/core/database.py
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from thumbcraft.core.config import get_database_url, get_billing_database_url


def build_engine(db_url: str) -> AsyncEngine:
    # Configure engine based on database type
    if "sqlite" in db_url:
        return create_async_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False}
        )
    return create_async_engine(
        db_url,
        pool_pre_ping=True,
        pool_recycle=3600
    )


engine = build_engine(get_database_url())
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

_billing_url = get_billing_database_url()
billing_engine = engine if _billing_url == get_database_url() else build_engine(_billing_url)
BillingSessionLocal = async_sessionmaker(billing_engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def init_models(bind: AsyncEngine = engine) -> None:
    import thumbcraft.models  # noqa: F401  (register tables)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with SessionLocal() as session:
        yield session


async def get_billing_db():
    async with BillingSessionLocal() as session:
        yield session
