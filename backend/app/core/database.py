from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    if "sqlite" in url:
        return create_async_engine(url, echo=False, connect_args={"check_same_thread": False})

    connect_args = {}
    if "postgresql" in url:
        connect_args = {"server_settings": {"jit": "off"}}

    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=10,
        pool_recycle=3600,
        connect_args=connect_args
    )


def build_sessionmaker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.async_database_url)
AsyncSessionLocal = build_sessionmaker(engine)
Base = declarative_base()

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

async def init_db(bind: AsyncEngine = engine):
    # Import for side effects: every table must be registered on Base.metadata.
    from app import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
