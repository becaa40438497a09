from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.platform.config import settings


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # aiosqlite connections are tied to the loop that opened them
        return create_async_engine(database_url, echo=False, future=True, poolclass=NullPool)

    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=20,
        max_overflow=30,  # (burst capacity)
        pool_timeout=30,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, autocommit=False)


async def get_db():
    async with SessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """
    Session factory for work that outlives the request, e.g. webhook processing
    scheduled after the acknowledgement has been sent.
    """
    return SessionLocal
