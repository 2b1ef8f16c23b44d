from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("CAMPUS_DB environment variable is not set")

Base = declarative_base()


def get_engine(database_url: str):
    return create_async_engine(database_url, echo=False, future=True)


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
    )


engine = get_engine(DATABASE_URL)
SessionLocal = get_session(engine)


async def init_db(target_engine=None):
    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
