from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker
from config import DATABASE_URL

Base = declarative_base()


def make_sessionmaker(url: str = DATABASE_URL):
    engine = create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
        )
    return engine, sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine) -> None:
    # models must be imported so their tables register on Base
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
