import sqlalchemy.event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from feedback_hub.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False)


@sqlalchemy.event.listens_for(engine.sync_engine, "connect")
def _set_sqlite_pragmas(dbapi_conn, _connection_record):
    """Enable WAL mode and busy timeout for SQLite concurrency."""
    if engine.dialect.name != "sqlite":
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session_factory() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request (background pipeline runs)."""
    return async_session_factory


async def create_tables() -> None:
    from feedback_hub.feedback.models import Feedback  # noqa: F401
    from feedback_hub.models.base import Base
    from feedback_hub.pipelines.models import PipelineRun  # noqa: F401
    from feedback_hub.summaries.models import AggregatedSummary, SourceSummary  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
