import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from feedback_hub.config import settings
from feedback_hub.database import get_db, get_session_factory
from feedback_hub.feedback.models import Feedback  # noqa: F401
from feedback_hub.main import create_app
from feedback_hub.models.base import Base
from feedback_hub.pipelines.aggregation import AggregationPipeline
from feedback_hub.pipelines.feedback_processing import FeedbackProcessingPipeline
from feedback_hub.pipelines.models import PipelineRun  # noqa: F401
from feedback_hub.pipelines.runner import create_run, execute_run
from feedback_hub.summaries.models import AggregatedSummary, SourceSummary  # noqa: F401
from feedback_hub.summarizer.llm import get_text_generator

engine = create_async_engine(settings.TEST_DATABASE_URL, echo=False)
test_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class FakeTextGenerator:
    """Records every prompt; returns a canned response or raises ``error``."""

    def __init__(self, response="Users want faster builds.", error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    async def __call__(self, system_prompt, user_prompt, *, max_tokens, temperature):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        return {"response": self.response}


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory():
    return test_session_factory


@pytest_asyncio.fixture
async def db():
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def failing_generator():
    return FakeTextGenerator(error=RuntimeError("quota exceeded"))


@pytest.fixture
def process_feedback():
    """Create a feedback processing run and execute it in the test's task."""

    async def _process(session_factory, source, generate, items=None, feedback_ids=None):
        params = {"feedback_ids": list(feedback_ids)} if feedback_ids else {"items": items or []}
        async with session_factory() as session:
            run = await create_run(session, FeedbackProcessingPipeline.kind, params, source=source)
        return await execute_run(session_factory, run.id, generate)

    return _process


@pytest.fixture
def aggregate_summaries():
    async def _aggregate(session_factory, generate, days=7):
        async with session_factory() as session:
            run = await create_run(session, AggregationPipeline.kind, {"days": days})
        return await execute_run(session_factory, run.id, generate)

    return _aggregate


async def override_get_db():
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(generator: FakeTextGenerator):
    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: test_session_factory
    app.dependency_overrides[get_text_generator] = lambda: generator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
