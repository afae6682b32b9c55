import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedback_hub.config import settings
from feedback_hub.database import create_tables, get_session_factory
from feedback_hub.middleware.error_handler import ErrorHandlerMiddleware
from feedback_hub.middleware.logging import RequestLoggingMiddleware
from feedback_hub.pipelines.router import router as pipelines_router
from feedback_hub.summaries.router import router as summaries_router
from feedback_hub.summarizer.llm import get_text_generator
from feedback_hub.webhooks.router import router as webhooks_router

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.LOG_LEVEL.upper()),
    ),
    logger_factory=structlog.PrintLoggerFactory(),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from feedback_hub.pipelines.scheduler import aggregation_loop

    if settings.AUTO_CREATE_TABLES:
        await create_tables()

    aggregation_task = None
    if settings.SCHEDULER_ENABLED:
        aggregation_task = asyncio.create_task(
            aggregation_loop(get_session_factory(), get_text_generator()),
        )
    yield
    if aggregation_task is not None:
        aggregation_task.cancel()
        try:
            await aggregation_task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    app = FastAPI(
        title="Feedback Hub",
        version="0.1.0",
        docs_url="/docs",
        lifespan=lifespan,
    )

    cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(webhooks_router)
    app.include_router(summaries_router, prefix="/api")
    app.include_router(pipelines_router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
