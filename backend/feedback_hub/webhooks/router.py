"""Inbound webhooks: one endpoint per source name, unknown names included."""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_hub.database import get_db, get_session_factory
from feedback_hub.feedback.adapters import adapt_payload
from feedback_hub.pipelines.feedback_processing import FeedbackProcessingPipeline
from feedback_hub.pipelines.runner import create_run, run_in_background
from feedback_hub.summarizer.llm import TextGenerator, get_text_generator

logger = structlog.get_logger()
router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.post("/", include_in_schema=False)
async def webhook_without_source():
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Source required"},
    )


@router.post("/{source}")
async def receive_webhook(
    source: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    generate: TextGenerator = Depends(get_text_generator),
):
    try:
        payload = await request.json()
        items = adapt_payload(source, payload)

        if not items:
            logger.info("webhook_no_items", source=source)
            return {"success": True, "message": "No feedback items extracted", "item_count": 0}

        run = await create_run(
            db,
            FeedbackProcessingPipeline.kind,
            {"items": [{"content": i["content"], "metadata": i["metadata"]} for i in items]},
            source=source,
        )
    except Exception as exc:
        logger.error("webhook_failed", source=source, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc)},
        )

    background_tasks.add_task(run_in_background, session_factory, run.id, generate)
    logger.info("webhook_received", source=source, item_count=len(items), run_id=str(run.id))
    return {
        "success": True,
        "message": f"Processing {len(items)} feedback items",
        "item_count": len(items),
        "run_id": str(run.id),
    }
