"""Step machinery shared by the pipelines.

A pipeline executes against one ``PipelineRun`` row. Each step stages its
writes on the session, then its result is recorded in ``run.step_results`` and
both go out in a single commit. Re-executing a run skips every step already
recorded and hands back the stored result, so a retry resumes where the last
attempt stopped.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_hub.pipelines.models import PipelineRun
from feedback_hub.summarizer.llm import TextGenerator

logger = structlog.get_logger()

StepFn = Callable[[], Awaitable[dict]]


class Pipeline:
    kind: str
    initial_state: Enum
    terminal_states: frozenset[Enum]

    def __init__(self, db: AsyncSession, run: PipelineRun, generate: TextGenerator) -> None:
        self.db = db
        self.run = run
        self.generate = generate

    @classmethod
    def is_finished(cls, run: PipelineRun) -> bool:
        return run.state in {s.value for s in cls.terminal_states}

    async def execute(self) -> dict:
        raise NotImplementedError

    async def transition(self, state: Enum) -> None:
        if self.run.state == state.value:
            return
        logger.info(
            "pipeline_state_changed",
            run_id=str(self.run.id),
            kind=self.kind,
            from_state=self.run.state,
            to_state=state.value,
        )
        self.run.state = state.value
        await self.db.commit()

    async def step(self, name: str, fn: StepFn, state: Enum | None = None) -> dict:
        """Run *fn* once per run; later executions get the recorded result."""
        recorded = (self.run.step_results or {}).get(name)
        if recorded is not None:
            logger.info("pipeline_step_skipped", run_id=str(self.run.id), step=name)
            if state is not None:
                await self.transition(state)
            return recorded

        result = await fn()
        self.run.step_results = {**(self.run.step_results or {}), name: result}
        if state is not None:
            self.run.state = state.value
        await self.db.commit()
        logger.info("pipeline_step_completed", run_id=str(self.run.id), kind=self.kind, step=name)
        return result

    async def finish(self, state: Enum, result: dict[str, Any]) -> dict:
        self.run.state = state.value
        self.run.result = result
        self.run.error = None
        await self.db.commit()
        logger.info("pipeline_run_finished", run_id=str(self.run.id), kind=self.kind, state=state.value)
        return result
