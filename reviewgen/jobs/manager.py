from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from reviewgen.export.markdown import write_document_note
from reviewgen.pipeline.models import GenerationRequest
from reviewgen.pipeline.orchestrator import GenerationOrchestrator
from reviewgen.storage.database import Database

logger = logging.getLogger(__name__)


class JobManager:
    """Runs generation jobs as background tasks: generate → persist → export.

    A job's whole session runs under one timeout. Nothing is written for a job
    unless every stage succeeded.
    """

    def __init__(
        self,
        db: Database,
        orchestrator: GenerationOrchestrator,
        session_timeout: float = 600.0,
        export_dir: Path | None = None,
    ) -> None:
        self.db = db
        self.orchestrator = orchestrator
        self.session_timeout = session_timeout
        self.export_dir = export_dir
        self._running_tasks: dict[str, asyncio.Task] = {}

    def is_running(self, job_id: str) -> bool:
        task = self._running_tasks.get(job_id)
        return task is not None and not task.done()

    async def submit(self, request: GenerationRequest, requested_by: str | None = None) -> dict:
        job = await self.db.create_job(request, requested_by=requested_by)
        await self.start_generation(job["id"], request, requested_by)
        return job

    async def start_generation(
        self, job_id: str, request: GenerationRequest, requested_by: str | None = None
    ) -> None:
        if self.is_running(job_id):
            return
        task = asyncio.create_task(self._run_generation(job_id, request, requested_by))
        self._running_tasks[job_id] = task
        task.add_done_callback(lambda t: self._forget(job_id, t))

    def _forget(self, job_id: str, task: asyncio.Task) -> None:
        if self._running_tasks.get(job_id) is task:
            del self._running_tasks[job_id]

    async def wait(self, job_id: str) -> None:
        task = self._running_tasks.get(job_id)
        if task:
            await task

    async def _run_generation(
        self, job_id: str, request: GenerationRequest, requested_by: str | None
    ) -> None:
        try:
            await self.db.update_job(job_id, status="generating")
            document = await asyncio.wait_for(
                self.orchestrator.generate(request),
                timeout=self.session_timeout,
            )
            doc_id = await self.db.save_document(document, job_id=job_id, requested_by=requested_by)
            await self.db.update_job(job_id, status="completed", document_id=doc_id)
        except asyncio.TimeoutError:
            error = f"Generation timed out after {self.session_timeout:.0f}s"
            await self.db.update_job(job_id, status="failed", error=error)
            logger.error(f"Job {job_id} failed: {error}")
            return
        except Exception as e:
            await self.db.update_job(job_id, status="failed", error=str(e))
            logger.error(f"Job {job_id} failed: {e}")
            return

        logger.info(
            f"Job {job_id} completed: document {doc_id} "
            f"({document.usage.total_tokens} tokens, ${document.cost:.4f})"
        )

        if self.export_dir:
            try:
                write_document_note(document, self.export_dir)
            except OSError as e:
                logger.warning(f"Markdown export failed for job {job_id}: {e}")
