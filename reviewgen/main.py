from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reviewgen.config import settings
from reviewgen.jobs.manager import JobManager
from reviewgen.pipeline.orchestrator import create_orchestrator
from reviewgen.storage.database import Database
from reviewgen.web.routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    db = Database(settings.db_path)
    await db.connect()

    app.state.db = db
    app.state.job_manager = JobManager(
        db,
        create_orchestrator(settings),
        session_timeout=settings.session_timeout,
        export_dir=settings.markdown_export_path,
    )

    logger.info(f"Review generator running at http://{settings.web_host}:{settings.web_port}")
    yield

    # Shutdown
    await db.close()


app = FastAPI(title="Review Generator", lifespan=lifespan)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reviewgen.main:app",
        host=settings.web_host,
        port=settings.web_port,
        reload=True,
    )
