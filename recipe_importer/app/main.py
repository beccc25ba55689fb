# recipe_importer/app/main.py
from __future__ import annotations

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from recipe_importer.app.config import get_settings
from recipe_importer.app.deps import get_supabase
from recipe_importer.app.infra.db.supabase_jobs_repo import SupabaseImportJobRepository
from recipe_importer.app.routers.imports import router as imports_router
from recipe_importer.app.services import import_queue

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Recipe Importer API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports_router)


@app.on_event("startup")
async def startup() -> None:
    # PENDING and PROCESSING jobs left by a previous process will never be picked up again.
    repo = SupabaseImportJobRepository(get_supabase())
    released = await run_in_threadpool(repo.release_stale_jobs, settings.STALE_JOB_MINUTES)
    if released:
        logger.warning("Failed %d import jobs abandoned by a previous process", released)
    await import_queue.start_worker()


@app.on_event("shutdown")
async def shutdown() -> None:
    await import_queue.stop_worker()


@app.get("/health")
def health():
    return {"ok": True}
