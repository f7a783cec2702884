from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auratask.config import settings
from auratask.deps import get_collaborators
from auratask.errors import DomainError
from auratask.routers.ai import router as ai_router
from auratask.routers.invites import router as invites_router
from auratask.routers.organizations import router as organizations_router
from auratask.routers.performance import router as performance_router
from auratask.routers.tasks import router as tasks_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="AuraTask API", version="0.1.0")


@app.exception_handler(DomainError)
async def _domain_error_handler(_, exc: DomainError) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail()})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(organizations_router)
app.include_router(tasks_router)
app.include_router(invites_router)
app.include_router(performance_router)
app.include_router(ai_router)


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("shutdown")
async def _drain_background_jobs() -> None:
  collab = get_collaborators()
  if collab.dispatcher.pending:
    logger.info("waiting for %d background job(s)", collab.dispatcher.pending)
  await collab.dispatcher.drain()
