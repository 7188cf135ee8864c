"""
Hub Server

FastAPI adapter over the pipeline orchestrator.

Endpoints:
- POST /events/{source}: Run one provider payload through the pipeline
- GET /tasks: Ranked tasks
- GET /tasks/{task_id}: One task
- POST /tasks/{task_id}/status: Complete or reopen a task
- GET /events: Recently processed events
- GET /stats: Event and task counters
- GET /health: Health check
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel

from ..common.config import HubConfig, ensure_directories, load_config
from ..common.errors import RejectedEventError
from ..tasks import NOT_FOUND
from .orchestrator import PipelineOrchestrator, build_orchestrator

logger = logging.getLogger("hub.pipeline.server")


# Global state
config: Optional[HubConfig] = None
orchestrator: Optional[PipelineOrchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the pipeline on startup"""
    global config, orchestrator

    logger.info("Starting up...")
    ensure_directories()

    config = load_config()
    orchestrator = build_orchestrator(config)
    logger.info("Ready to receive events")

    yield

    logger.info("Shutting down...")
    if orchestrator is not None:
        orchestrator.close()


app = FastAPI(
    title="Triage Hub",
    description="Event triage and task synthesis",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class StatusUpdate(BaseModel):
    """Task status change request"""
    status: str  # "pending" or "completed"


def _require_orchestrator() -> PipelineOrchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return orchestrator


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "hub",
        "initialized": orchestrator is not None,
        "triage_tiers": orchestrator.triage_engine.tier_names if orchestrator else [],
    }


@app.post("/events/{source}")
async def ingest_event(source: str, payload: Any = Body(default=None)):
    """
    Run a provider payload through the pipeline.

    Slack url_verification challenges are answered directly.
    """
    pipeline = _require_orchestrator()

    if isinstance(payload, dict) and payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge", "")}

    try:
        result = await pipeline.run_pipeline({"source": source, "payload": payload})
    except RejectedEventError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return result.model_dump(mode="json")


@app.get("/tasks")
async def get_tasks(limit: int = 10):
    """Ranked tasks, most urgent first"""
    pipeline = _require_orchestrator()
    tasks = pipeline.rank_tasks(limit)
    return {
        "count": len(tasks),
        "tasks": [t.model_dump(mode="json") for t in tasks],
    }


@app.get("/tasks/{task_id}")
async def get_task(task_id: str):
    """Get a specific task"""
    pipeline = _require_orchestrator()
    task = pipeline.store.get(task_id)
    if task is NOT_FOUND:
        raise HTTPException(status_code=404, detail="Task not found")
    return task.model_dump(mode="json")


@app.post("/tasks/{task_id}/status")
async def update_task_status(task_id: str, update: StatusUpdate):
    """Complete or reopen a task"""
    pipeline = _require_orchestrator()
    try:
        task = pipeline.update_task_status(task_id, update.status)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if task is NOT_FOUND:
        raise HTTPException(status_code=404, detail="Task not found")
    return task.model_dump(mode="json")


@app.get("/events")
async def get_events(limit: int = 10):
    """Recently processed events, newest first"""
    pipeline = _require_orchestrator()
    return {"events": pipeline.recent_events(limit)}


@app.get("/stats")
async def get_stats():
    """Event and task statistics"""
    pipeline = _require_orchestrator()
    stats: Dict[str, Any] = {
        "service": "hub",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    stats.update(pipeline.stats())
    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the hub server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config()

    logger.info("Starting server on %s:%d", config.server.host, config.server.port)
    uvicorn.run(
        "hub.pipeline.server:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
