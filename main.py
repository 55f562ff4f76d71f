"""
Topic-to-Video Pipeline - FastAPI Main Application

Turns a short educational topic into a narrated video: script, narration,
stock media sourcing and ranking, then assembly from a caller-chosen
selection.

Version: 1.0.0
"""

import logging
import sys
from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path
from typing import List

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from models.schemas import (
    AssembleRequest,
    CreateProjectRequest,
    ForceStatusRequest,
    MediaCandidate,
    Project,
    RunResponse,
)
from pipeline.errors import PipelineError
from pipeline.orchestrator import PipelineOrchestrator

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_orchestrator() -> PipelineOrchestrator:
    """Shared orchestrator, so per-project locks span all requests."""
    return PipelineOrchestrator(settings=settings)


# === Lifespan Events ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events for startup and shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    Path(settings.output_dir).mkdir(parents=True, exist_ok=True)

    # Validate API keys
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set - script generation will fail")
    if not settings.elevenlabs_api_key:
        logger.warning("ELEVENLABS_API_KEY not set - narration will fail")
    if not settings.pexels_api_key and not settings.giphy_api_key:
        logger.warning("PEXELS_API_KEY and GIPHY_API_KEY not set - no media will be sourced")
    if not settings.render_api_url:
        logger.warning("RENDER_API_URL not set - video assembly will fail")

    yield

    # Shutdown
    logger.info("Shutting down Topic-to-Video Pipeline...")


# === FastAPI App ===

app = FastAPI(
    title=settings.app_name,
    description="""
    ## Topic-to-Video Pipeline API

    Turn an educational topic into a narrated video.

    ### Workflow
    1. `POST /projects` - Create a project from a topic
    2. `POST /projects/{id}/advance` - Run the next stage (or `/run` to run
       in the background until media is ready)
    3. `GET /projects/{id}/media` - Review the scored media candidates
    4. `POST /projects/{id}/assemble` - Render the video from your selection
    5. `GET /projects/{id}` - Get the final video URL
    """,
    version=settings.app_version,
    lifespan=lifespan
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Narration audio is served from the outputs directory
app.mount("/outputs", StaticFiles(directory=settings.output_dir, check_dir=False), name="outputs")


# === API Endpoints ===

@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check with configuration status."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "checks": {
            "openai_api_key": bool(settings.openai_api_key),
            "elevenlabs_api_key": bool(settings.elevenlabs_api_key),
            "pexels_api_key": bool(settings.pexels_api_key),
            "giphy_api_key": bool(settings.giphy_api_key),
            "render_api_url": bool(settings.render_api_url),
        },
        "config": {
            "media_results_per_call": settings.media_results_per_call,
            "search_timeout_seconds": settings.search_timeout_seconds,
            "render_timeout_seconds": settings.render_timeout_seconds
        }
    }


@app.post(
    "/projects",
    response_model=Project,
    tags=["Projects"],
    summary="Create a project",
    description="Create a video project from a topic. The project starts pending."
)
async def create_project(
    request: CreateProjectRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Create a new video project.

    **Request Body:**
    - `topic`: What the video explains
    - `duration_preference`: short, medium or long (optional)
    - `voice_preference`: Narrator voice id (optional)
    - `visual_style`: images, videos or mixed (default: mixed)
    """
    logger.info(f"New project request: {request.topic[:50]}...")
    return orchestrator.create_project(
        topic=request.topic,
        duration_preference=request.duration_preference,
        voice_preference=request.voice_preference,
        visual_style=request.visual_style
    )


@app.get("/projects", response_model=List[Project], tags=["Projects"])
async def list_projects(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """List all projects, newest first."""
    return orchestrator.list_projects()


@app.get("/projects/{project_id}", response_model=Project, tags=["Projects"])
async def get_project(project_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Get a project with its current stage and artifacts."""
    return orchestrator.get_project(project_id)


@app.post(
    "/projects/{project_id}/advance",
    response_model=Project,
    tags=["Pipeline"],
    summary="Run the next stage"
)
async def advance_project(project_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """
    Run the next automatic stage and return the updated project.

    Terminal projects, and projects waiting for a media selection, are
    returned unchanged. If the stage fails the project is marked failed and
    the error is returned.
    """
    return await orchestrator.advance(project_id)


@app.post(
    "/projects/{project_id}/run",
    response_model=RunResponse,
    status_code=202,
    tags=["Pipeline"],
    summary="Run in the background until media is ready"
)
async def run_project(
    project_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Run stages in the background until the project waits for a selection.

    Poll `GET /projects/{id}` for progress.
    """
    project = orchestrator.get_project(project_id)
    background_tasks.add_task(orchestrator.run_until_selection, project_id)

    return RunResponse(
        project_id=project.id,
        status=project.status,
        message="Pipeline started"
    )


@app.get("/projects/{project_id}/media", response_model=List[MediaCandidate], tags=["Pipeline"])
async def list_project_media(
    project_id: str,
    ranked: bool = False,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """List media candidates, in sourcing order or by score with `ranked=true`."""
    return orchestrator.list_media(project_id, ranked=ranked)


@app.post(
    "/projects/{project_id}/assemble",
    response_model=Project,
    tags=["Pipeline"],
    summary="Render the final video"
)
async def assemble_project(
    project_id: str,
    request: AssembleRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Render the final video from the selected media.

    **Request Body:**
    - `selected_media_ids`: Candidate ids in timeline order
    - `transition_style`: fade, slide or cut (default: fade)
    - `background_music`: Add background music (default: false)
    """
    return await orchestrator.assemble(
        project_id,
        request.selected_media_ids,
        transition_style=request.transition_style,
        background_music=request.background_music
    )


# === Admin Endpoints ===

@app.patch("/projects/{project_id}/status", response_model=Project, tags=["Admin"])
async def force_project_status(
    project_id: str,
    request: ForceStatusRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """Override a project's status without transition checks."""
    return orchestrator.force_status(project_id, request.status, request.error_message)


@app.delete("/projects/{project_id}", tags=["Admin"], include_in_schema=settings.debug)
async def delete_project(project_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Delete a project and its media (debug endpoint)."""
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not found")

    if orchestrator.delete_project(project_id):
        return {"deleted": project_id}
    else:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")


# === Run Server ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
