"""Video analysis API: SSE pipeline stream plus status and health. Mounted under /api."""

import asyncio
import logging
import os
import time

import psutil
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from app.models import (
    AnalysisBody,
    AnalyzeRequest,
    HealthResponse,
    StatusResponse,
    VariantRequest,
    VariantResponse,
)
from models import utc_timestamp
from services.content_analysis import MAX_TEMPERATURE, MIN_TEMPERATURE
from services.downloader import SUPPORTED_PLATFORMS
from services.errors import AnalysisError
from services.progress import ProgressStream

router = APIRouter(tags=["video"])
logger = logging.getLogger(__name__)

SERVICE_NAME = "Video Content Analyzer"
SERVICE_VERSION = "1.0.0"
SERVICE_START_TIME = time.time()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Sessions keep running after the client disconnects; hold a reference until they finish.
_running_sessions: set[asyncio.Task] = set()


def _environment(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    if settings is not None:
        return settings.environment
    return os.environ.get("APP_ENV", "").strip() or "development"


def health_payload(environment: str) -> HealthResponse:
    """Process liveness: uptime since import and resident/virtual memory in MB."""
    memory = psutil.Process().memory_info()
    return HealthResponse(
        status="healthy",
        timestamp=utc_timestamp(),
        uptime=round(time.time() - SERVICE_START_TIME, 3),
        memory={
            "rssMb": round(memory.rss / 1024 / 1024, 2),
            "vmsMb": round(memory.vms / 1024 / 1024, 2),
        },
        environment=environment,
    )


def _session_finished(task: asyncio.Task) -> None:
    _running_sessions.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error("[video] Session task crashed: %r", task.exception())


@router.post("/video/analyze")
async def analyze_video(body: AnalyzeRequest, request: Request) -> StreamingResponse:
    """Run the analysis pipeline for one URL and stream progress as Server-Sent Events."""
    coordinator = request.app.state.coordinator
    logger.info("[video] POST /api/video/analyze url=%s", body.url)

    stream = ProgressStream()
    task = asyncio.create_task(coordinator.run(body.url, stream))
    _running_sessions.add(task)
    task.add_done_callback(_session_finished)

    return StreamingResponse(stream.frames(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/video/analyze/variant", response_model=VariantResponse)
async def analyze_variant(body: VariantRequest, request: Request) -> VariantResponse:
    """Re-run the content analysis on an existing transcript at another temperature."""
    if not body.transcript.strip():
        raise HTTPException(status_code=400, detail="transcript is required")
    if not MIN_TEMPERATURE <= body.temperature <= MAX_TEMPERATURE:
        raise HTTPException(
            status_code=400,
            detail=f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}",
        )

    analyzer = request.app.state.analyzer
    logger.info("[video] POST /api/video/analyze/variant temperature=%.2f", body.temperature)
    try:
        result = await analyzer.analyze_variant(body.transcript, body.temperature)
    except AnalysisError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return VariantResponse(analysis=AnalysisBody(**result.to_dict()), temperature=body.temperature)


@router.get("/video/status", response_model=StatusResponse)
def get_status() -> StatusResponse:
    return StatusResponse(
        service=SERVICE_NAME,
        status="operational",
        timestamp=utc_timestamp(),
        version=SERVICE_VERSION,
        features={
            "videoDownload": "yt-dlp",
            "audioExtraction": "FFmpeg integration",
            "transcription": "OpenAI Whisper",
            "contentAnalysis": "OpenAI chat completions",
            "storage": "Google Cloud Storage",
        },
        supportedPlatforms=SUPPORTED_PLATFORMS,
    )


@router.get("/video/health", response_model=HealthResponse)
def video_health(request: Request) -> HealthResponse:
    return health_payload(_environment(request))
