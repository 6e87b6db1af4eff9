import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from google.cloud import storage
from openai import AsyncOpenAI

from app.config import Settings, load_settings, parse_origins
from app.logging_setup import configure_logging
from app.models import HealthResponse
from routes.video import SERVICE_NAME, SERVICE_VERSION, health_payload, router as video_router
from services.audio import AudioExtractor
from services.content_analysis import AnalysisSettings, ContentAnalysisClient
from services.coordinator import SessionCoordinator
from services.downloader import MediaAcquirer
from services.gcs import StoragePublisher
from services.transcriber import TranscriptionClient

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))
logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> tuple[SessionCoordinator, ContentAnalysisClient]:
    """Wire the stage components from settings. Clients are shared by every session."""
    openai_client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
    analyzer = ContentAnalysisClient(
        openai_client,
        AnalysisSettings(
            model=settings.analysis_model,
            max_tokens=settings.analysis_max_tokens,
            temperature=settings.analysis_temperature,
        ),
    )
    acquirer = MediaAcquirer(
        settings.temp_dir,
        binary=settings.ytdlp_binary,
        timeout=settings.stage_timeout_seconds,
    )
    acquirer.ensure_temp_dir()
    coordinator = SessionCoordinator(
        acquirer=acquirer,
        publisher=StoragePublisher(
            bucket_name=settings.gcs_bucket,
            # Built eagerly so missing Google credentials stop startup.
            client=storage.Client(project=settings.gcs_project),
            signed_url_seconds=settings.gcs_signed_url_seconds,
        ),
        extractor=AudioExtractor(
            settings.temp_dir,
            ffmpeg_binary=settings.ffmpeg_binary,
            ffprobe_binary=settings.ffprobe_binary,
            timeout=settings.stage_timeout_seconds,
        ),
        transcriber=TranscriptionClient(
            openai_client,
            model=settings.transcription_model,
            language=settings.transcription_language,
        ),
        analyzer=analyzer,
    )
    return coordinator, analyzer


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Pre-wired state (tests) skips the environment entirely.
    if getattr(app.state, "coordinator", None) is None:
        settings = load_settings()
        configure_logging(settings.log_level)
        app.state.settings = settings
        app.state.coordinator, app.state.analyzer = build_pipeline(settings)
        logger.info(
            "[main] %s v%s ready env=%s temp_dir=%s bucket=%s",
            SERVICE_NAME,
            SERVICE_VERSION,
            settings.environment,
            settings.temp_dir,
            settings.gcs_bucket,
        )
    yield
    logger.info("[main] Shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title=f"{SERVICE_NAME} API", version=SERVICE_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_origins(os.environ.get("CORS_ORIGINS")),
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        settings = getattr(app.state, "settings", None)
        environment = settings.environment if settings else os.environ.get("APP_ENV", "").strip() or "development"
        return health_payload(environment)

    @app.get("/api")
    def api_docs() -> dict:
        return {
            "name": f"{SERVICE_NAME} API",
            "version": SERVICE_VERSION,
            "description": "Analyzes social media videos to extract hooks, CTAs, and USPs",
            "endpoints": {
                "POST /api/video/analyze": "Analyze video content from URL (Server-Sent Events)",
                "POST /api/video/analyze/variant": "Re-analyze a transcript at another temperature",
                "GET /api/video/status": "Get service status",
                "GET /api/video/health": "Health check endpoint",
            },
            "documentation": {
                "analyze": {
                    "method": "POST",
                    "url": "/api/video/analyze",
                    "body": {"url": "string (required) - Video URL to analyze"},
                    "response": "Server-Sent Events stream with progress updates",
                },
            },
        }

    app.include_router(video_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )
