from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from reelsynth.config import get_settings
from reelsynth.services.catalog import RedisCatalog
from reelsynth.services.elevenlabs_client import ElevenLabsClient
from reelsynth.services.gemini_client import GeminiClient
from reelsynth.services.image_client import FalImageClient
from reelsynth.services.storage import StorageService
from reelsynth.services.workspace import WorkspaceManager
from reelsynth.workers.pipeline import PipelineOrchestrator, PipelineServices
from reelsynth.routers import videos


def build_services() -> PipelineServices:
    """Construct every capability adapter once; jobs share them."""
    elevenlabs = ElevenLabsClient()
    storage = StorageService()
    storage_ready = storage.ensure_buckets()

    return PipelineServices(
        script_model=GeminiClient(),
        speech=elevenlabs,
        images=FalImageClient(),
        transcriber=elevenlabs,
        storage=storage,
        catalog=RedisCatalog(),
        workspace=WorkspaceManager(),
        storage_ready=bool(storage_ready),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    services = build_services()
    app.state.services = services
    app.state.orchestrator = PipelineOrchestrator(services)

    if services.storage_ready:
        print("✅ Storage bucket initialized", flush=True)
    else:
        # Keep the API up; publishing and deleting fail with 502 until storage is reachable.
        print(
            "⚠️ Storage is not ready. Configure MINIO_ENDPOINT / MINIO_ACCESS_KEY / MINIO_SECRET_KEY (or S3-compatible endpoint).",
            flush=True,
        )

    yield

    print("👋 Shutting down...", flush=True)


settings = get_settings()

app = FastAPI(
    title=settings.app.app_name,
    description="Short-form video generator: script, narration, images, subtitles, render, publish",
    version="1.0.0",
    lifespan=lifespan
)

origins = [o.strip() for o in (settings.app.cors_origins or "").split(",") if o.strip()]

# Wildcard + credentials is not valid CORS.
allow_credentials = True
if "*" in origins:
    origins = ["*"]
    allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(videos.router, prefix="/api/videos", tags=["Videos"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app.app_name,
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    settings = get_settings()
    services = getattr(app.state, "services", None)
    return {
        "status": "healthy",
        "services": {
            "gemini_configured": bool(settings.gemini.api_key),
            "elevenlabs_configured": bool(settings.elevenlabs.api_key),
            "fal_configured": bool(settings.fal.api_key),
            "minio_endpoint": settings.minio.endpoint,
            "storage_ready": bool(services.storage_ready) if services else False,
            "redis_url": settings.redis_url,
        }
    }
