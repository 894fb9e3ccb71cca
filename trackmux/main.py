import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Security, HTTPException
from fastapi.security import APIKeyQuery, APIKeyHeader
from starlette.middleware.cors import CORSMiddleware

from trackmux.configs import settings
from trackmux.remuxer.engine import FFmpegEngine
from trackmux.remuxer.gateway import MediaEngineGateway
from trackmux.remuxer.pipeline import TrackPipeline
from trackmux.remuxer.remux_plan import RemuxOptions
from trackmux.routes import tracks_router, media_router, sources_router
from trackmux.services import get_track_service

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_pipeline() -> TrackPipeline:
    """Build the pipeline over an ffmpeg engine as configured. The engine loads lazily on first use."""
    engine = FFmpegEngine(settings.ffmpeg_path, settings.engine_workdir)
    gateway = MediaEngineGateway(engine, busy_policy=settings.engine_busy_policy)
    return TrackPipeline(gateway, RemuxOptions.from_settings(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.pipeline.gateway.close()


app = FastAPI(lifespan=lifespan)
app.state.pipeline = create_pipeline()
app.state.track_service = get_track_service()
api_password_query = APIKeyQuery(name="api_password", auto_error=False)
api_password_header = APIKeyHeader(name="api_password", auto_error=False)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def verify_api_key(api_key: str = Security(api_password_query), api_key_alt: str = Security(api_password_header)):
    """
    Verifies the API key for the request.

    Args:
        api_key (str): The API key to validate.
        api_key_alt (str): The alternative API key to validate.

    Raises:
        HTTPException: If the API key is invalid.
    """
    if not settings.api_password:
        return

    if api_key == settings.api_password or api_key_alt == settings.api_password:
        return

    raise HTTPException(status_code=403, detail="Could not validate credentials")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "engine_ready": app.state.pipeline.gateway.is_ready()}


app.include_router(tracks_router, prefix="/tracks", tags=["tracks"], dependencies=[Depends(verify_api_key)])
app.include_router(media_router, prefix="/media", tags=["media"], dependencies=[Depends(verify_api_key)])
app.include_router(sources_router, prefix="/sources", tags=["sources"], dependencies=[Depends(verify_api_key)])


def run():
    import uvicorn

    # One worker: the media engine is single-flight per process
    uvicorn.run(app, host="0.0.0.0", port=8888, log_level="info")


if __name__ == "__main__":
    run()
