from contextlib import asynccontextmanager

from fastapi import FastAPI

from media_gc import __version__
from media_gc.api import jobs
from media_gc.logging_config import configure_logging, logger
from media_gc.models.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    logger.info("media-gc API starting up")
    yield
    logger.info("media-gc API shutting down")


app = FastAPI(
    title="media-gc API",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(jobs.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "media-gc API",
        "version": __version__,
        "description": "Orphaned media garbage collector",
    }


if __name__ == "__main__":
    import uvicorn

    from media_gc.config.settings import get_settings

    settings = get_settings()
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)
