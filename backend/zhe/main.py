import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import cron, links
from .config import settings
from .core.exceptions import SlugConflictError, StoreError, ValidationError
from .core.logging_config import configure_logging
from .database import SQLAlchemyExecutor, get_executor, init_models
from .services.kv_client import is_kv_configured
from .services.kv_sync import perform_kv_sync

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    executor = get_executor()
    if isinstance(executor, SQLAlchemyExecutor):
        await init_models(executor.engine)
        logger.info("Database tables initialized/checked.")

    # One sync per process start seeds the history and repairs any drift
    app.state.startup_sync = None
    if settings.SYNC_ON_STARTUP and is_kv_configured():
        app.state.startup_sync = asyncio.create_task(perform_kv_sync())

    yield

    task = app.state.startup_sync
    if task is not None and not task.done():
        task.cancel()
    if isinstance(executor, SQLAlchemyExecutor):
        await executor.engine.dispose()


# Initialize FastAPI app
app = FastAPI(
    title="Zhe",
    description="Link shortener with an edge-cached redirect path",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(links.router, prefix="/api", tags=["links"])
app.include_router(cron.router, prefix="/api", tags=["sync"])


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SlugConflictError)
async def slug_conflict_handler(request: Request, exc: SlugConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "zhe", "version": app.version}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
