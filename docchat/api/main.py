"""
FastAPI app for the document chat core

Thin HTTP surface over ingestion, retry, transcript checks and chat turns.
"""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docchat import __version__
from docchat.api.routes import chat, documents, youtube
from docchat.core.config import get_settings
from docchat.core.database import init_db
from docchat.core.documents.errors import ConfigurationError
from docchat.core.logging_setup import configure_logging
from docchat.core.services import create_shared_clients

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)
error_logger = logging.getLogger("api.errors")


app = FastAPI(
    title="DocChat API",
    description="Document ingestion and retrieval-augmented chat",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors with an ID; return a generic message to clients."""
    error_id = str(uuid.uuid4())
    error_logger.error(
        f"Error {error_id}: {type(exc).__name__}: {exc}",
        exc_info=True,
        extra={"error_id": error_id, "path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An internal error occurred",
            "error_id": error_id,
        }
    )


@app.on_event("startup")
async def startup_event():
    """Initialize database and shared clients on startup"""
    try:
        init_db(settings)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    try:
        app.state.shared_clients = create_shared_clients(settings)
        logger.info("Shared clients initialized")
    except ConfigurationError as e:
        # Endpoints answer 503 until the configuration is fixed
        logger.error(f"Service configuration incomplete: {e}")


app.include_router(documents.router)
app.include_router(chat.router)
app.include_router(youtube.router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": __version__,
        "configured": getattr(app.state, "shared_clients", None) is not None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.api_port)
