"""Main FastAPI application for the Coach API."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coach_api import __version__
from coach_api.errors import RelayError
from coach_api.middleware.cors import add_cors_middleware
from coach_api.routers import chat_router, conversations_router, livestream_router
from coach_api.routers.chat import chat_relay
from coach_api.services.message_store import close_stores
from coach_api.utils.logger import configure_logging

import logging

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(
    title="Coach API",
    description="Streaming coach chat relay, conversation messages and livestream bookkeeping",
    version=__version__,
)

# Add CORS middleware
add_cors_middleware(app)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    """Render taxonomy errors as ``{"error": message}`` with their status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.on_event("shutdown")
async def shutdown_event():
    """Let detached reply accumulations finish, then release stores."""
    if chat_relay.pending:
        logger.info(f"Waiting for {chat_relay.pending} background accumulation(s)")
    await chat_relay.wait_idle()
    await close_stores()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "title": "Coach API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Same relay under the managed backend's function path and a short alias
app.include_router(chat_router, prefix="/functions/v1")
app.include_router(chat_router)
app.include_router(conversations_router)
app.include_router(livestream_router)


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run("coach_api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
