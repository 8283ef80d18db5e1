"""
FastAPI application for the lead CRM.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from api.dependencies import get_draft_generator, get_message_source, get_repositories
from api.routes import router
from config import settings
from jobs import job_scheduler
from observability import trace_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown."""
    # Startup
    trace_logger.info("Starting Lead CRM API")
    try:
        settings.validate_api_keys()
    except ValueError as e:
        # drafts fall back to NeedsReview without an LLM key
        trace_logger.warning("LLM provider not configured", error=str(e))

    job_scheduler.start(
        repositories_factory=get_repositories,
        message_source_factory=get_message_source,
        draft_generator_factory=get_draft_generator
    )

    yield

    # Shutdown
    job_scheduler.stop()
    trace_logger.info("Shutting down Lead CRM API")


app = FastAPI(
    title="Real Estate Lead CRM",
    description="Lead intake, scoring, inbox polling and AI draft approval",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "message": "Invalid request payload",
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


# Include routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Real Estate Lead CRM",
        "version": "1.0.0",
        "status": "operational"
    }
