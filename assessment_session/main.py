from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import os
import logging
import time
from contextlib import asynccontextmanager

from assessment_session.api_client import SurveyApiClient
from assessment_session.constants import SURVEY_API_BASE_URL, SURVEY_API_COMPANY_SLUG
from assessment_session.logging_config import configure_logging
from assessment_session.routers import sessions

# Configure logging
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app.state.registry = sessions.SessionRegistry()
    if getattr(app.state, "gateway", None) is None:
        app.state.gateway = SurveyApiClient()
        app.state.owns_gateway = True
        logger.info(
            f"Survey API client ready: {SURVEY_API_BASE_URL} "
            f"(tenant: {SURVEY_API_COMPANY_SLUG or 'none'})"
        )

    yield

    # Shutdown
    app.state.registry.close_all()
    if getattr(app.state, "owns_gateway", False):
        await app.state.gateway.aclose()
        app.state.gateway = None
        app.state.owns_gateway = False
    logger.info("Assessment sessions closed")


app = FastAPI(
    title="Assessment Session Engine",
    description="Timed assessment sessions: question resolution, timing, auto-submit and scoring",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests for debugging"""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {process_time:.4f}s")
    return response


@app.get("/health")
async def health_check():
    registry = getattr(app.state, "registry", None)
    return {"status": "healthy", "sessions": len(registry) if registry is not None else 0}


# Include routers
app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])


def main():
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
