# ============================================================================
# FastAPI Application Entry Point
# ============================================================================
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import uvicorn

from app.config import get_settings
from app.core.exceptions import PracticeException
from app.services.analytics.exporter import LearningAnalyticsExporter
from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.practice.evaluator import GeminiEvaluator
from app.services.practice.repository import InMemorySessionRepository, RedisSessionRepository
from app.services.practice.session_service import PracticeSessionService

settings = get_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

def build_repository():
    """Session store selected by SESSION_STORE"""
    if settings.SESSION_STORE == "redis":
        from app.core.redis import create_redis_client
        return RedisSessionRepository(create_redis_client())
    return InMemorySessionRepository()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    logger.info(f"🚀 Starting {settings.APP_NAME}...")

    judge_client = JudgeClient(settings)
    grading_engine = GradingEngine(judge_client, settings=settings)
    exporter = LearningAnalyticsExporter(settings=settings)
    repository = build_repository()

    app.state.judge_client = judge_client
    app.state.grading_engine = grading_engine
    app.state.exporter = exporter
    app.state.practice_service = PracticeSessionService(
        repository=repository,
        evaluator=GeminiEvaluator(),
        judge=judge_client,
        grading=grading_engine,
        exporter=exporter,
        settings=settings
    )
    logger.info(f"✅ Session store: {type(repository).__name__}")

    # Judge availability is informational only; executions are not gated on it
    if await judge_client.check_availability():
        logger.info(f"✅ Judge0 reachable at {judge_client.base_url}")
    else:
        logger.warning(f"⚠️ Judge0 not reachable at {judge_client.base_url} (non-critical)")

    logger.info("🎉 Application started successfully!")

    yield

    # Shutdown
    logger.info("👋 Shutting down...")
    await exporter.close()
    if isinstance(repository, RedisSessionRepository):
        await repository.client.aclose()

app = FastAPI(
    title=settings.APP_NAME,
    description="Code practice grading service: sandboxed test runs, hints and AI review",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handler
@app.exception_handler(PracticeException)
async def practice_exception_handler(request: Request, exc: PracticeException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code}
    )

# Health Check - Root level
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
async def health_check(request: Request):
    judge_client = getattr(request.app.state, "judge_client", None)
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "judge_available": judge_client.is_available if judge_client else None
    }

from app.api.v1.router import api_router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)

def run():
    """Serve the API with uvicorn"""
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )

if __name__ == "__main__":
    run()
