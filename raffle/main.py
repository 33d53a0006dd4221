import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from pymongo.errors import PyMongoError

from raffle.database import Database
from raffle.core.scheduler import setup_scheduler, start_scheduler, stop_scheduler
from raffle.routes.contest.contest_routes import router as contest_router
from raffle.routes.contest.submission_routes import router as submission_router
from raffle.routes.contest.task_routes import router as task_router
from raffle.routes.contest.winner_routes import contest_router as contest_winner_router, winner_router
from raffle.utils.response import error_response

# Load environment variables
load_dotenv()

# Get environment variables
APP_NAME = os.getenv("APP_NAME", "RaffleContest")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "True").lower() == "true"

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    await Database.connect_db()

    if ENABLE_SCHEDULER:
        setup_scheduler()
        start_scheduler()

    yield
    # Shutdown
    stop_scheduler()
    await Database.close_db()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description="Raffle contest API: contests, task-gated submissions and winner draws",
    lifespan=lifespan
)

# CORS middleware
# In development, allow all origins for easier testing
DEBUG = os.getenv("DEBUG", "True").lower() == "true"

cors_origins = [
    FRONTEND_URL,
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if not DEBUG else ["*"],
    allow_credentials=not DEBUG,  # Can't use credentials with wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    """Storage faults are not business outcomes: report them as 503"""
    logger.error(f"[ERROR] Storage failure on {request.method} {request.url.path}: {exc}")
    return error_response(
        message="Storage temporarily unavailable",
        status_code=503,
        reason="storage_unavailable"
    )


# Include routers with /api prefix
# System and fixed paths are declared before /contests/{contest_id}
app.include_router(contest_router, prefix="/api")
app.include_router(submission_router, prefix="/api")
app.include_router(task_router, prefix="/api")
app.include_router(contest_winner_router, prefix="/api")
app.include_router(winner_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {APP_NAME} API",
        "version": APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
