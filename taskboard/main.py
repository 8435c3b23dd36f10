import asyncio
import fcntl
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from taskboard.config import settings
from taskboard.database import AsyncSessionLocal
from taskboard.errors import TaskBoardError
from taskboard.logging_setup import setup_logging
from taskboard.routers.categories import router as categories_router
from taskboard.routers.tasks import router as tasks_router
from taskboard.services.email_worker import NotificationQueue, email_worker
from taskboard.services.scheduler import setup_scheduler

logger = logging.getLogger(__name__)

SCHEDULER_LOCK_FILE = "/tmp/taskboard_scheduler.lock"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    # Only the first worker to grab the file lock runs the reminder job.
    lock_fd = None
    scheduler = None
    if settings.REMINDER_JOB_ENABLED:
        try:
            lock_fd = open(SCHEDULER_LOCK_FILE, "w")
            fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            logger.info("Process %s acquired scheduler lock, starting APScheduler", os.getpid())
            scheduler = setup_scheduler(AsyncSessionLocal, NotificationQueue(AsyncSessionLocal))
        except OSError:
            logger.info("Process %s: another worker runs the scheduler", os.getpid())
            if lock_fd:
                lock_fd.close()
                lock_fd = None

    # asyncio.Queue is per process, so every worker drains its own queue
    worker_task = asyncio.create_task(email_worker(AsyncSessionLocal))

    yield

    if scheduler:
        scheduler.shutdown(wait=True)
    if lock_fd:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
        lock_fd.close()

    worker_task.cancel()
    try:
        await worker_task
    except asyncio.CancelledError:
        logger.info("Email worker shut down")


app = FastAPI(
    lifespan=lifespan,
    title="Task Board API",
    description="Workspace task ordering, assignment and collaboration",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex="https?://.*",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskBoardError)
async def taskboard_error_handler(request: Request, exc: TaskBoardError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"status": "error", "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "message": "Validation failed",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


# Global exception handler to ensure CORS headers on failure
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Credentials": "true"
        }
    )


app.include_router(tasks_router)
app.include_router(categories_router)


@app.get("/")
def root():
    return {"message": "Task Board API running"}
