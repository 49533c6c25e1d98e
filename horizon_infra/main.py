from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncio
import logging
import time
from .api import instances, services
from .config import settings
from .database import engine, Base, SessionLocal
from .services import HealthMonitor, InstanceRegistry
from .utils.logger import setup_logger

setup_logger("horizon_infra", level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

async def health_check_loop(interval_seconds: int):
    """Probe every registered instance on a fixed interval until cancelled"""
    while True:
        db = SessionLocal()
        try:
            instances = InstanceRegistry(db).list_instances()
            if instances:
                await HealthMonitor(db).probe_all(instances, skip_busy=True)
        except Exception as e:
            logger.error(f"Scheduled health check failed: {e}")
        finally:
            db.close()
        await asyncio.sleep(interval_seconds)

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = None
    if settings.HEALTH_CHECK_INTERVAL_SECONDS > 0:
        logger.info(f"Scheduling health checks every {settings.HEALTH_CHECK_INTERVAL_SECONDS}s")
        task = asyncio.create_task(health_check_loop(settings.HEALTH_CHECK_INTERVAL_SECONDS))
    yield
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

app = FastAPI(
    title="Horizon Infrastructure API",
    description="Instance registration, service discovery, health monitoring and plugin bindings",
    version="1.0.0",
    lifespan=lifespan
)

# Custom middleware to add request timeouts and isolation
@app.middleware("http")
async def timeout_middleware(request: Request, call_next):
    path = request.url.path
    timeout_seconds = 30  # Default timeout

    if path.endswith("/discover"):
        timeout_seconds = settings.DISCOVERY_TIMEOUT + 10  # Sweeps enforce their own deadline first
    elif path.endswith("/health-check"):
        timeout_seconds = 300  # Bulk probes run one deadline per instance
    elif path.endswith("/execute"):
        timeout_seconds = settings.SSH_COMMAND_TIMEOUT + settings.SSH_CONNECT_TIMEOUT + 5

    start_time = time.time()

    try:
        response = await asyncio.wait_for(
            call_next(request),
            timeout=timeout_seconds
        )

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        return response

    except asyncio.TimeoutError:
        logger.warning(f"Request to {path} timed out after {timeout_seconds} seconds")
        return JSONResponse(
            status_code=408,
            content={
                "detail": f"Request timed out after {timeout_seconds} seconds",
                "timeout": timeout_seconds,
                "path": path
            }
        )
    except Exception as e:
        logger.exception(f"Unhandled error on {path}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": f"Internal server error: {str(e)}",
                "path": path
            }
        )

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(instances.router, prefix=f"{settings.API_PREFIX}/infrastructure", tags=["instances"])
app.include_router(services.router, prefix=f"{settings.API_PREFIX}/infrastructure", tags=["services"])

@app.get("/")
async def root():
    return {"message": "Horizon Infrastructure API", "version": "1.0.0"}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": time.time()}
