from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .routers import gardens
from .database import engine, Base
from .services import (
    CacheCoordinationFailure,
    LayoutCoordinator,
    OptimizationFailure,
    ValidationFailure,
)

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    app.state.layout_coordinator = LayoutCoordinator(
        ttl_seconds=config.LAYOUT_CACHE_TTL_SECONDS,
        max_entries=config.LAYOUT_CACHE_MAX_ENTRIES,
    )
    logger.info(
        f"Layout cache ready (ttl={config.LAYOUT_CACHE_TTL_SECONDS}s, "
        f"max_entries={config.LAYOUT_CACHE_MAX_ENTRIES})"
    )
    yield
    app.state.layout_coordinator.clear()
    logger.info("Layout cache cleared")


app = FastAPI(
    title="Garden Planner API",
    version="1.0.0",
    description="Garden layout optimization: zone assignment under sunlight, space and companion constraints",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_detail(exc: Exception) -> str:
    return str(exc) if config.ENVIRONMENT == "development" else "Internal server error"


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic puts the raised ValueError in ctx; keep only its message
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


# Domain error handlers
@app.exception_handler(ValidationFailure)
async def garden_validation_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=exc.to_dict()
    )

@app.exception_handler(OptimizationFailure)
async def optimization_failure_handler(request: Request, exc: OptimizationFailure):
    logger.error(f"Optimization failure: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Layout optimization failed. Please try again later.",
            "error": _error_detail(exc)
        }
    )

@app.exception_handler(CacheCoordinationFailure)
async def cache_coordination_handler(request: Request, exc: CacheCoordinationFailure):
    # Waiters see the same status the computing request saw
    if isinstance(exc.original, ValidationFailure):
        return await garden_validation_handler(request, exc.original)
    logger.error(f"Shared layout computation failed: {exc.original}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Layout optimization failed. Please try again later.",
            "error": _error_detail(exc.original)
        }
    )

# Global error handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": jsonable_errors(exc),
            "message": "Validation error - please check your input"
        }
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "An internal error occurred. Please try again later.",
            "error": _error_detail(exc)
        }
    )


# Include routers
app.include_router(gardens.router)

@app.get("/")
async def root():
    return {
        "message": "Garden Planner API",
        "version": "1.0.0",
        "status": "running",
        "environment": config.ENVIRONMENT
    }

@app.get("/health")
async def health(request: Request):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "layout_cache": request.app.state.layout_coordinator.stats()
    }
