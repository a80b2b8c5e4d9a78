from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from bomkit.core.config import get_settings
from bomkit.core.exceptions import ServiceError
from bomkit.routers.health import router as health_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="bomkit API",
    description="Bill-of-materials calculation and production planning - availability, bottlenecks, batch planning, stock ledger and low-stock alerts.",
    version="0.1.0",
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Map domain errors to structured 4xx responses."""
    if exc.status_code >= 409:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
        }),
    )


# Global exception handler for unhandled errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected server errors with structured response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": request.headers.get("X-Request-ID"),
        }
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for now
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from bomkit.routers.materials import router as materials_router
from bomkit.routers.recipes import router as recipes_router
from bomkit.routers.inventory import router as inventory_router
from bomkit.routers.production import router as production_router
from bomkit.routers.alerts import router as alerts_router

app.include_router(health_router)
app.include_router(materials_router, prefix="/api")
app.include_router(recipes_router, prefix="/api")
app.include_router(inventory_router, prefix="/api")
app.include_router(production_router, prefix="/api")
app.include_router(alerts_router, prefix="/api")

@app.get("/")
def read_root():
    return {
        "message": "Welcome to bomkit API",
        "docs": "/docs",
        "health": "/health"
    }
