"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ingestion.api.analyze import router as analyze_router
from ingestion.api.dashboards import router as dashboards_router
from ingestion.api.mappings import router as mappings_router
from ingestion.api.status import router as status_router
from ingestion.api.upload import router as upload_router
from ingestion.database import Base, SessionLocal, engine
from ingestion.exceptions import IngestionError
from ingestion.models import UploadedFile  # noqa: F401 - Import to register models
from ingestion.services.field_dictionary import seed_standard_fields

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),  # Console output
        logging.FileHandler("ingestion.log"),  # File output
    ],
)

# Set specific log levels for noisy libraries
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables and seed the standard field dictionary on startup."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_standard_fields(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Foreko Data Ingestion",
    description="Upload business data files, map their columns and standardize them for dashboards",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(upload_router)
app.include_router(analyze_router)
app.include_router(mappings_router)
app.include_router(status_router)
app.include_router(dashboards_router)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError):
    """Render pipeline errors with their status code and category."""
    if exc.status_code >= 500:
        logger.error(f"{exc.category} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"💥 Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
