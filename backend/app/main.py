"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import engine, get_db
from app.models import Base
from app.services.errors import InvalidInputError, ProfileServiceError
from app.services.file_utils import ensure_directory

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the backup folder on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await ensure_directory(settings.BACKUP_FOLDER_PATH)
    if not settings.BROWSER_PROFILES_PATH:
        logger.warning("BROWSER_PROFILES_PATH is not set; backup and restore will fail")

    yield

    await engine.dispose()


app = FastAPI(
    title="Browser Profile Backup API",
    version="1.0.0",
    description="Back up, restore and tag browser profile directories.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(ProfileServiceError)
async def service_error_handler(request: Request, exc: ProfileServiceError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Verify API and database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from app.routes.profiles import router as profiles_router
from app.routes.tags import router as tags_router
from app.routes.backups import router as backups_router
app.include_router(profiles_router)
app.include_router(tags_router)
app.include_router(backups_router)
