import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .db.base import SessionLocal, engine

settings = get_settings()

logs_dir = Path(__file__).parent.parent / "logs"
logs_dir.mkdir(exist_ok=True)

# File log plus console
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(logs_dir / "mulvi.log", encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing credentials only fail chat requests; the rest of the API still serves
    if not (settings.OPENAI_API_KEY or "").strip():
        logger.error("OPENAI_API_KEY is not set; chat requests will fail until it is configured")
    else:
        logger.info("Completion provider configured: model=%s", settings.MODEL_NAME)
    logger.info("Mulvi API starting (environment=%s)", settings.ENVIRONMENT)
    try:
        yield
    finally:
        SessionLocal.remove()
        try:
            engine.dispose()
        except Exception as e:
            logger.warning("engine.dispose() failed: %s", e)


app = FastAPI(
    title="Mulvi API",
    description="Personalization context engine for the Mulvi prayer companion",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "environment": settings.ENVIRONMENT,
    }


from .api.v1.routers import chat, onboarding, prayer, users  # noqa: E402

for module in (chat, onboarding, prayer, users):
    app.include_router(module.router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {"message": "Assalamu alaikum from the Mulvi API", "docs": "/api/docs", "version": settings.VERSION}


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
