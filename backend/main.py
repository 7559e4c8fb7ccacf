import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import get_settings
from database import create_all_tables, wait_for_db
from errors import StoreQueryError, store_query_error_handler, unhandled_error_handler
from rate_limit import limiter
from routers.stats import router as stats_router
from routers.surveys import router as surveys_router
from services.timestamps import iso_timestamp

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Survey Stats API...")
    if settings.WAIT_FOR_DB:
        wait_for_db(settings.DB_CONNECT_RETRIES, settings.DB_CONNECT_DELAY)
    if settings.CREATE_TABLES:
        create_all_tables()
        logger.info("Survey tables created/verified.")
    yield
    logger.info("Shutting down Survey Stats API.")


app = FastAPI(
    title="Survey Stats API",
    version="1.0.0",
    description="Read-only survey counts, ratings and daily rollups.",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(StoreQueryError, store_query_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stats_router)
app.include_router(surveys_router)


@app.get("/health")
def health_check():
    return {"status": "healthy", "timestamp": iso_timestamp()}


# Static dashboard goes last so it never shadows the API routes
static_dir = Path(settings.STATIC_DIR)
if static_dir.is_dir():
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="dashboard")
else:
    @app.get("/")
    def root():
        return {
            "name": "Survey Stats API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "api": "/api",
        }


if __name__ == "__main__":
    logger.info(f"Server running on port {settings.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
