import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.platform.config import settings
from app.platform.db.session import engine, init_db
from app.platform.exceptions import StoreError, add_exception_handlers
from app.platform.logger import LOG_FORMAT

logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_db(engine)
    except Exception as e:
        # The service is useless without its store: refuse to start
        logger.critical(f"Database connection failed: {e}")
        raise StoreError(f"Database connection failed: {e}") from e
    logger.info("Connected to database")

    yield

    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Accessibility and performance scanning for websites",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": settings.APP_NAME,
        "description": "Run axe-core and Lighthouse scans against a URL and track the results over time.",
        "version": "1.0.0",
        "docs_url": "/docs",
        "api_base": settings.API_PREFIX,
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_PREFIX)
