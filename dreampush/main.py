from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from dreampush.core.logging_config import setup_logging
from dreampush.core.settings import settings
from dreampush.config import init_firebase
from dreampush.db import Base, engine
from dreampush import models  # noqa: F401  (register tables on Base.metadata)
from dreampush.routes import health, push_notifications, scheduled_tasks

# Set up logging first
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 50)
    logger.info("Dream journal push service starting up")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"Push batch size: {settings.push_batch_size}, fan-out workers: {settings.push_fanout_workers}")
    logger.info("=" * 50)

    if settings.is_development:
        Base.metadata.create_all(bind=engine)

    yield
    logger.info("Dream journal push service shutting down gracefully")

app = FastAPI(
    title="Dream Journal Push API",
    description="Device registration and push notification delivery",
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_origins != ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Initialize Firebase (skip in test environment)
if not settings.is_test:
    init_firebase()

# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(push_notifications.router, prefix="/push-notifications", tags=["Push Notifications"])
app.include_router(scheduled_tasks.router, prefix="/scheduled", tags=["Scheduled Tasks"])
