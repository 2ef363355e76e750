"""
Orderflow: FastAPI application entry-point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderflow.config import settings
from orderflow.database import SessionLocal, init_db
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.engine.errors import NotFoundError, OrderflowError
from orderflow.integrations import EmailClient, SlackClient, TelegramClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


def build_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        settings,
        SessionLocal,
        telegram=TelegramClient(settings),
        slack=SlackClient(settings),
        email=EmailClient(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure data dir + tables exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    init_db()
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)

    app.state.dispatcher = build_dispatcher()
    yield
    logger.info("Shutting down: draining notifications")
    app.state.dispatcher.drain(timeout=settings.NOTIFY_TIMEOUT_SECONDS)
    app.state.dispatcher.shutdown()


app = FastAPI(
    title="Orderflow",
    description="Submission approval → production workflows → notifications, service renewal",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderflowError)
async def orderflow_error_handler(request: Request, exc: OrderflowError):
    if isinstance(exc, NotFoundError):
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    elif exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


@app.get("/")
async def root():
    return {"service": "Orderflow", "version": "0.1.0", "environment": settings.ENVIRONMENT, "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from orderflow.routers.workflows import router as workflows_router  # noqa: E402
from orderflow.routers.submissions import router as submissions_router  # noqa: E402
from orderflow.routers.renewal import router as renewal_router  # noqa: E402
from orderflow.routers.payments import router as payments_router  # noqa: E402
from orderflow.routers.contracts import router as contracts_router  # noqa: E402
from orderflow.routers.designs import router as designs_router  # noqa: E402
from orderflow.routers.notifications import router as notifications_router  # noqa: E402

app.include_router(workflows_router, prefix="/api", tags=["Workflows"])
app.include_router(submissions_router, prefix="/api", tags=["Submissions"])
app.include_router(renewal_router, prefix="/api", tags=["Renewal"])
app.include_router(payments_router, prefix="/api", tags=["Payments"])
app.include_router(contracts_router, prefix="/api", tags=["Contracts"])
app.include_router(designs_router, prefix="/api", tags=["Designs"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
