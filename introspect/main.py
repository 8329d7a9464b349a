"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .auth.router import router as auth_router, users_router
from .auth.service import bootstrap_admin_if_needed
from .config import settings
from .core.events import event_bus
from .core.middleware import setup_middlewares
from .core.storage import is_object_store_configured
from .database import Base, SessionLocal, engine
from .diagnostics.router import router as diagnostics_router
from .exceptions import register_exception_handlers, success_body
from .notifications.alerts import register_result_alerts
from .notifications.dispatcher import NotificationDispatcher, get_dispatcher
from .notifications.router import router as notifications_router
from .patients.router import router as patients_router

# Import all models so their tables are registered on Base
from .auth import models as auth_models  # noqa: F401
from .diagnostics import models as diagnostics_models  # noqa: F401
from .notifications import models as notification_models  # noqa: F401
from .patients import models as patient_models  # noqa: F401

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Create database tables if they don't exist
Base.metadata.create_all(bind=engine)

# Bootstrap admin creation
logger.info("Starting Introspect API...")
db = SessionLocal()
try:
    bootstrap_admin_if_needed(db)
except Exception as e:
    logger.error(f"Bootstrap process failed: {str(e)}")
finally:
    db.close()

# Verified positive results alert the submitting health worker
result_alert_handler = register_result_alerts(event_bus, SessionLocal, get_dispatcher())

# Create FastAPI application
app = FastAPI(
    title="Introspect API",
    description="Malaria diagnostic submission, review and alerting for field health workers",
    version=__version__,
)

# Register exception handlers
register_exception_handlers(app)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware
setup_middlewares(app)

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(patients_router)
app.include_router(diagnostics_router)
app.include_router(notifications_router)


# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint.

    Returns:
        dict: Simple welcome message
    """
    return success_body({"message": "Welcome to Introspect API"})


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Health status information
    """
    return success_body({"status": "healthy"})


@app.get("/api/status")
async def service_status(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """Which optional integrations are configured."""
    return success_body({
        "version": __version__,
        "environment": settings.environment,
        "object_store_configured": is_object_store_configured(),
        "sms_configured": dispatcher.sms_sender.configured,
        "email_configured": dispatcher.email_sender.configured,
    })
