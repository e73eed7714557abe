"""
API Application for Snowball Visibility

FastAPI app serving the Super User brand analysis:
1. Creates an analysis session for a domain
2. Extracts categories and competitors with Claude
3. Generates search prompts and collects AI responses
4. Computes share of voice and exports a PDF report
"""

import logging
import sys
from datetime import datetime

from fastapi import FastAPI

from src.database import init_db, check_db_connection
from src.utils.config import get_settings
from api.super_user import router as super_user_router

# Configure logging to stdout (the platform treats stderr as errors)
logging.basicConfig(
    level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,  # Explicitly use stdout
    force=True,  # Override any existing config
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title="Snowball Visibility",
    description="AI brand visibility analysis powered by Claude",
    version=VERSION,
)

app.include_router(super_user_router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Health endpoint reports the database as disconnected


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Snowball Visibility"}


@app.get("/api/health")
async def health():
    """Detailed health check including database status."""
    db_connected = check_db_connection()

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
        "environment": get_settings().ENVIRONMENT,
        "database": "connected" if db_connected else "disconnected",
    }
