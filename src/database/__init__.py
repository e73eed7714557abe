"""
Snowball Database Layer

Usage:
    from src.database import (
        # Session management
        init_db, get_db, get_db_context,

        # Models
        AnalysisSession, SearchPrompt, PromptResponse,

        # Enums
        AnalysisStatus, PipelineStep,
    )

    # Initialize database
    init_db()

    with get_db_context() as db:
        session = repository.get_analysis_session(db, analysis_id, user.id)
"""

# Models
from .models import (
    Base,
    AnalysisSession,
    AnalysisStepEvent,
    BrandProfile,
    BrandCategory,
    SearchPrompt,
    PromptResponse,
    BrandMention,
    ShareOfVoiceSnapshot,
    # Enums
    AnalysisStatus,
    StepEventStatus,
    PipelineStep,
    STEP_NAMES,
)

# Session management
from .session import (
    get_database_url,
    get_engine,
    reset_engine,
    get_db,
    get_db_context,
    init_db,
    check_db_connection,
)

from . import repository

__all__ = [
    # Models
    "Base",
    "AnalysisSession",
    "AnalysisStepEvent",
    "BrandProfile",
    "BrandCategory",
    "SearchPrompt",
    "PromptResponse",
    "BrandMention",
    "ShareOfVoiceSnapshot",
    # Enums
    "AnalysisStatus",
    "StepEventStatus",
    "PipelineStep",
    "STEP_NAMES",
    # Session
    "get_database_url",
    "get_engine",
    "reset_engine",
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
    # Repository
    "repository",
]
