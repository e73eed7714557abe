"""
SQLAlchemy Models for the Snowball Visibility Pipeline

Design Principles:
1. One AnalysisSession per Super User run, mutated step by step
2. Normalize the entities we query (categories, prompts, responses, mentions)
3. Keep prompt text and response text in separate typed columns
4. Record step events so clients can follow real progress

Step payloads live in JSON columns; their shape is validated by the
pydantic schemas in src.pipeline.schemas before they are written.
"""

import enum
from datetime import datetime
from typing import Optional, Dict, Any
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, JSON,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (local SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================

class AnalysisStatus(enum.Enum):
    """Status of a Super User analysis session"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class StepEventStatus(enum.Enum):
    """Lifecycle of a single logical pipeline step"""
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStep(enum.IntEnum):
    """The six logical steps reported to users, plus the history marker."""
    BRAND_PROFILE = 1
    CATEGORIES = 2
    COMPETITORS = 3
    PROMPTS = 4
    AI_RESPONSES = 5
    SHARE_OF_VOICE = 6
    SAVED_TO_HISTORY = 7


STEP_NAMES = {
    PipelineStep.BRAND_PROFILE: "Creating brand profile",
    PipelineStep.CATEGORIES: "Extracting categories",
    PipelineStep.COMPETITORS: "Discovering competitors",
    PipelineStep.PROMPTS: "Generating search prompts",
    PipelineStep.AI_RESPONSES: "Running AI analysis",
    PipelineStep.SHARE_OF_VOICE: "Calculating Share of Voice",
}


# =============================================================================
# ANALYSIS SESSION
# =============================================================================

class AnalysisSession(Base):
    """
    One Super User analysis run.

    Identity fields (domain, brand_name, brand_information) are written at
    step 1 and never changed. Each step handler writes only its own
    step*_data slice.
    """
    __tablename__ = "super_user_analyses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    analysis_id = Column(String(100), unique=True, nullable=False)
    super_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Set at step 1
    domain = Column(String(255), nullable=False)
    brand_name = Column(String(255))
    brand_information = Column(Text)
    brand_tonality = Column(Text)

    # Progress
    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.PENDING, nullable=False)
    current_step = Column(Integer, default=1, nullable=False)

    # Step payloads
    step1_data = Column(JSONType, default=dict)
    step2_data = Column(JSONType, default=dict)
    step3_data = Column(JSONType, default=dict)
    step4_data = Column(JSONType, default=dict)
    step5_data = Column(JSONType, default=dict)
    step6_data = Column(JSONType, default=dict)

    # Final results (shareOfVoice, mentionCounts, totalMentions, ...)
    analysis_results = Column(JSONType, default=dict)

    # Timing
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    analysis_time_ms = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    events = relationship(
        "AnalysisStepEvent",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="AnalysisStepEvent.created_at",
    )

    __table_args__ = (
        Index("idx_super_user_analysis_id", "analysis_id"),
        Index("idx_super_user_analysis_user_created", "super_user_id", "created_at"),
    )

    @property
    def brand_id(self) -> Optional[str]:
        """Brand profile id recorded when the complete step ran."""
        return (self.analysis_results or {}).get("brandId")

    def mark_completed(self, completed_at: Optional[datetime] = None) -> None:
        """Set completed status and derive analysis_time_ms from started_at."""
        self.status = AnalysisStatus.COMPLETED
        self.completed_at = completed_at or datetime.utcnow()
        if self.started_at:
            delta = self.completed_at - self.started_at
            self.analysis_time_ms = int(delta.total_seconds() * 1000)

    def __repr__(self):
        return f"<AnalysisSession {self.analysis_id} ({self.domain}, {self.status.value})>"


class AnalysisStepEvent(Base):
    """
    A recorded start/finish of one logical step.

    Clients poll these through the progress endpoint instead of
    running a timer of their own.
    """
    __tablename__ = "super_user_analysis_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    analysis_pk = Column(
        UUID(as_uuid=True),
        ForeignKey("super_user_analyses.id", ondelete="CASCADE"),
        nullable=False,
    )
    step = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    status = Column(Enum(StepEventStatus), nullable=False)
    message = Column(Text)
    detail = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    analysis = relationship("AnalysisSession", back_populates="events")

    __table_args__ = (
        Index("idx_step_event_analysis", "analysis_pk", "created_at"),
    )


# =============================================================================
# BRAND DATA (created per analysis by the complete step)
# =============================================================================

class BrandProfile(Base):
    """Brand created for an isolated Super User analysis."""
    __tablename__ = "brand_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    owner_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    domain = Column(String(255), nullable=False)
    brand_name = Column(String(255), nullable=False)
    description = Column(Text)
    is_admin_analysis = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    categories = relationship(
        "BrandCategory",
        back_populates="brand",
        cascade="all, delete-orphan",
    )


class BrandCategory(Base):
    """Business category of a brand."""
    __tablename__ = "brand_categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    brand_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    position = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    brand = relationship("BrandProfile", back_populates="categories")
    prompts = relationship(
        "SearchPrompt",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="SearchPrompt.position",
    )

    __table_args__ = (
        Index("idx_brand_category_brand", "brand_id"),
    )


class SearchPrompt(Base):
    """A conversational question sent to the AI provider."""
    __tablename__ = "search_prompts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    brand_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    analysis_session_id = Column(String(100))
    prompt_text = Column(Text, nullable=False)
    position = Column(Integer, default=0)
    created_by = Column(String(50), default="super-user-ui")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    category = relationship("BrandCategory", back_populates="prompts")
    responses = relationship(
        "PromptResponse",
        back_populates="prompt",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_search_prompt_brand", "brand_id"),
        Index("idx_search_prompt_session", "analysis_session_id"),
    )


class PromptResponse(Base):
    """
    AI answer to one prompt.

    `content` holds the typed shape {"kind": "text", "value": "..."};
    the prompt text is only ever stored on SearchPrompt.
    """
    __tablename__ = "prompt_responses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    prompt_id = Column(
        UUID(as_uuid=True),
        ForeignKey("search_prompts.id", ondelete="CASCADE"),
        nullable=False,
    )
    brand_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    analysis_session_id = Column(String(100))
    content = Column(JSONType, nullable=False)
    model = Column(String(100))
    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    prompt = relationship("SearchPrompt", back_populates="responses")
    mentions = relationship(
        "BrandMention",
        back_populates="response",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_prompt_response_session", "analysis_session_id"),
        Index("idx_prompt_response_prompt", "prompt_id"),
    )

    @property
    def response_text(self) -> str:
        """Text value of the typed content."""
        return (self.content or {}).get("value", "")


class BrandMention(Base):
    """A brand or competitor named in an AI response."""
    __tablename__ = "brand_mentions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    response_id = Column(
        UUID(as_uuid=True),
        ForeignKey("prompt_responses.id", ondelete="CASCADE"),
        nullable=False,
    )
    prompt_id = Column(UUID(as_uuid=True), ForeignKey("search_prompts.id", ondelete="CASCADE"))
    category_id = Column(UUID(as_uuid=True), ForeignKey("brand_categories.id", ondelete="CASCADE"))
    brand_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    analysis_session_id = Column(String(100))
    company_name = Column(String(255), nullable=False)
    occurrences = Column(Integer, default=1, nullable=False)
    confidence = Column(Float, default=1.0)
    created_at = Column(DateTime, default=datetime.utcnow)

    response = relationship("PromptResponse", back_populates="mentions")

    __table_args__ = (
        Index("idx_brand_mention_session", "analysis_session_id", "company_name"),
    )


class ShareOfVoiceSnapshot(Base):
    """
    Share of voice computed for one brand in one analysis session.

    Snapshots are append-only; readers take the newest one.
    """
    __tablename__ = "share_of_voice_snapshots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    brand_id = Column(
        UUID(as_uuid=True),
        ForeignKey("brand_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    analysis_session_id = Column(String(100))
    share_of_voice = Column(JSONType, default=dict)
    mention_counts = Column(JSONType, default=dict)
    total_mentions = Column(Integer, default=0)
    brand_share = Column(Float, default=0.0)
    ai_visibility_score = Column(Float, default=0.0)
    competitors = Column(JSONType, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_sov_brand_session", "brand_id", "analysis_session_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shareOfVoice": self.share_of_voice or {},
            "mentionCounts": self.mention_counts or {},
            "totalMentions": self.total_mentions or 0,
            "brandShare": self.brand_share or 0.0,
            "aiVisibilityScore": self.ai_visibility_score or 0.0,
            "competitors": self.competitors or [],
        }
