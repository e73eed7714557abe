"""
Repository Layer - Clean Interface for Data Operations

Query helpers for the analysis gateway. Every function takes the caller's
Session so a handler decides its own transaction boundaries; serializers
turn ORM rows into the camelCase documents the API returns.
"""

import logging
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from src.pipeline.mentions import Mention
from src.pipeline.schemas import ResponseContent, ShareOfVoiceResult
from .models import (
    AnalysisSession,
    AnalysisStatus,
    AnalysisStepEvent,
    BrandCategory,
    BrandMention,
    BrandProfile,
    PromptResponse,
    SearchPrompt,
    ShareOfVoiceSnapshot,
    StepEventStatus,
    STEP_NAMES,
    PipelineStep,
)

logger = logging.getLogger(__name__)


def as_uuid(value: Any) -> Optional[UUID]:
    """Parse a UUID, returning None for anything that is not one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# ANALYSIS SESSIONS
# =============================================================================

def generate_analysis_id(user_id: Any) -> str:
    """SUA_{userId}_{epochMillis}_{random9}"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"SUA_{user_id}_{int(time.time() * 1000)}_{suffix}"


def create_analysis_session(
    db: Session,
    user_id: UUID,
    domain: str,
    brand_name: str,
    brand_information: str,
    step1_data: Dict[str, Any],
    analysis_id: Optional[str] = None,
) -> AnalysisSession:
    """Create the session for a new run, already at step 1 in progress."""
    session = AnalysisSession(
        analysis_id=analysis_id or generate_analysis_id(user_id),
        super_user_id=user_id,
        domain=domain,
        brand_name=brand_name,
        brand_information=brand_information,
        status=AnalysisStatus.IN_PROGRESS,
        current_step=1,
        step1_data=step1_data,
        started_at=datetime.utcnow(),
    )
    db.add(session)
    db.flush()
    logger.info(f"Created analysis session {session.analysis_id} for {domain}")
    return session


def get_analysis_session(
    db: Session,
    analysis_id: str,
    user_id: UUID,
) -> Optional[AnalysisSession]:
    """Session owned by the user, or None."""
    return (
        db.query(AnalysisSession)
        .filter(
            AnalysisSession.analysis_id == analysis_id,
            AnalysisSession.super_user_id == user_id,
        )
        .first()
    )


def advance_step(session: AnalysisSession, step: int) -> None:
    """current_step only ever increases."""
    session.current_step = max(session.current_step or 1, step)


def list_analysis_history(db: Session, user_id: UUID, limit: int = 50) -> List[AnalysisSession]:
    """Newest sessions first."""
    return (
        db.query(AnalysisSession)
        .filter(AnalysisSession.super_user_id == user_id)
        .order_by(AnalysisSession.created_at.desc())
        .limit(limit)
        .all()
    )


def list_brand_sessions(
    db: Session,
    brand_id: str,
    user_id: Optional[UUID] = None,
) -> List[AnalysisSession]:
    """Completed or in-progress sessions whose results point at a brand, optionally one user's only."""
    query = db.query(AnalysisSession).filter(
        AnalysisSession.status.in_([AnalysisStatus.COMPLETED, AnalysisStatus.IN_PROGRESS])
    )
    if user_id is not None:
        query = query.filter(AnalysisSession.super_user_id == user_id)
    sessions = query.order_by(AnalysisSession.created_at.desc()).all()
    return [s for s in sessions if s.brand_id == str(brand_id)]


def session_to_dict(session: AnalysisSession) -> Dict[str, Any]:
    """Serialize a session into the camelCase document clients expect."""
    return {
        "analysisId": session.analysis_id,
        "superUserId": str(session.super_user_id),
        "domain": session.domain,
        "brandName": session.brand_name,
        "brandInformation": session.brand_information,
        "brandTonality": session.brand_tonality,
        "status": session.status.value,
        "currentStep": session.current_step,
        "step1Data": session.step1_data or {},
        "step2Data": session.step2_data or {},
        "step3Data": session.step3_data or {},
        "step4Data": session.step4_data or {},
        "step5Data": session.step5_data or {},
        "step6Data": session.step6_data or {},
        "analysisResults": session.analysis_results or {},
        "startedAt": _iso(session.started_at),
        "completedAt": _iso(session.completed_at),
        "analysisTimeMs": session.analysis_time_ms,
        "createdAt": _iso(session.created_at),
        "updatedAt": _iso(session.updated_at),
    }


def session_summary(session: AnalysisSession) -> Dict[str, Any]:
    """Compact history row."""
    results = session.analysis_results or {}
    return {
        "analysisId": session.analysis_id,
        "domain": session.domain,
        "brandName": session.brand_name,
        "status": session.status.value,
        "currentStep": session.current_step,
        "createdAt": _iso(session.created_at),
        "completedAt": _iso(session.completed_at),
        "brandId": results.get("brandId"),
        "aiVisibilityScore": results.get("aiVisibilityScore", 0),
        "brandShare": results.get("brandShare", 0),
        "totalMentions": results.get("totalMentions", 0),
        "competitorsCount": len(results.get("competitors") or []),
        "analysisTimeMs": session.analysis_time_ms,
    }


# =============================================================================
# STEP EVENTS
# =============================================================================

def record_step_event(
    db: Session,
    session: AnalysisSession,
    step: PipelineStep,
    status: StepEventStatus,
    message: Optional[str] = None,
    detail: Optional[Dict[str, Any]] = None,
) -> AnalysisStepEvent:
    event = AnalysisStepEvent(
        analysis_pk=session.id,
        step=int(step),
        name=STEP_NAMES.get(step, f"Step {int(step)}"),
        status=status,
        message=message,
        detail=detail or {},
    )
    db.add(event)
    db.flush()
    return event


def get_step_events(db: Session, session: AnalysisSession) -> List[AnalysisStepEvent]:
    return (
        db.query(AnalysisStepEvent)
        .filter(AnalysisStepEvent.analysis_pk == session.id)
        .order_by(AnalysisStepEvent.created_at, AnalysisStepEvent.step)
        .all()
    )


def event_to_dict(event: AnalysisStepEvent) -> Dict[str, Any]:
    return {
        "step": event.step,
        "name": event.name,
        "status": event.status.value,
        "message": event.message,
        "detail": event.detail or {},
        "createdAt": _iso(event.created_at),
    }


# =============================================================================
# BRAND DATA
# =============================================================================

def create_brand_profile(
    db: Session,
    user_id: UUID,
    domain: str,
    brand_name: str,
    description: Optional[str] = None,
) -> BrandProfile:
    brand = BrandProfile(
        owner_user_id=user_id,
        domain=domain,
        brand_name=brand_name,
        description=description,
        is_admin_analysis=True,
    )
    db.add(brand)
    db.flush()
    return brand


def get_brand_profile(db: Session, brand_id: Any) -> Optional[BrandProfile]:
    pk = as_uuid(brand_id)
    if pk is None:
        return None
    return db.query(BrandProfile).filter(BrandProfile.id == pk).first()


def create_categories(db: Session, brand: BrandProfile, names: Iterable[str]) -> List[BrandCategory]:
    categories = [
        BrandCategory(brand_id=brand.id, name=name, position=position)
        for position, name in enumerate(names)
    ]
    db.add_all(categories)
    db.flush()
    return categories


def create_prompt(
    db: Session,
    category: BrandCategory,
    analysis_id: str,
    prompt_text: str,
    position: int,
) -> SearchPrompt:
    prompt = SearchPrompt(
        category_id=category.id,
        brand_id=category.brand_id,
        analysis_session_id=analysis_id,
        prompt_text=prompt_text,
        position=position,
    )
    db.add(prompt)
    db.flush()
    return prompt


def get_prompt(db: Session, prompt_id: Any) -> Optional[SearchPrompt]:
    pk = as_uuid(prompt_id)
    if pk is None:
        return None
    return db.query(SearchPrompt).filter(SearchPrompt.id == pk).first()


def delete_prompt(db: Session, prompt: SearchPrompt) -> Dict[str, int]:
    """Delete a prompt with its responses and mentions."""
    response_ids = [
        row.id for row in db.query(PromptResponse.id).filter(PromptResponse.prompt_id == prompt.id)
    ]
    mentions = 0
    if response_ids:
        mentions = (
            db.query(BrandMention)
            .filter(BrandMention.response_id.in_(response_ids))
            .delete(synchronize_session=False)
        )
    responses = (
        db.query(PromptResponse)
        .filter(PromptResponse.prompt_id == prompt.id)
        .delete(synchronize_session=False)
    )
    db.delete(prompt)
    db.flush()
    return {"prompts": 1, "responses": responses, "mentions": mentions}


def delete_brand_data(db: Session, brand_id: Any) -> Dict[str, int]:
    """Remove a brand profile and everything generated under it."""
    pk = as_uuid(brand_id)
    if pk is None:
        return {"categories": 0, "prompts": 0}

    counts = {
        "mentions": db.query(BrandMention).filter(BrandMention.brand_id == pk).delete(synchronize_session=False),
        "responses": db.query(PromptResponse).filter(PromptResponse.brand_id == pk).delete(synchronize_session=False),
        "prompts": db.query(SearchPrompt).filter(SearchPrompt.brand_id == pk).delete(synchronize_session=False),
        "categories": db.query(BrandCategory).filter(BrandCategory.brand_id == pk).delete(synchronize_session=False),
        "snapshots": db.query(ShareOfVoiceSnapshot).filter(ShareOfVoiceSnapshot.brand_id == pk).delete(synchronize_session=False),
    }
    db.query(BrandProfile).filter(BrandProfile.id == pk).delete(synchronize_session=False)
    db.flush()
    logger.info(f"Deleted brand {pk}: {counts}")
    return counts


# =============================================================================
# RESPONSES AND MENTIONS
# =============================================================================

def store_response(
    db: Session,
    prompt: SearchPrompt,
    content: ResponseContent,
    model: Optional[str] = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
) -> PromptResponse:
    response = PromptResponse(
        prompt_id=prompt.id,
        brand_id=prompt.brand_id,
        analysis_session_id=prompt.analysis_session_id,
        content=content.to_json(),
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )
    db.add(response)
    db.flush()
    return response


def store_mentions(
    db: Session,
    response: PromptResponse,
    mentions: Iterable[Mention],
    category_id: Optional[UUID] = None,
) -> List[BrandMention]:
    rows = [
        BrandMention(
            response_id=response.id,
            prompt_id=response.prompt_id,
            category_id=category_id,
            brand_id=response.brand_id,
            analysis_session_id=response.analysis_session_id,
            company_name=mention.company_name,
            occurrences=mention.occurrences,
            confidence=mention.confidence,
        )
        for mention in mentions
    ]
    db.add_all(rows)
    db.flush()
    return rows


def get_session_responses(db: Session, analysis_id: str) -> List[PromptResponse]:
    return (
        db.query(PromptResponse)
        .options(joinedload(PromptResponse.prompt).joinedload(SearchPrompt.category))
        .filter(PromptResponse.analysis_session_id == analysis_id)
        .order_by(PromptResponse.created_at)
        .all()
    )


def delete_session_mentions(db: Session, analysis_id: str) -> int:
    return (
        db.query(BrandMention)
        .filter(BrandMention.analysis_session_id == analysis_id)
        .delete(synchronize_session=False)
    )


def get_session_mentions(
    db: Session,
    analysis_id: str,
    company_name: Optional[str] = None,
) -> List[BrandMention]:
    """Mentions of a session, optionally for one company (case-insensitive)."""
    query = (
        db.query(BrandMention)
        .options(joinedload(BrandMention.response).joinedload(PromptResponse.prompt).joinedload(SearchPrompt.category))
        .filter(BrandMention.analysis_session_id == analysis_id)
    )
    mentions = query.order_by(BrandMention.created_at).all()
    if company_name:
        wanted = company_name.strip().lower()
        mentions = [m for m in mentions if m.company_name.lower() == wanted]
    return mentions


def response_mention_sets(db: Session, analysis_id: str) -> List[List[str]]:
    """Company names mentioned by each response of a session."""
    responses = get_session_responses(db, analysis_id)
    return [[m.company_name for m in response.mentions] for response in responses]


def response_to_dict(response: PromptResponse) -> Dict[str, Any]:
    prompt = response.prompt
    return {
        "_id": str(response.id),
        "promptId": {
            "_id": str(response.prompt_id),
            "promptText": prompt.prompt_text if prompt else None,
        },
        "promptText": prompt.prompt_text if prompt else "Unknown prompt",
        "categoryName": prompt.category.name if prompt and prompt.category else "Unknown category",
        "analysisSessionId": response.analysis_session_id,
        "content": response.content,
        "responseText": response.response_text,
        "model": response.model,
        "createdAt": _iso(response.created_at),
    }


def mention_to_dict(mention: BrandMention) -> Dict[str, Any]:
    response = mention.response
    prompt = response.prompt if response else None
    category = prompt.category if prompt else None
    return {
        "_id": str(mention.id),
        "companyName": mention.company_name,
        "occurrences": mention.occurrences,
        "confidence": mention.confidence,
        "analysisSessionId": mention.analysis_session_id,
        "promptId": {
            "_id": str(prompt.id) if prompt else None,
            "promptText": prompt.prompt_text if prompt else "Unknown prompt",
        },
        "responseId": {
            "_id": str(response.id) if response else None,
            "responseText": response.response_text if response else "No response text",
            "createdAt": _iso(response.created_at) if response else None,
        },
        "categoryId": {
            "_id": str(category.id) if category else None,
            "categoryName": category.name if category else "Unknown category",
        },
        "createdAt": _iso(mention.created_at),
    }


# =============================================================================
# SHARE OF VOICE SNAPSHOTS
# =============================================================================

def store_sov_snapshot(
    db: Session,
    brand_id: Any,
    analysis_id: str,
    result: ShareOfVoiceResult,
) -> ShareOfVoiceSnapshot:
    snapshot = ShareOfVoiceSnapshot(
        brand_id=as_uuid(brand_id),
        analysis_session_id=analysis_id,
        share_of_voice=result.share_of_voice,
        mention_counts=result.mention_counts,
        total_mentions=result.total_mentions,
        brand_share=result.brand_share,
        ai_visibility_score=result.ai_visibility_score,
        competitors=result.competitors,
    )
    db.add(snapshot)
    db.flush()
    return snapshot


def list_sov_snapshots(db: Session, brand_id: Any) -> List[ShareOfVoiceSnapshot]:
    pk = as_uuid(brand_id)
    if pk is None:
        return []
    return db.query(ShareOfVoiceSnapshot).filter(ShareOfVoiceSnapshot.brand_id == pk).all()


def get_latest_sov_snapshot(
    db: Session,
    brand_id: Any,
    analysis_id: str,
) -> Optional[ShareOfVoiceSnapshot]:
    pk = as_uuid(brand_id)
    if pk is None:
        return None
    return (
        db.query(ShareOfVoiceSnapshot)
        .filter(
            ShareOfVoiceSnapshot.brand_id == pk,
            ShareOfVoiceSnapshot.analysis_session_id == analysis_id,
        )
        .order_by(ShareOfVoiceSnapshot.created_at.desc())
        .first()
    )


# =============================================================================
# POPULATED CATEGORIES
# =============================================================================

def get_populated_categories(db: Session, brand_id: Any) -> List[Dict[str, Any]]:
    """
    Categories of a brand joined with their prompts and each prompt's
    latest AI response.
    """
    pk = as_uuid(brand_id)
    if pk is None:
        return []

    categories = (
        db.query(BrandCategory)
        .options(joinedload(BrandCategory.prompts).joinedload(SearchPrompt.responses))
        .filter(BrandCategory.brand_id == pk)
        .order_by(BrandCategory.position)
        .all()
    )

    populated = []
    for category in categories:
        prompts = []
        for prompt in category.prompts:
            if not prompt.is_active:
                continue
            latest = max(prompt.responses, key=lambda r: r.created_at, default=None)
            prompts.append({
                "_id": str(prompt.id),
                "promptText": prompt.prompt_text,
                "aiResponse": {
                    "_id": str(latest.id),
                    "content": latest.content,
                    "responseText": latest.response_text,
                } if latest else None,
            })
        populated.append({
            "_id": str(category.id),
            "categoryName": category.name,
            "prompts": prompts,
        })
    return populated
