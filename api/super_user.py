"""
Super User Analysis API

Step-by-step brand visibility analysis for Super Users.

Endpoints:
- POST /api/v1/super-user/analysis/create - Step 1, create the session
- POST /api/v1/super-user/analysis/update - Steps 2-3, categories and competitors
- POST /api/v1/super-user/analysis/generate-prompts - Search prompts per category
- POST /api/v1/super-user/analysis/complete - AI responses, mentions, share of voice
- POST /api/v1/super-user/analysis/extract-mentions - Recompute mentions
- POST /api/v1/super-user/analysis/calculate-sov - Recompute share of voice
- POST /api/v1/super-user/analysis/save-to-history - Store a finished session
- POST /api/v1/super-user/analysis/sync-competitors - Propagate competitor edits
- GET /api/v1/super-user/analysis/history - Latest sessions
- GET /api/v1/super-user/analysis/{analysisId} - Full session
- GET /api/v1/super-user/analysis/{analysisId}/progress - Step events
- GET /api/v1/super-user/analysis/{analysisId}/responses - AI responses
- GET /api/v1/super-user/analysis/{analysisId}/mentions/{brandName} - Mentions of one brand
- GET /api/v1/super-user/analysis/{analysisId}/download-pdf - PDF export
- DELETE /api/v1/super-user/analysis/{analysisId}/prompts/{promptId} - Delete a prompt
- DELETE /api/v1/super-user/analysis/{analysisId} - Delete a session
"""

import logging
from functools import lru_cache
from typing import Any, Awaitable, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from src.auth.models import User
from src.auth.dependencies import require_superuser
from src.pipeline.gateway import (
    AnalysisGateway,
    BadRequestError,
    GatewayError,
    COMPLETE_FIELDS_REQUIRED,
    create_gateway,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/super-user/analysis",
    tags=["Super User Analysis"],
    dependencies=[Depends(require_superuser)],  # Every endpoint is Super User only
)


@lru_cache
def get_gateway() -> AnalysisGateway:
    """Shared gateway wired to the configured AI clients."""
    return create_gateway()


async def _call(operation: Awaitable[Any]) -> Any:
    """Await a gateway operation, mapping its errors to HTTP errors."""
    try:
        return await operation
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CamelRequest(BaseModel):
    """Request body with camelCase keys on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CreateAnalysisRequest(CamelRequest):
    domain: Optional[str] = None
    brand_name: Optional[str] = None
    description: Optional[str] = None
    is_local_brand: bool = False
    location: Optional[str] = None


class UpdateStepRequest(CamelRequest):
    analysis_id: Optional[str] = None
    step: Optional[int] = None
    step_data: Optional[Dict[str, Any]] = None


class GeneratePromptsRequest(CamelRequest):
    analysis_id: Optional[str] = None
    categories: Optional[List[str]] = None
    competitors: Optional[List[str]] = None


class CompleteAnalysisRequest(CamelRequest):
    analysis_id: Optional[str] = None
    step4_data: Optional[Any] = None
    run_in_background: bool = False


class BrandStepRequest(CamelRequest):
    analysis_id: Optional[str] = None
    brand_name: Optional[str] = None


class SaveToHistoryRequest(CamelRequest):
    session_id: Optional[str] = None
    analysis_data: Optional[Dict[str, Any]] = None


class SyncCompetitorsRequest(CamelRequest):
    brand_id: Optional[str] = None
    competitors: Optional[List[str]] = None
    operation: Optional[str] = None
    competitor_name: Optional[str] = None


# =============================================================================
# PIPELINE STEPS
# =============================================================================

@router.post("/create")
async def create_analysis(
    request: CreateAnalysisRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Step 1: create the analysis session for a domain."""
    return await _call(gateway.create(
        current_user.id,
        request.domain,
        brand_name=request.brand_name,
        description=request.description,
        is_local_brand=request.is_local_brand,
        location=request.location,
    ))


@router.post("/update")
async def update_analysis(
    request: UpdateStepRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Steps 2-3: store categories or competitors (empty lists are extracted)."""
    return await _call(gateway.update(
        current_user.id, request.analysis_id, request.step, request.step_data,
    ))


@router.post("/generate-prompts")
async def generate_prompts(
    request: GeneratePromptsRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.generate_prompts(
        current_user.id, request.analysis_id, request.categories, request.competitors,
    ))


async def _complete_in_background(
    gateway: AnalysisGateway,
    user_id: UUID,
    analysis_id: str,
    step4_data: Any,
):
    """Run the complete step after the response was sent."""
    try:
        await gateway.complete(user_id, analysis_id, step4_data)
    except GatewayError as e:
        # The session is already marked failed; clients see it through /progress
        logger.error(f"Background analysis {analysis_id} failed: {e.message}")


@router.post("/complete")
async def complete_analysis(
    request: CompleteAnalysisRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """
    Step 4: collect AI responses, extract mentions and compute share of voice.

    With runInBackground the call returns immediately; follow the run
    through GET /{analysisId}/progress.
    """
    if not request.run_in_background:
        return await _call(gateway.complete(
            current_user.id, request.analysis_id, request.step4_data,
        ))

    if not request.analysis_id or request.step4_data is None:
        raise HTTPException(status_code=BadRequestError.status_code, detail=COMPLETE_FIELDS_REQUIRED)

    try:
        gateway.mark_in_progress(current_user.id, request.analysis_id)
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    background_tasks.add_task(
        _complete_in_background,
        gateway,
        current_user.id,
        request.analysis_id,
        request.step4_data,
    )
    logger.info(f"Queued complete step for {request.analysis_id}")

    return {
        "success": True,
        "analysisId": request.analysis_id,
        "status": "in_progress",
    }


@router.post("/extract-mentions")
async def extract_mentions(
    request: BrandStepRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.extract_mentions(
        current_user.id, request.analysis_id, request.brand_name,
    ))


@router.post("/calculate-sov")
async def calculate_sov(
    request: BrandStepRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.calculate_sov(
        current_user.id, request.analysis_id, request.brand_name,
    ))


@router.post("/save-to-history")
async def save_to_history(
    request: SaveToHistoryRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.save_to_history(
        current_user.id, request.session_id, request.analysis_data,
    ))


@router.post("/sync-competitors")
async def sync_competitors(
    request: SyncCompetitorsRequest,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Propagate a competitor edit to every analysis of one of the caller's brands."""
    return await _call(gateway.sync_competitors(
        current_user.id,
        request.brand_id, request.competitors, request.operation, request.competitor_name,
    ))


# =============================================================================
# READ ENDPOINTS
# =============================================================================

@router.get("/history")
async def get_history(
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Latest analyses of the current Super User, newest first."""
    return await _call(gateway.history(current_user.id))


@router.get("/{analysisId}")
async def get_analysis(
    analysisId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Full session with refreshed share of voice and populated categories."""
    return await _call(gateway.get_analysis(current_user.id, analysisId))


@router.get("/{analysisId}/progress")
async def get_progress(
    analysisId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.progress(current_user.id, analysisId))


@router.get("/{analysisId}/responses")
async def get_responses(
    analysisId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.responses(current_user.id, analysisId))


@router.get("/{analysisId}/mentions/{brandName}")
async def get_mentions(
    analysisId: str,
    brandName: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.mentions(current_user.id, analysisId, brandName))


@router.get("/{analysisId}/download-pdf")
async def download_pdf(
    analysisId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """PDF export of one analysis."""
    report = await _call(gateway.pdf(current_user.id, analysisId))

    return Response(
        content=report.pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{report.filename}"',
        },
    )


# =============================================================================
# DELETE ENDPOINTS
# =============================================================================

@router.delete("/{analysisId}/prompts/{promptId}")
async def delete_prompt(
    analysisId: str,
    promptId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    """Delete a prompt with its responses and mentions, then recompute SOV."""
    return await _call(gateway.delete_prompt(current_user.id, analysisId, promptId))


@router.delete("/{analysisId}")
async def delete_analysis(
    analysisId: str,
    current_user: User = Depends(require_superuser),
    gateway: AnalysisGateway = Depends(get_gateway),
):
    return await _call(gateway.delete_analysis(current_user.id, analysisId))
