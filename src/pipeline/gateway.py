"""
Analysis Gateway

One operation per Super User pipeline step. Each reads the caller's
AnalysisSession, calls at most one external AI service, writes its own
step slice and returns the accumulated state as camelCase dicts.

The `complete` step is the long one: it stores the prompts under a fresh
brand profile, collects AI responses, extracts mentions and computes share
of voice. Each logical step is recorded as AnalysisStepEvent rows in short
transactions of their own so progress polling sees them while the step
is still running.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from src.analyzer.client import ClaudeClient, create_claude_client
from src.database import repository
from src.database.models import AnalysisSession, AnalysisStatus, PipelineStep, StepEventStatus
from src.database.session import get_db_context
from src.integrations.config import ExternalAPIConfig, create_perplexity_client
from src.integrations.perplexity import PerplexityClient, get_domain_info
from src.reporter import GeneratedReport, ReportGenerator
from src.utils.config import Settings, get_settings
from src.utils.domain import extract_brand_name, normalize_domain
from .categories import CategoryExtractor
from .competitors import CompetitorExtractor
from .mentions import extract_mentions, tracked_companies
from .prompts import PromptGenerator
from .responses import PromptJob, ResponseCollector
from .schemas import (
    AnalysisResults,
    MentionRecord,
    PromptEntry,
    Step1Data,
    Step2Data,
    Step3Data,
    Step4Data,
    Step5Data,
    Step6Data,
)
from .share_of_voice import calculate_share_of_voice
from .sync import SYNC_OPERATIONS, sync_competitors_across_snapshots

logger = logging.getLogger(__name__)

ANALYSIS_NOT_FOUND = "Analysis not found or access denied"
NO_BRAND_DATA = "No brand data available for this analysis"
BRAND_NOT_FOUND = "Brand not found or access denied"
NO_PROMPTS = "No prompts available for analysis. Please generate prompts in Step 4 first."
COMPLETE_FIELDS_REQUIRED = "Analysis ID and step 4 data are required"
DEFAULT_CATEGORY = "General"


# =============================================================================
# ERRORS
# =============================================================================

class GatewayError(Exception):
    """A failed gateway operation carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(GatewayError):
    status_code = 400


class AccessDeniedError(GatewayError):
    status_code = 403


class NotFoundError(GatewayError):
    status_code = 404


# =============================================================================
# HELPERS
# =============================================================================

def assign_prompts_to_categories(
    prompts: List[PromptEntry],
    categories: List[str],
) -> List[int]:
    """
    Category index for every prompt.

    A prompt naming one of the categories goes there; the rest are dealt
    round-robin by position (i % C).
    """
    index_by_name = {name.lower(): i for i, name in enumerate(categories)}
    assignments = []
    for i, prompt in enumerate(prompts):
        named = (prompt.category_name or "").strip().lower()
        assignments.append(index_by_name.get(named, i % len(categories)))
    return assignments


def _category_list(step2_data: Optional[Dict[str, Any]], prompts: List[PromptEntry]) -> List[str]:
    categories = Step2Data.model_validate(step2_data or {}).categories
    if categories:
        return categories

    from_prompts = []
    for prompt in prompts:
        name = (prompt.category_name or "").strip()
        if name and name not in from_prompts:
            from_prompts.append(name)
    return from_prompts or [DEFAULT_CATEGORY]


def _competitor_list(session: AnalysisSession) -> List[str]:
    return Step3Data.model_validate(session.step3_data or {}).competitors


class AnalysisGateway:
    """Server side of the Super User brand analysis."""

    def __init__(
        self,
        llm: Optional[ClaudeClient] = None,
        perplexity: Optional[PerplexityClient] = None,
        settings: Optional[Settings] = None,
        report_generator: Optional[ReportGenerator] = None,
    ):
        self.llm = llm
        self.perplexity = perplexity
        self.settings = settings or get_settings()
        self.report_generator = report_generator or ReportGenerator()

        self.categories = CategoryExtractor(llm, count=self.settings.CATEGORY_COUNT)
        self.competitors = CompetitorExtractor(llm, limit=self.settings.MAX_COMPETITORS)
        self.prompts = PromptGenerator(
            llm,
            prompts_per_category=self.settings.PROMPTS_PER_CATEGORY,
            keywords_per_category=self.settings.KEYWORDS_PER_CATEGORY,
        )

    # =========================================================================
    # SESSION ACCESS
    # =========================================================================

    def _require_session(self, db, analysis_id: str, user_id: UUID) -> AnalysisSession:
        session = repository.get_analysis_session(db, analysis_id, user_id)
        if session is None:
            raise NotFoundError(ANALYSIS_NOT_FOUND)
        return session

    def _require_brand(self, session: AnalysisSession) -> str:
        if not session.brand_id:
            raise NotFoundError(NO_BRAND_DATA)
        return session.brand_id

    def _record_event(
        self,
        analysis_id: str,
        user_id: UUID,
        step: PipelineStep,
        status: StepEventStatus,
        message: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        with get_db_context() as db:
            session = repository.get_analysis_session(db, analysis_id, user_id)
            if session is not None:
                repository.record_step_event(db, session, step, status, message, detail)

    @contextmanager
    def _tracked_step(
        self,
        analysis_id: str,
        user_id: UUID,
        step: PipelineStep,
        phase: Optional[str] = None,
    ):
        """
        Record started, then completed or failed, around one logical step.

        `phase` labels the events when one step runs in several parts.
        """
        label = {"phase": phase} if phase else {}
        self._record_event(analysis_id, user_id, step, StepEventStatus.STARTED, detail=dict(label))
        detail: Dict[str, Any] = dict(label)
        try:
            yield detail
        except Exception as e:
            self._record_event(
                analysis_id, user_id, step, StepEventStatus.FAILED, message=str(e), detail=dict(label),
            )
            raise
        self._record_event(analysis_id, user_id, step, StepEventStatus.COMPLETED, detail=detail)

    # =========================================================================
    # STEP 1: CREATE
    # =========================================================================

    async def create(
        self,
        user_id: UUID,
        domain: Optional[str],
        brand_name: Optional[str] = None,
        description: Optional[str] = None,
        is_local_brand: bool = False,
        location: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the analysis session (step 1)."""
        domain = normalize_domain(domain)
        if not domain:
            raise BadRequestError("Domain is required")

        brand_name = (brand_name or "").strip() or extract_brand_name(domain)

        if not description:
            info = await get_domain_info(domain, self.perplexity)
            description = info.description

        step1 = Step1Data(
            domain=domain,
            brand_name=brand_name,
            description=description,
            is_local_brand=is_local_brand,
            location=location if is_local_brand else None,
        )

        with get_db_context() as db:
            session = repository.create_analysis_session(
                db,
                user_id=user_id,
                domain=domain,
                brand_name=brand_name,
                brand_information=description,
                step1_data=step1.to_json(),
            )
            repository.record_step_event(
                db, session, PipelineStep.BRAND_PROFILE, StepEventStatus.COMPLETED,
                detail={"brandName": brand_name},
            )
            analysis_id = session.analysis_id

        return {
            "success": True,
            "analysisId": analysis_id,
            "domain": domain,
            "brandName": brand_name,
            "currentStep": 1,
            "step1Data": step1.to_json(),
        }

    # =========================================================================
    # STEPS 2-3: UPDATE
    # =========================================================================

    async def update(
        self,
        user_id: UUID,
        analysis_id: Optional[str],
        step: Optional[int],
        step_data: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Store categories (step 2) or competitors (step 3).

        An empty list asks the server to extract the values with Claude.
        """
        if not analysis_id or step is None or step_data is None:
            raise BadRequestError("Analysis ID, step, and step data are required")
        if step not in (2, 3):
            raise BadRequestError("Invalid step number")

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            domain = session.domain
            brand_name = session.brand_name
            brand_information = session.brand_information

        try:
            payload = (Step2Data if step == 2 else Step3Data).model_validate(step_data)
        except ValidationError as e:
            raise BadRequestError(str(e))

        step_enum = PipelineStep.CATEGORIES if step == 2 else PipelineStep.COMPETITORS
        extracted = False
        if step == 2 and not payload.categories:
            extracted = True
            with self._tracked_step(analysis_id, user_id, PipelineStep.CATEGORIES) as detail:
                payload.categories = await self.categories.extract(domain, brand_information or "")
                detail["categories"] = payload.categories
        elif step == 3 and not payload.competitors:
            extracted = True
            with self._tracked_step(analysis_id, user_id, PipelineStep.COMPETITORS) as detail:
                result = await self.competitors.extract(brand_name, domain, brand_information)
                payload.competitors = result.competitors
                detail["competitors"] = result.competitors
                detail["usedFallback"] = result.used_fallback

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            if step == 2:
                session.step2_data = payload.to_json()
            else:
                session.step3_data = payload.to_json()
            if not extracted:
                # Values supplied by the client still complete their step
                repository.record_step_event(
                    db, session, step_enum, StepEventStatus.COMPLETED,
                    detail={**payload.to_json(), "supplied": True},
                )
            repository.advance_step(session, step)
            current_step = session.current_step

        logger.info(f"Analysis {analysis_id}: step {step} saved")
        return {
            "success": True,
            "analysisId": analysis_id,
            "currentStep": current_step,
            "stepData": payload.to_json(),
        }

    # =========================================================================
    # PROMPT GENERATION
    # =========================================================================

    async def generate_prompts(
        self,
        user_id: UUID,
        analysis_id: str,
        categories: Optional[List[str]] = None,
        competitors: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Generate search prompts for every category of the session."""
        if not analysis_id:
            raise BadRequestError("Analysis ID is required")

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            step1 = Step1Data.model_validate(session.step1_data or {
                "domain": session.domain, "brandName": session.brand_name,
            })
            categories = Step2Data(categories=categories).categories
            if not categories:
                categories = Step2Data.model_validate(session.step2_data or {}).categories
            competitors = competitors or _competitor_list(session)

        if not categories:
            raise BadRequestError("Categories are required before generating prompts")

        location = step1.location if step1.is_local_brand else None

        with self._tracked_step(analysis_id, user_id, PipelineStep.PROMPTS, phase="generate") as detail:
            generated = await self.prompts.generate(
                categories, step1.domain, step1.brand_name, competitors, location,
            )
            entries = [
                PromptEntry(prompt_text=text, category_name=category)
                for category, result in generated.items()
                for text in result.prompts
            ]
            detail["promptsCount"] = len(entries)

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            session.step4_data = Step4Data(prompts=[e.to_json() for e in entries], completed=False).to_json()
            repository.advance_step(session, 4)

        return {
            "success": True,
            "prompts": [entry.to_json() for entry in entries],
            "keywords": {category: result.keywords for category, result in generated.items()},
            "categoriesCount": len(categories),
            "promptsCount": len(entries),
        }

    # =========================================================================
    # STEP 4: COMPLETE
    # =========================================================================

    def mark_in_progress(self, user_id: UUID, analysis_id: str) -> None:
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            session.status = AnalysisStatus.IN_PROGRESS

    def _mark_failed(self, user_id: UUID, analysis_id: str) -> None:
        with get_db_context() as db:
            session = repository.get_analysis_session(db, analysis_id, user_id)
            if session is not None:
                session.status = AnalysisStatus.FAILED

    async def complete(
        self,
        user_id: UUID,
        analysis_id: Optional[str],
        step4_data: Any,
    ) -> Dict[str, Any]:
        """
        Run AI response collection, mention extraction and share of voice.

        Raises:
            BadRequestError: missing analysis id or step 4 data
            NotFoundError: unknown session
            GatewayError: any failure while running; the session is marked failed
        """
        if not analysis_id or step4_data is None:
            raise BadRequestError(COMPLETE_FIELDS_REQUIRED)

        if isinstance(step4_data, list):
            step4_data = {"prompts": step4_data}
        try:
            payload = Step4Data.model_validate(step4_data)
        except ValidationError as e:
            raise BadRequestError(str(e))

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            if not payload.prompts:
                payload.prompts = Step4Data.model_validate(session.step4_data or {}).prompts
            session.step4_data = payload.to_json()
            session.status = AnalysisStatus.IN_PROGRESS

            context = {
                "domain": session.domain,
                "brand_name": session.brand_name,
                "description": session.brand_information,
                "categories": _category_list(session.step2_data, payload.prompts),
                "competitors": _competitor_list(session),
            }

        try:
            results = await self._run_complete(user_id, analysis_id, payload.prompts, **context)
        except Exception as e:
            logger.error(f"Analysis {analysis_id} failed: {e}")
            self._mark_failed(user_id, analysis_id)
            if isinstance(e, GatewayError):
                raise GatewayError(e.message) from e
            raise GatewayError(str(e)) from e

        return {
            "success": True,
            "analysisId": analysis_id,
            "analysisResults": results,
            "status": AnalysisStatus.COMPLETED.value,
        }

    async def _run_complete(
        self,
        user_id: UUID,
        analysis_id: str,
        prompts: List[PromptEntry],
        domain: str,
        brand_name: str,
        description: Optional[str],
        categories: List[str],
        competitors: List[str],
    ) -> Dict[str, Any]:
        started = datetime.utcnow()

        # Prompts stored under a brand profile of their own
        with self._tracked_step(analysis_id, user_id, PipelineStep.PROMPTS, phase="store") as detail:
            if not prompts:
                raise GatewayError(NO_PROMPTS)

            with get_db_context() as db:
                session = self._require_session(db, analysis_id, user_id)
                if session.brand_id:
                    # A re-run replaces the previous run's brand data
                    repository.delete_brand_data(db, session.brand_id)
                    logger.info(f"Analysis {analysis_id}: replacing brand {session.brand_id}")

                brand = repository.create_brand_profile(db, user_id, domain, brand_name, description)
                category_rows = repository.create_categories(db, brand, categories)
                assignments = assign_prompts_to_categories(prompts, categories)

                jobs = []
                grouped: Dict[str, List[str]] = {name: [] for name in categories}
                prompt_docs = []
                for position, (entry, index) in enumerate(zip(prompts, assignments)):
                    category = category_rows[index]
                    prompt = repository.create_prompt(db, category, analysis_id, entry.prompt_text, position)
                    jobs.append(PromptJob(str(prompt.id), prompt.prompt_text, category.name))
                    grouped[category.name].append(prompt.prompt_text)
                    prompt_docs.append({
                        "_id": str(prompt.id),
                        "promptText": prompt.prompt_text,
                        "categoryName": category.name,
                    })
                brand_id = str(brand.id)

                # Partial results stay reachable if a later step fails
                session.analysis_results = {**(session.analysis_results or {}), "brandId": brand_id}

            detail.update(brandId=brand_id, categoriesCount=len(categories), promptsCount=len(jobs))

        # AI responses and the mentions they contain
        with self._tracked_step(analysis_id, user_id, PipelineStep.AI_RESPONSES) as detail:
            collector = ResponseCollector(
                self.llm,
                batch_size=self.settings.PROMPT_BATCH_SIZE,
                batch_delay=self.settings.PROMPT_BATCH_DELAY,
                max_tokens=self.settings.RESPONSE_MAX_TOKENS,
            )
            collected = await collector.collect(jobs)

            companies = tracked_companies(brand_name, competitors)
            jobs_by_id = {job.prompt_id: job for job in jobs}
            response_mentions: List[List[str]] = []
            mention_records: List[MentionRecord] = []

            with get_db_context() as db:
                for item in collected:
                    prompt = repository.get_prompt(db, item.prompt_id)
                    response = repository.store_response(
                        db, prompt, item.content,
                        model=item.model,
                        input_tokens=item.usage.input_tokens,
                        output_tokens=item.usage.output_tokens,
                    )
                    mentions = extract_mentions(item.content.value, companies)
                    repository.store_mentions(db, response, mentions, prompt.category_id)

                    response_mentions.append([m.company_name for m in mentions])
                    mention_records.extend(
                        MentionRecord(
                            company_name=m.company_name,
                            prompt_text=prompt.prompt_text,
                            response_text=item.content.value,
                            category_name=jobs_by_id[item.prompt_id].category_name,
                            occurrences=m.occurrences,
                            confidence=m.confidence,
                            created_at=datetime.utcnow(),
                        )
                        for m in mentions
                    )

            detail.update(
                responses=len(collected),
                skipped=len(collector.skipped),
                mentions=len(mention_records),
            )

        # Share of voice
        with self._tracked_step(analysis_id, user_id, PipelineStep.SHARE_OF_VOICE) as detail:
            sov = calculate_share_of_voice(brand_name, competitors, response_mentions)
            now = datetime.utcnow()

            results = AnalysisResults(
                brand_id=brand_id,
                session_id=analysis_id,
                categories=[{"name": name, "prompts": texts} for name, texts in grouped.items()],
                competitors=sov.competitors,
                prompts=prompt_docs,
                share_of_voice=sov.share_of_voice,
                mention_counts=sov.mention_counts,
                total_mentions=sov.total_mentions,
                brand_share=sov.brand_share,
                ai_visibility_score=sov.ai_visibility_score,
                analysis_steps={
                    "promptsStored": len(jobs),
                    "responsesCollected": len(collected),
                    "responsesSkipped": len(collector.skipped),
                    "mentionsExtracted": len(mention_records),
                    "durationMs": int((now - started).total_seconds() * 1000),
                },
            ).to_json()

            with get_db_context() as db:
                repository.store_sov_snapshot(db, brand_id, analysis_id, sov)
                session = self._require_session(db, analysis_id, user_id)
                session.step5_data = Step5Data(
                    mentions=mention_records,
                    total_mentions=len(mention_records),
                    completed_at=now,
                ).to_json()
                session.step6_data = Step6Data(share_of_voice=sov, completed_at=now).to_json()
                session.analysis_results = results
                repository.advance_step(session, 4)
                session.mark_completed(now)

            detail.update(brandShare=sov.brand_share, totalMentions=sov.total_mentions)

        logger.info(
            f"Analysis {analysis_id} completed: {len(collected)} responses, "
            f"brand share {results['brandShare']}%"
        )
        return results

    # =========================================================================
    # RECOMPUTE STEPS 5-6
    # =========================================================================

    def _companies_for(self, session: AnalysisSession, brand_name: str) -> List[str]:
        competitors = (session.analysis_results or {}).get("competitors") or _competitor_list(session)
        return tracked_companies(brand_name, competitors)

    async def extract_mentions(
        self,
        user_id: UUID,
        analysis_id: Optional[str],
        brand_name: Optional[str],
    ) -> Dict[str, Any]:
        """Re-run mention extraction over the stored responses (step 5)."""
        if not analysis_id or not brand_name:
            raise BadRequestError("Analysis ID and brand name are required")

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            self._require_brand(session)
            companies = self._companies_for(session, brand_name)

            repository.delete_session_mentions(db, analysis_id)
            db.expire_all()

            records = []
            for response in repository.get_session_responses(db, analysis_id):
                prompt = response.prompt
                mentions = extract_mentions(response.response_text, companies)
                repository.store_mentions(db, response, mentions, prompt.category_id if prompt else None)
                records.extend(
                    MentionRecord(
                        company_name=m.company_name,
                        prompt_text=prompt.prompt_text if prompt else "",
                        response_text=response.response_text,
                        category_name=prompt.category.name if prompt and prompt.category else None,
                        occurrences=m.occurrences,
                        confidence=m.confidence,
                        created_at=datetime.utcnow(),
                    )
                    for m in mentions
                )

            step5 = Step5Data(
                mentions=records,
                total_mentions=len(records),
                completed_at=datetime.utcnow(),
            ).to_json()
            session.step5_data = step5
            repository.advance_step(session, 5)

        return {
            "success": True,
            "mentions": step5["mentions"],
            "totalMentions": step5["totalMentions"],
            "brandName": brand_name,
            "analysisId": analysis_id,
            "step5Data": step5,
        }

    def _recalculate_sov(self, db, session: AnalysisSession, brand_name: str):
        """Compute SOV from stored mentions, snapshot it and update the session."""
        companies = self._companies_for(session, brand_name)
        sov = calculate_share_of_voice(
            companies[0] if companies else brand_name,
            companies[1:],
            repository.response_mention_sets(db, session.analysis_id),
        )
        repository.store_sov_snapshot(db, session.brand_id, session.analysis_id, sov)

        sov_json = sov.to_json()
        session.analysis_results = {
            **(session.analysis_results or {}),
            **{key: sov_json[key] for key in (
                "shareOfVoice", "mentionCounts", "totalMentions", "brandShare", "aiVisibilityScore",
            )},
        }
        return sov

    async def calculate_sov(
        self,
        user_id: UUID,
        analysis_id: Optional[str],
        brand_name: Optional[str],
    ) -> Dict[str, Any]:
        """Recompute share of voice from the stored mentions (step 6)."""
        if not analysis_id or not brand_name:
            raise BadRequestError("Analysis ID and brand name are required")

        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            self._require_brand(session)

            sov = self._recalculate_sov(db, session, brand_name)
            step6 = Step6Data(share_of_voice=sov, completed_at=datetime.utcnow()).to_json()
            session.step6_data = step6
            repository.advance_step(session, 6)

        return {
            "success": True,
            "shareOfVoice": step6["shareOfVoice"],
            "brandName": brand_name,
            "analysisId": analysis_id,
            "step6Data": step6,
        }

    # =========================================================================
    # HISTORY
    # =========================================================================

    async def save_to_history(
        self,
        user_id: UUID,
        session_id: Optional[str],
        analysis_data: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Store a finished client-side session as a completed history record."""
        if not session_id or not analysis_data:
            raise BadRequestError("Session ID and analysis data are required")

        with get_db_context() as db:
            session = repository.get_analysis_session(db, session_id, user_id)
            if session is None:
                domain = normalize_domain(analysis_data.get("domain")) or "unknown"
                brand_name = analysis_data.get("brandName") or extract_brand_name(domain)
                session = repository.create_analysis_session(
                    db,
                    user_id=user_id,
                    domain=domain,
                    brand_name=brand_name,
                    brand_information=analysis_data.get("description") or "",
                    step1_data={"domain": domain, "brandName": brand_name, "completed": True},
                    analysis_id=session_id,
                )

            session.analysis_results = {**(session.analysis_results or {}), **analysis_data}
            repository.advance_step(session, 7)
            session.mark_completed()
            record = {
                "analysisId": session.analysis_id,
                "domain": session.domain,
                "brandName": session.brand_name,
                "createdAt": session.created_at.isoformat() if session.created_at else None,
                "completedAt": session.completed_at.isoformat(),
            }

        return {
            "success": True,
            "message": "Analysis saved to history successfully",
            "analysisId": session_id,
            "historyRecord": record,
        }

    async def history(self, user_id: UUID) -> Dict[str, Any]:
        with get_db_context() as db:
            sessions = repository.list_analysis_history(db, user_id, limit=self.settings.HISTORY_LIMIT)
            analyses = [repository.session_summary(s) for s in sessions]
        return {"success": True, "analyses": analyses, "totalCount": len(analyses)}

    async def sync_competitors(
        self,
        user_id: UUID,
        brand_id: Optional[str],
        competitors: Optional[List[str]],
        operation: Optional[str],
        competitor_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Propagate a competitor edit to the caller's analyses of one brand."""
        if not brand_id or not isinstance(competitors, list):
            raise BadRequestError("Brand ID and competitors array are required")
        operation = operation or "update"
        if operation not in SYNC_OPERATIONS:
            raise BadRequestError(f"Unsupported sync operation: {operation}")

        try:
            with get_db_context() as db:
                brand = repository.get_brand_profile(db, brand_id)
                if brand is None or brand.owner_user_id != user_id:
                    raise NotFoundError(BRAND_NOT_FOUND)
                return sync_competitors_across_snapshots(
                    db, brand_id, competitors, operation, competitor_name, user_id=user_id,
                )
        except ValueError as e:
            raise BadRequestError(str(e))

    # =========================================================================
    # READ
    # =========================================================================

    def _build_document(self, db, session: AnalysisSession) -> Dict[str, Any]:
        """Session document with fresh SOV values and populated categories."""
        document = repository.session_to_dict(session)
        brand_id = session.brand_id
        if not brand_id:
            document["populatedCategories"] = []
            return document

        try:
            snapshot = repository.get_latest_sov_snapshot(db, brand_id, session.analysis_id)
            if snapshot is not None:
                fresh = snapshot.to_dict()
                fresh.pop("competitors")
                document["analysisResults"] = {**document["analysisResults"], **fresh}
        except SQLAlchemyError as e:
            logger.warning(f"SOV refresh failed for {session.analysis_id}, using cached data: {e}")

        document["populatedCategories"] = repository.get_populated_categories(db, brand_id)
        return document

    async def get_analysis(self, user_id: UUID, analysis_id: str) -> Dict[str, Any]:
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            document = self._build_document(db, session)
        return {"success": True, "analysis": document}

    async def progress(self, user_id: UUID, analysis_id: str) -> Dict[str, Any]:
        """Status, current step and recorded step events."""
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            events = [repository.event_to_dict(e) for e in repository.get_step_events(db, session)]
            completed_steps = sorted({
                e["step"] for e in events if e["status"] == StepEventStatus.COMPLETED.value
            })
            return {
                "success": True,
                "analysisId": analysis_id,
                "status": session.status.value,
                "currentStep": session.current_step,
                "completedSteps": completed_steps,
                "events": events,
            }

    async def responses(self, user_id: UUID, analysis_id: str) -> Dict[str, Any]:
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            self._require_brand(session)
            responses = [
                repository.response_to_dict(r)
                for r in repository.get_session_responses(db, analysis_id)
            ]
        return {
            "success": True,
            "responses": responses,
            "totalResponses": len(responses),
            "analysisId": analysis_id,
        }

    async def mentions(self, user_id: UUID, analysis_id: str, brand_name: str) -> Dict[str, Any]:
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            self._require_brand(session)
            mentions = [
                repository.mention_to_dict(m)
                for m in repository.get_session_mentions(db, analysis_id, brand_name)
            ]
        return {
            "success": True,
            "brandName": brand_name,
            "analysisId": analysis_id,
            "mentions": mentions,
            "totalMentions": len(mentions),
        }

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_prompt(self, user_id: UUID, analysis_id: str, prompt_id: str) -> Dict[str, Any]:
        """Delete one prompt with its responses and mentions, then recompute SOV."""
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            brand_id = self._require_brand(session)

            prompt = repository.get_prompt(db, prompt_id)
            if prompt is None:
                raise NotFoundError("Prompt not found")
            if str(prompt.brand_id) != str(brand_id):
                raise AccessDeniedError("Access denied: Prompt does not belong to this analysis")

            category_id = str(prompt.category_id)
            category_name = prompt.category.name if prompt.category else None
            deleted = repository.delete_prompt(db, prompt)
            db.expire_all()

            brand_name = session.brand_name or (session.analysis_results or {}).get("brandName", "")
            sov = self._recalculate_sov(db, session, brand_name)

            results = dict(session.analysis_results)
            results["prompts"] = [p for p in results.get("prompts") or [] if p.get("_id") != str(prompt_id)]
            session.analysis_results = results

        logger.info(f"Deleted prompt {prompt_id} from analysis {analysis_id}")
        return {
            "success": True,
            "message": "Prompt deleted and analysis SOV recalculated successfully",
            "analysisId": analysis_id,
            "deletedData": {
                "promptId": str(prompt_id),
                "categoryId": category_id,
                "categoryName": category_name,
                "deletedResponses": deleted["responses"],
                "deletedMentions": deleted["mentions"],
            },
            "updatedSOV": {
                "shareOfVoice": sov.share_of_voice,
                "mentionCounts": sov.mention_counts,
                "totalMentions": sov.total_mentions,
                "brandShare": sov.brand_share,
                "aiVisibilityScore": sov.ai_visibility_score,
            },
        }

    async def delete_analysis(self, user_id: UUID, analysis_id: str) -> Dict[str, Any]:
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            if session.brand_id:
                repository.delete_brand_data(db, session.brand_id)
            db.delete(session)

        logger.info(f"Deleted analysis {analysis_id}")
        return {"success": True, "message": "Analysis deleted successfully"}

    # =========================================================================
    # PDF
    # =========================================================================

    async def pdf(self, user_id: UUID, analysis_id: str) -> GeneratedReport:
        """Render the PDF export of one analysis."""
        with get_db_context() as db:
            session = self._require_session(db, analysis_id, user_id)
            if not session.analysis_results:
                raise NotFoundError("No analysis results available for PDF generation")
            if repository.get_brand_profile(db, session.brand_id) is None:
                raise NotFoundError("Brand profile not found")

            document = self._build_document(db, session)
            responses = [
                repository.response_to_dict(r)
                for r in repository.get_session_responses(db, analysis_id)
            ]
            mentions = [
                repository.mention_to_dict(m)
                for m in repository.get_session_mentions(db, analysis_id)
            ]

        try:
            return self.report_generator.generate(document, responses, mentions)
        except Exception as e:
            logger.error(f"PDF generation failed for {analysis_id}: {e}")
            raise GatewayError("Failed to generate PDF") from e


def create_gateway(settings: Optional[Settings] = None) -> AnalysisGateway:
    """Gateway wired to the configured Claude and Perplexity clients."""
    settings = settings or get_settings()
    llm = create_claude_client(settings.ANTHROPIC_API_KEY, settings.CLAUDE_MODEL)
    perplexity = create_perplexity_client(ExternalAPIConfig(
        perplexity_api_key=settings.PERPLEXITY_API_KEY,
        perplexity_model=settings.PERPLEXITY_MODEL,
    ))
    return AnalysisGateway(llm=llm, perplexity=perplexity, settings=settings)
