"""
Competitor Synchronisation

When a brand's competitor list is edited, every completed or in-progress
analysis of that brand is rewritten to carry the new list. Deleting a
competitor also drops it from the stored SOV and mention-count maps.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from src.database import repository

logger = logging.getLogger(__name__)

SYNC_OPERATIONS = ("add", "update", "delete")


def sync_competitors_across_snapshots(
    db: Session,
    brand_id: str,
    competitors: List[str],
    operation: str,
    competitor_name: Optional[str] = None,
    user_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """
    Propagate a competitor edit to all sessions of a brand.

    Args:
        db: Database session
        brand_id: Brand profile id stored in analysis_results
        competitors: The full, updated competitor list
        operation: "add", "update" or "delete"
        competitor_name: Competitor that was added or removed
        user_id: Only touch this user's sessions

    Returns:
        Summary with updatedCount, skippedCount, totalFound and per-session results
    """
    if operation not in SYNC_OPERATIONS:
        raise ValueError(f"Unsupported sync operation: {operation}")

    sessions = repository.list_brand_sessions(db, brand_id, user_id)
    logger.info(
        f"Syncing competitor {operation} '{competitor_name}' for brand {brand_id} "
        f"across {len(sessions)} analyses"
    )

    updated = 0
    skipped = 0
    results = []

    for session in sessions:
        try:
            analysis_results = dict(session.analysis_results or {})
            old_competitors = list(analysis_results.get("competitors") or [])
            analysis_results["competitors"] = list(competitors)

            if operation == "delete" and competitor_name:
                for key in ("shareOfVoice", "mentionCounts"):
                    values = dict(analysis_results.get(key) or {})
                    values.pop(competitor_name, None)
                    analysis_results[key] = values

            session.analysis_results = analysis_results
            if (session.step3_data or {}).get("competitors") is not None:
                session.step3_data = {**session.step3_data, "competitors": list(competitors)}
            session.updated_at = datetime.utcnow()

            updated += 1
            results.append({
                "analysisId": session.analysis_id,
                "success": True,
                "oldCount": len(old_competitors),
                "newCount": len(competitors),
                "operation": operation,
            })
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to sync analysis {session.analysis_id}: {e}")
            skipped += 1
            results.append({
                "analysisId": session.analysis_id,
                "success": False,
                "error": str(e),
            })

    # Snapshots feed the SOV refresh on read, so they carry the edit too
    snapshots = repository.list_sov_snapshots(db, brand_id)
    for snapshot in snapshots:
        snapshot.competitors = list(competitors)
        if operation == "delete" and competitor_name:
            snapshot.share_of_voice = {
                k: v for k, v in (snapshot.share_of_voice or {}).items() if k != competitor_name
            }
            snapshot.mention_counts = {
                k: v for k, v in (snapshot.mention_counts or {}).items() if k != competitor_name
            }

    return {
        "success": True,
        "updatedCount": updated,
        "snapshotsUpdated": len(snapshots),
        "skippedCount": skipped,
        "totalFound": len(sessions),
        "operation": operation,
        "competitorName": competitor_name,
        "newCompetitorsList": list(competitors),
        "updateResults": results,
    }
