"""Database mirror for route recommendations."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Sequence

from ..db.supabase import get_supabase_client
from ..models.domain import Recommendation

RECOMMENDATIONS_TABLE = "route_recommendations"


def _recommendation_record(recommendation: Recommendation) -> dict[str, Any]:
    return asdict(recommendation)


def save_recommendations_to_database(recommendations: Sequence[Recommendation]) -> int:
    """Insert recommendations into Supabase.

    Returns the number of rows written; 0 when the database is not configured
    or the insert fails. File storage remains the source of truth.
    """
    supabase = get_supabase_client()
    if not supabase:
        logging.debug("Supabase not configured - recommendations will only be saved to files")
        return 0
    if not recommendations:
        return 0

    records = [_recommendation_record(item) for item in recommendations]
    batch_size = 100
    inserted = 0
    try:
        for i in range(0, len(records), batch_size):
            batch = records[i:i + batch_size]
            supabase.table(RECOMMENDATIONS_TABLE).insert(batch).execute()
            inserted += len(batch)
    except Exception as e:
        logging.warning(f"Failed to mirror recommendations to database (non-critical): {e}")
    return inserted


def delete_recommendations_from_database(session_id: str) -> None:
    supabase = get_supabase_client()
    if not supabase:
        return
    try:
        supabase.table(RECOMMENDATIONS_TABLE).delete().eq("session_id", session_id).execute()
    except Exception as e:
        logging.warning(f"Failed to delete recommendations for {session_id} from database: {e}")
