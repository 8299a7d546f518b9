"""
NoteLens - Edit Analysis Tasks
Celery tasks for analyzing completed edit sessions off the request path
"""

import logging

from pydantic import ValidationError

from notelens.celery_app import celery_app
from notelens.schemas import EditSession
from notelens.modules.edit_analysis import analyze_edit_session
from notelens.services.cache_service import get_cache_service

logger = logging.getLogger(__name__)


@celery_app.task(name="notelens.tasks.analysis.analyze_edit_session", bind=True, max_retries=3)
def analyze_edit_session_task(self, session_payload: dict) -> dict:
    """
    Analyze a completed edit session asynchronously

    Args:
        session_payload: EditSession as a JSON-compatible dictionary

    Returns:
        EditAnalysisResult as a JSON-compatible dictionary
    """
    try:
        session = EditSession.model_validate(session_payload)
    except ValidationError as e:
        # A malformed payload will not improve on retry
        logger.error(f"Rejected edit session payload: {e.error_count()} validation errors")
        raise

    try:
        logger.info(f"Starting async analysis for session {session.session_id}")

        result = analyze_edit_session(session)
        get_cache_service().cache_analysis_result(result)

        logger.info(
            f"Analysis complete for session {session.session_id}: "
            f"satisfaction {result.overall_satisfaction}, priority {result.priority.value}"
        )
        return result.model_dump(mode="json")

    except Exception as e:
        logger.error(f"Analysis task failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
