"""
Activity Recording Utility
Writes an append-only history of domain events to the activities collection.

Recording is best-effort: a failed write is logged and reported through
RecordResult, never raised, so it cannot affect the operation that
triggered it.
"""

import logging
from datetime import datetime, timezone

from coursehub.app.models.content_models import ActivityEvent, RecordResult
from coursehub.core.engine.document_store import DocumentCollection

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """
    Records activity events for users.

    Activities are created once and never updated; nothing else in the
    service reads them back for correctness.
    """

    def __init__(self, activities: DocumentCollection):
        self.activities = activities

    async def record(self, event: ActivityEvent) -> RecordResult:
        """
        Persist one activity event.

        Args:
            event: The event to record

        Returns:
            RecordResult with success=True and the new activity id, or
            success=False when the write failed
        """
        try:
            activity_id = await self.activities.insert_one({
                "user": event.user_id,
                "activity_type": event.activity_type.value,
                "title": event.title,
                "description": event.description,
                "metadata": dict(event.metadata),
                "created_at": datetime.now(timezone.utc),
            })

            logger.info(
                "Activity recorded",
                extra={
                    "user_id": event.user_id,
                    "activity_type": event.activity_type.value,
                    "entity_id": activity_id,
                }
            )
            return RecordResult(success=True, activity_id=activity_id)

        except Exception as e:
            # Activity history is diagnostic; never block the caller
            logger.error(
                f"Failed to record activity: {e}",
                extra={
                    "user_id": event.user_id,
                    "activity_type": event.activity_type.value,
                },
                exc_info=True
            )
            return RecordResult(success=False, message="Failed to create activity")
