"""
Course Content Service.

Mutations over the Course -> Module -> Lesson hierarchy and live Sessions.

Features:
- Admin-only authorization checked before any storage access
- Cascading deletes that remove children before their parent
- Unique course slugs with retry on storage-level conflicts
- Best-effort activity recording after each successful mutation

Every public method returns an OperationResult and never raises. A delete
whose final step removes nothing (the entity vanished after it was located)
reports NOT_FOUND, so concurrent deletes of the same id yield exactly one
success.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from coursehub.app.models.content_models import (
    ActivityEvent,
    CourseStatus,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    CreateSessionRequest,
    OperationResult,
    Principal,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateModuleRequest,
    UpdateSessionRequest,
)
from coursehub.core.constants import (
    ActivityType,
    FailureReason,
    UNAUTHENTICATED_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    UserRole,
)
from coursehub.core.engine.document_store import DocumentCollection
from coursehub.core.exceptions import DuplicateKeyError, SlugConflictError
from coursehub.core.security.authorization import DenialReason, authorize
from coursehub.core.services.activity_recorder import ActivityRecorder
from coursehub.core.services.content_crud.repository import ContentRepository
from coursehub.core.utils.slugify import build_base_slug, persist_with_unique_slug

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _first_validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    message = first.get("msg", "Invalid request")
    # pydantic prefixes messages raised from custom validators
    return message.removeprefix("Value error, ")


class ContentService:
    """Service for managing course content in the document store."""

    def __init__(
        self,
        repository: ContentRepository,
        recorder: Optional[ActivityRecorder] = None,
        max_slug_conflicts: int = 5,
    ):
        self.repository = repository
        self.recorder = recorder
        self.max_slug_conflicts = max_slug_conflicts

    # ==========================================================================
    # Shared helpers
    # ==========================================================================

    def _require_admin(self, principal: Optional[Principal], action: str) -> Optional[OperationResult]:
        """Return a failure result when principal may not perform action, else None."""
        decision = authorize(principal, UserRole.ADMIN)
        if decision.allowed:
            return None
        if decision.reason == DenialReason.UNAUTHENTICATED:
            return OperationResult.fail(FailureReason.UNAUTHENTICATED, UNAUTHENTICATED_MESSAGE)
        return OperationResult.fail(FailureReason.FORBIDDEN, f"Only administrators can {action}")

    @staticmethod
    def _validate(model: Type[RequestT], data: Union[RequestT, Dict[str, Any]]) -> RequestT:
        if isinstance(data, model):
            return data
        return model.model_validate(data)

    async def _record_activity(self, event: ActivityEvent) -> None:
        """Post-commit hook. Runs after the primary result is final and never raises."""
        if self.recorder is None:
            return
        try:
            result = await self.recorder.record(event)
            if not result.success:
                logger.warning(
                    f"Activity not recorded: {result.message}",
                    extra={"user_id": event.user_id, "activity_type": event.activity_type.value},
                )
        except Exception as e:
            logger.warning(
                f"Activity recorder raised: {e}",
                extra={"user_id": event.user_id, "activity_type": event.activity_type.value},
                exc_info=True,
            )

    @staticmethod
    async def _next_order(
        collection: DocumentCollection,
        parent_field: str,
        parent_id: str,
        requested: Optional[int],
    ) -> int:
        """Place a new child after the current last sibling; the first child takes the requested order."""
        last = await collection.find_one({parent_field: parent_id}, order_by="order", descending=True)
        if last is not None:
            return int(last.get("order", 0)) + 1
        return requested or 0

    # ==========================================================================
    # Delete Operations
    # ==========================================================================

    async def delete_module(self, principal: Optional[Principal], module_id: str) -> OperationResult:
        """Delete a module after deleting every lesson that references it."""
        denied = self._require_admin(principal, "delete modules")
        if denied:
            return denied

        lessons_deleted = 0
        try:
            module = await self.repository.modules.find_by_id(module_id)
            if module is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Module not found")

            # Keyed off the parent reference so a rerun picks up anything left behind
            lessons_deleted = await self.repository.lessons.delete_many({"module": module_id})

            if not await self.repository.modules.delete_by_id(module_id):
                logger.info(
                    f"Module {module_id} was removed by a concurrent request",
                    extra={"entity_id": module_id, "entity_type": "module"},
                )
                return OperationResult.fail(FailureReason.NOT_FOUND, "Module not found")

        except Exception:
            logger.exception(
                f"Delete module error (lessons removed before failure: {lessons_deleted})",
                extra={"entity_id": module_id, "entity_type": "module"},
            )
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        logger.info(
            f"Deleted module {module_id} and {lessons_deleted} lessons",
            extra={"user_id": principal.id, "entity_id": module_id, "entity_type": "module"},
        )
        result = OperationResult.ok(
            "Module deleted successfully",
            data={"id": module_id, "lessons_deleted": lessons_deleted},
        )
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.MODULE_DELETED,
            title=f"Deleted module: {module.get('title', module_id)}",
            metadata={
                "moduleId": module_id,
                "moduleTitle": module.get("title"),
                "courseId": module.get("course"),
                "lessonsDeleted": lessons_deleted,
            },
        ))
        return result

    async def _delete_single(
        self,
        principal: Optional[Principal],
        collection: DocumentCollection,
        entity_id: str,
        label: str,
        activity_type: ActivityType,
    ) -> OperationResult:
        """Existence check followed by one delete; no cascade."""
        denied = self._require_admin(principal, f"delete {label}s")
        if denied:
            return denied

        title = label.capitalize()
        try:
            entity = await collection.find_by_id(entity_id)
            if entity is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, f"{title} not found")

            if not await collection.delete_by_id(entity_id):
                logger.info(
                    f"{title} {entity_id} was removed by a concurrent request",
                    extra={"entity_id": entity_id, "entity_type": label},
                )
                return OperationResult.fail(FailureReason.NOT_FOUND, f"{title} not found")

        except Exception:
            logger.exception(
                f"Delete {label} error",
                extra={"entity_id": entity_id, "entity_type": label},
            )
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        logger.info(
            f"Deleted {label} {entity_id}",
            extra={"user_id": principal.id, "entity_id": entity_id, "entity_type": label},
        )
        result = OperationResult.ok(f"{title} deleted successfully", data={"id": entity_id})
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=activity_type,
            title=f"Deleted {label}: {entity.get('title', entity_id)}",
            metadata={f"{label}Id": entity_id, f"{label}Title": entity.get("title")},
        ))
        return result

    async def delete_lesson(self, principal: Optional[Principal], lesson_id: str) -> OperationResult:
        return await self._delete_single(
            principal, self.repository.lessons, lesson_id, "lesson", ActivityType.LESSON_DELETED
        )

    async def delete_session(self, principal: Optional[Principal], session_id: str) -> OperationResult:
        return await self._delete_single(
            principal, self.repository.sessions, session_id, "session", ActivityType.SESSION_DELETED
        )

    async def delete_course(self, principal: Optional[Principal], course_id: str) -> OperationResult:
        """
        Delete a course with all of its content.

        Order: lessons of each module, the modules, the sessions, then the
        course itself. A crash part-way leaves a parent without some of its
        children, never a child without its parent.
        """
        denied = self._require_admin(principal, "delete courses")
        if denied:
            return denied

        counts = {"modules_deleted": 0, "lessons_deleted": 0, "sessions_deleted": 0}
        try:
            course = await self.repository.courses.find_by_id(course_id)
            if course is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")

            modules = await self.repository.modules.find({"course": course_id})
            for module in modules:
                counts["lessons_deleted"] += await self.repository.lessons.delete_many(
                    {"module": module["id"]}
                )

            counts["modules_deleted"] = await self.repository.modules.delete_many({"course": course_id})
            counts["sessions_deleted"] = await self.repository.sessions.delete_many({"course": course_id})

            if not await self.repository.courses.delete_by_id(course_id):
                logger.info(
                    f"Course {course_id} was removed by a concurrent request",
                    extra={"entity_id": course_id, "entity_type": "course"},
                )
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")

        except Exception:
            logger.exception(
                f"Delete course error (removed before failure: {counts})",
                extra={"entity_id": course_id, "entity_type": "course"},
            )
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        logger.info(
            f"Deleted course {course_id}: {counts}",
            extra={"user_id": principal.id, "entity_id": course_id, "entity_type": "course"},
        )
        result = OperationResult.ok("Course deleted successfully", data={"id": course_id, **counts})
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.COURSE_DELETED,
            title=f"Deleted course: {course.get('title', course_id)}",
            metadata={
                "courseId": course_id,
                "courseTitle": course.get("title"),
                "courseSlug": course.get("slug"),
                **counts,
            },
        ))
        return result

    # ==========================================================================
    # Course Write Operations
    # ==========================================================================

    async def create_course(
        self,
        principal: Optional[Principal],
        data: Union[CreateCourseRequest, Dict[str, Any]],
    ) -> OperationResult:
        """Create a course with a unique slug derived from the title or the requested slug."""
        denied = self._require_admin(principal, "create courses")
        if denied:
            return denied

        try:
            request = self._validate(CreateCourseRequest, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        courses = self.repository.courses
        base_slug = build_base_slug(request.title, request.slug)

        async def slug_taken(candidate: str) -> bool:
            return await courses.exists({"slug": candidate})

        async def insert_course(slug: str) -> str:
            now = _now()
            return await courses.insert_one({
                "title": request.title,
                "slug": slug,
                "description": request.description,
                "instructor": principal.id,
                "course_type": request.course_type.value,
                "level": request.level.value,
                "price": request.price,
                "status": request.status.value,
                "published_at": now if request.status == CourseStatus.PUBLISHED else None,
                "start_date": request.start_date,
                "end_date": request.end_date,
                "created_at": now,
                "updated_at": now,
            })

        try:
            course_id = await persist_with_unique_slug(
                base_slug, slug_taken, insert_course, max_conflicts=self.max_slug_conflicts
            )
            course = await courses.find_by_id(course_id)
        except SlugConflictError as e:
            logger.warning(f"Create course gave up on slug: {e.message}", extra={"user_id": principal.id})
            return OperationResult.fail(FailureReason.CONFLICT, "Could not allocate a unique slug, please retry")
        except Exception:
            logger.exception("Create course error", extra={"user_id": principal.id})
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        slug = course["slug"] if course else None
        result = OperationResult.ok("Course created successfully", data={"id": course_id, "slug": slug})
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.COURSE_CREATED,
            title=f"Created course: {request.title}",
            metadata={"courseId": course_id, "courseTitle": request.title, "courseSlug": slug},
        ))
        return result

    async def update_course(
        self,
        principal: Optional[Principal],
        course_id: str,
        data: Union[UpdateCourseRequest, Dict[str, Any]],
    ) -> OperationResult:
        """
        Update a course.

        Slug rules:
        - a requested slug different from the current one must be free
        - with no requested slug, a changed title regenerates the slug
        - otherwise the current slug is kept
        """
        denied = self._require_admin(principal, "update courses")
        if denied:
            return denied

        try:
            request = self._validate(UpdateCourseRequest, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        courses = self.repository.courses

        async def slug_taken(candidate: str) -> bool:
            return await courses.exists({"slug": candidate, "id": {"$ne": course_id}})

        try:
            existing = await courses.find_by_id(course_id)
            if existing is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")

            changes: Dict[str, Any] = {
                "title": request.title,
                "description": request.description,
                "course_type": request.course_type.value,
                "level": request.level.value,
                "price": request.price,
                "status": request.status.value,
                "start_date": request.start_date,
                "end_date": request.end_date,
                "updated_at": _now(),
            }
            if request.status == CourseStatus.PUBLISHED and not existing.get("published_at"):
                changes["published_at"] = changes["updated_at"]

            async def apply_update(slug: str) -> bool:
                return await courses.update_by_id(course_id, {**changes, "slug": slug})

            current_slug = existing.get("slug")
            if request.slug and request.slug != current_slug:
                if await slug_taken(request.slug):
                    return OperationResult.fail(FailureReason.CONFLICT, "This slug is already in use")
                try:
                    updated = await apply_update(request.slug)
                except DuplicateKeyError:
                    return OperationResult.fail(FailureReason.CONFLICT, "This slug is already in use")
            elif not request.slug and request.title != existing.get("title"):
                updated = await persist_with_unique_slug(
                    build_base_slug(request.title),
                    slug_taken,
                    apply_update,
                    max_conflicts=self.max_slug_conflicts,
                )
            else:
                updated = await courses.update_by_id(course_id, changes)

            if not updated:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")
            course = await courses.find_by_id(course_id)

        except SlugConflictError as e:
            logger.warning(f"Update course gave up on slug: {e.message}", extra={"entity_id": course_id})
            return OperationResult.fail(FailureReason.CONFLICT, "Could not allocate a unique slug, please retry")
        except Exception:
            logger.exception("Update course error", extra={"entity_id": course_id, "entity_type": "course"})
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        slug = course["slug"] if course else None
        result = OperationResult.ok("Course updated successfully", data={"id": course_id, "slug": slug})
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.COURSE_UPDATED,
            title=f"Updated course: {request.title}",
            metadata={"courseId": course_id, "courseSlug": slug, "previousSlug": existing.get("slug")},
        ))
        return result

    # ==========================================================================
    # Child Write Operations
    # ==========================================================================

    async def create_module(
        self,
        principal: Optional[Principal],
        data: Union[CreateModuleRequest, Dict[str, Any]],
    ) -> OperationResult:
        denied = self._require_admin(principal, "create modules")
        if denied:
            return denied

        try:
            request = self._validate(CreateModuleRequest, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        try:
            course = await self.repository.courses.find_by_id(request.course_id)
            if course is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")

            order = await self._next_order(self.repository.modules, "course", request.course_id, request.order)
            now = _now()
            module_id = await self.repository.modules.insert_one({
                "course": request.course_id,
                "title": request.title,
                "description": request.description,
                "order": order,
                "created_at": now,
                "updated_at": now,
            })
        except Exception:
            logger.exception("Create module error", extra={"user_id": principal.id})
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        result = OperationResult.ok(
            "Module created successfully",
            data={"id": module_id, "title": request.title, "order": order},
        )
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.MODULE_CREATED,
            title=f"Created module: {request.title}",
            metadata={"moduleId": module_id, "moduleTitle": request.title, "courseId": request.course_id},
        ))
        return result

    async def create_lesson(
        self,
        principal: Optional[Principal],
        data: Union[CreateLessonRequest, Dict[str, Any]],
    ) -> OperationResult:
        denied = self._require_admin(principal, "create lessons")
        if denied:
            return denied

        try:
            request = self._validate(CreateLessonRequest, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        try:
            module = await self.repository.modules.find_by_id(request.module_id)
            if module is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Module not found")

            order = await self._next_order(self.repository.lessons, "module", request.module_id, request.order)
            now = _now()
            lesson_id = await self.repository.lessons.insert_one({
                "module": request.module_id,
                "title": request.title,
                "description": request.description,
                "video_url": str(request.video_url),
                "duration": request.duration,
                "order": order,
                "is_free_preview": request.is_free_preview,
                "created_at": now,
                "updated_at": now,
            })
        except Exception:
            logger.exception("Create lesson error", extra={"user_id": principal.id})
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        result = OperationResult.ok(
            "Lesson created successfully",
            data={"id": lesson_id, "title": request.title, "order": order},
        )
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.LESSON_CREATED,
            title=f"Created lesson: {request.title}",
            metadata={"lessonId": lesson_id, "lessonTitle": request.title, "moduleId": request.module_id},
        ))
        return result

    async def create_session(
        self,
        principal: Optional[Principal],
        data: Union[CreateSessionRequest, Dict[str, Any]],
    ) -> OperationResult:
        denied = self._require_admin(principal, "create sessions")
        if denied:
            return denied

        try:
            request = self._validate(CreateSessionRequest, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        try:
            course = await self.repository.courses.find_by_id(request.course_id)
            if course is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, "Course not found")

            order = await self._next_order(self.repository.sessions, "course", request.course_id, request.order)
            now = _now()
            session_id = await self.repository.sessions.insert_one({
                "course": request.course_id,
                "title": request.title,
                "description": request.description,
                "scheduled_at": request.scheduled_at,
                "duration": request.duration,
                "meeting_link": str(request.meeting_link) if request.meeting_link else None,
                "recording_url": str(request.recording_url) if request.recording_url else None,
                "order": order,
                "created_at": now,
                "updated_at": now,
            })
        except Exception:
            logger.exception("Create session error", extra={"user_id": principal.id})
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        result = OperationResult.ok(
            "Session created successfully",
            data={"id": session_id, "title": request.title, "order": order},
        )
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=ActivityType.SESSION_CREATED,
            title=f"Scheduled session: {request.title}",
            metadata={"sessionId": session_id, "sessionTitle": request.title, "courseId": request.course_id},
        ))
        return result

    # ==========================================================================
    # Child Update Operations
    # ==========================================================================

    async def _update_single(
        self,
        principal: Optional[Principal],
        collection: DocumentCollection,
        entity_id: str,
        label: str,
        model: Type[RequestT],
        data: Union[RequestT, Dict[str, Any]],
        activity_type: ActivityType,
    ) -> OperationResult:
        """Validate, locate, then apply the request's changes to one document."""
        denied = self._require_admin(principal, f"update {label}s")
        if denied:
            return denied

        try:
            request = self._validate(model, data)
        except ValidationError as e:
            return OperationResult.fail(FailureReason.VALIDATION_ERROR, _first_validation_message(e))

        title = label.capitalize()
        try:
            existing = await collection.find_by_id(entity_id)
            if existing is None:
                return OperationResult.fail(FailureReason.NOT_FOUND, f"{title} not found")

            changes = {**request.to_changes(), "updated_at": _now()}
            if not await collection.update_by_id(entity_id, changes):
                return OperationResult.fail(FailureReason.NOT_FOUND, f"{title} not found")

        except Exception:
            logger.exception(
                f"Update {label} error",
                extra={"entity_id": entity_id, "entity_type": label},
            )
            return OperationResult.fail(FailureReason.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE)

        order = changes.get("order", existing.get("order"))
        result = OperationResult.ok(
            f"{title} updated successfully",
            data={"id": entity_id, "title": changes["title"], "order": order},
        )
        await self._record_activity(ActivityEvent(
            user_id=principal.id,
            activity_type=activity_type,
            title=f"Updated {label}: {changes['title']}",
            metadata={f"{label}Id": entity_id, "changedFields": sorted(k for k in changes if k != "updated_at")},
        ))
        return result

    async def update_module(
        self,
        principal: Optional[Principal],
        module_id: str,
        data: Union[UpdateModuleRequest, Dict[str, Any]],
    ) -> OperationResult:
        return await self._update_single(
            principal, self.repository.modules, module_id, "module",
            UpdateModuleRequest, data, ActivityType.MODULE_UPDATED,
        )

    async def update_lesson(
        self,
        principal: Optional[Principal],
        lesson_id: str,
        data: Union[UpdateLessonRequest, Dict[str, Any]],
    ) -> OperationResult:
        return await self._update_single(
            principal, self.repository.lessons, lesson_id, "lesson",
            UpdateLessonRequest, data, ActivityType.LESSON_UPDATED,
        )

    async def update_session(
        self,
        principal: Optional[Principal],
        session_id: str,
        data: Union[UpdateSessionRequest, Dict[str, Any]],
    ) -> OperationResult:
        """Reschedule or edit a session; an empty link string clears that link."""
        return await self._update_single(
            principal, self.repository.sessions, session_id, "session",
            UpdateSessionRequest, data, ActivityType.SESSION_UPDATED,
        )
