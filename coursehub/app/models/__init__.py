"""
Pydantic models for the content service.
"""

from coursehub.app.models.content_models import (
    ActivityEvent,
    CourseLevel,
    CourseStatus,
    CourseType,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    CreateSessionRequest,
    OperationResult,
    Principal,
    RecordResult,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateModuleRequest,
    UpdateSessionRequest,
)

__all__ = [
    "ActivityEvent",
    "CourseLevel",
    "CourseStatus",
    "CourseType",
    "CreateCourseRequest",
    "CreateLessonRequest",
    "CreateModuleRequest",
    "CreateSessionRequest",
    "OperationResult",
    "Principal",
    "RecordResult",
    "UpdateCourseRequest",
    "UpdateLessonRequest",
    "UpdateModuleRequest",
    "UpdateSessionRequest",
]
