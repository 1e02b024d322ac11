"""
Pydantic models for course content management.

This module provides:
- The acting principal and the structured operation result
- Activity events and recorder results
- Request models for the course/module/lesson/session write paths
- Enums for course attributes
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, HttpUrl, ConfigDict, field_validator, model_validator

from coursehub.core.constants import ActivityType, FailureReason, UserRole


# ============================================================================
# ENUMS
# ============================================================================

class CourseType(str, Enum):
    """Delivery format of a course."""
    SELF_PACED = "self-paced"
    LIVE = "live"


class CourseStatus(str, Enum):
    """Publication state of a course."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# ============================================================================
# PRINCIPAL & RESULTS
# ============================================================================

class Principal(BaseModel):
    """The authenticated actor performing an operation."""
    id: str = Field(..., min_length=1, max_length=100)
    role: UserRole


class OperationResult(BaseModel):
    """Structured outcome of every public content operation."""
    success: bool
    message: str
    reason: Optional[FailureReason] = None
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": False,
            "message": "Module not found",
            "reason": "NOT_FOUND",
            "data": None
        }
    })

    @classmethod
    def ok(cls, message: str, data: Optional[Dict[str, Any]] = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, reason: FailureReason, message: str) -> "OperationResult":
        return cls(success=False, message=message, reason=reason)


class ActivityEvent(BaseModel):
    """A domain event handed to the activity recorder."""
    user_id: str = Field(..., min_length=1)
    activity_type: ActivityType
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RecordResult(BaseModel):
    """Outcome of a best-effort activity write."""
    success: bool
    activity_id: Optional[str] = None
    message: Optional[str] = None


# ============================================================================
# REQUEST MODELS
# ============================================================================

def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CourseFields(BaseModel):
    """Fields shared by course create and update requests."""
    title: str = Field(..., min_length=1, max_length=150, description="Course title")
    slug: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=50,
        pattern=r"^[a-z0-9-]+$",
        description="Explicit slug; derived from the title when omitted"
    )
    description: Optional[str] = Field(default=None, max_length=5000)
    course_type: CourseType = Field(default=CourseType.SELF_PACED)
    level: CourseLevel = Field(default=CourseLevel.BEGINNER)
    price: float = Field(default=0, ge=0)
    status: CourseStatus = Field(default=CourseStatus.DRAFT)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("slug", mode="before")
    @classmethod
    def blank_slug_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class CreateCourseRequest(CourseFields):
    """Request model for creating a course."""

    @field_validator("status")
    @classmethod
    def status_not_archived(cls, v: CourseStatus) -> CourseStatus:
        if v == CourseStatus.ARCHIVED:
            raise ValueError("New courses must be draft or published")
        return v


class UpdateCourseRequest(CourseFields):
    """Request model for updating a course.

    Without an explicit slug, a changed title regenerates the slug.
    """


class CreateModuleRequest(BaseModel):
    """Request model for creating a module inside a course."""
    course_id: str = Field(..., min_length=1, description="Parent course id")
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    order: Optional[int] = Field(default=None, ge=0, description="Used only for the first module")


class CreateLessonRequest(BaseModel):
    """Request model for creating a lesson inside a module."""
    module_id: str = Field(..., min_length=1, description="Parent module id")
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    video_url: HttpUrl
    duration: Optional[int] = Field(default=None, ge=0, description="Minutes")
    order: Optional[int] = Field(default=None, ge=0)
    is_free_preview: bool = False


class CreateSessionRequest(BaseModel):
    """Request model for scheduling a live session for a course."""
    course_id: str = Field(..., min_length=1, description="Parent course id")
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    scheduled_at: datetime
    duration: int = Field(..., ge=1, description="Minutes")
    meeting_link: Optional[HttpUrl] = None
    recording_url: Optional[HttpUrl] = None
    order: Optional[int] = Field(default=None, ge=0)

    @field_validator("meeting_link", "recording_url", mode="before")
    @classmethod
    def blank_link_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


class UpdateModuleRequest(BaseModel):
    """Request model for updating a module.

    Title is always replaced; description and order only when sent.
    """
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    order: Optional[int] = Field(default=None, ge=0)

    def to_changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {"title": self.title}
        if "description" in self.model_fields_set:
            changes["description"] = self.description or None
        if self.order is not None:
            changes["order"] = self.order
        return changes


class UpdateLessonRequest(BaseModel):
    """Request model for updating a lesson."""
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    video_url: HttpUrl
    duration: Optional[int] = Field(default=None, ge=0, description="Minutes")
    order: Optional[int] = Field(default=None, ge=0)
    is_free_preview: Optional[bool] = None

    def to_changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {"title": self.title, "video_url": str(self.video_url)}
        if "description" in self.model_fields_set:
            changes["description"] = self.description or None
        if "duration" in self.model_fields_set:
            changes["duration"] = self.duration or None
        if self.order is not None:
            changes["order"] = self.order
        if self.is_free_preview is not None:
            changes["is_free_preview"] = self.is_free_preview
        return changes


class UpdateSessionRequest(BaseModel):
    """Request model for rescheduling or editing a live session."""
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=1000)
    scheduled_at: datetime
    duration: int = Field(..., ge=1, description="Minutes")
    meeting_link: Optional[HttpUrl] = None
    recording_url: Optional[HttpUrl] = None
    order: Optional[int] = Field(default=None, ge=0)

    @field_validator("meeting_link", "recording_url", mode="before")
    @classmethod
    def blank_link_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {
            "title": self.title,
            "scheduled_at": self.scheduled_at,
            "duration": self.duration,
        }
        if "description" in self.model_fields_set:
            changes["description"] = self.description or None
        # An empty string clears a link
        for field in ("meeting_link", "recording_url"):
            if field in self.model_fields_set:
                value = getattr(self, field)
                changes[field] = str(value) if value else None
        if self.order is not None:
            changes["order"] = self.order
        return changes
