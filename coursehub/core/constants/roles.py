"""User roles and activity types shared by the content service."""

from enum import Enum


class UserRole(str, Enum):
    """Roles a principal can carry."""
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class ActivityType(str, Enum):
    """Kinds of entries the content service writes to the activity history."""
    COURSE_CREATED = "course_created"
    COURSE_UPDATED = "course_updated"
    COURSE_DELETED = "course_deleted"
    MODULE_CREATED = "module_created"
    MODULE_UPDATED = "module_updated"
    MODULE_DELETED = "module_deleted"
    LESSON_CREATED = "lesson_created"
    LESSON_UPDATED = "lesson_updated"
    LESSON_DELETED = "lesson_deleted"
    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"
