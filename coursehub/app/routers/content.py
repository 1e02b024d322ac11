"""
Content administration API.

Every route hands the resolved principal to ContentService and renders the
returned OperationResult, mapping its failure reason to an HTTP status.
Request bodies are validated by the service so validation failures come
back in the same OperationResult shape.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

from coursehub.app.dependencies.auth import get_current_principal
from coursehub.app.models.content_models import OperationResult, Principal
from coursehub.core.constants import HTTP_STATUS_BY_REASON
from coursehub.core.services.content_crud import ContentService
from coursehub.core.utils.slugify import canonicalize


router = APIRouter()


def get_content_service(request: Request) -> ContentService:
    """Return the service built once at startup."""
    return request.app.state.content_service


def _respond(result: OperationResult, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.success else HTTP_STATUS_BY_REASON[result.reason]
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ============================================
# Courses
# ============================================

@router.post("/courses")
async def create_course(
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.create_course(principal, payload)
    return _respond(result, success_status=201)


@router.patch("/courses/{course_id}")
async def update_course(
    course_id: str,
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.update_course(principal, course_id, payload)
    return _respond(result)


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: str,
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    """Delete a course with its modules, lessons and sessions."""
    result = await service.delete_course(principal, course_id)
    return _respond(result)


# ============================================
# Modules
# ============================================

@router.post("/modules")
async def create_module(
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.create_module(principal, payload)
    return _respond(result, success_status=201)


@router.patch("/modules/{module_id}")
async def update_module(
    module_id: str,
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.update_module(principal, module_id, payload)
    return _respond(result)


@router.delete("/modules/{module_id}")
async def delete_module(
    module_id: str,
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    """Delete a module and every lesson that belongs to it."""
    result = await service.delete_module(principal, module_id)
    return _respond(result)


# ============================================
# Lessons
# ============================================

@router.post("/lessons")
async def create_lesson(
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.create_lesson(principal, payload)
    return _respond(result, success_status=201)


@router.patch("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: str,
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.update_lesson(principal, lesson_id, payload)
    return _respond(result)


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.delete_lesson(principal, lesson_id)
    return _respond(result)


# ============================================
# Sessions
# ============================================

@router.post("/sessions")
async def create_session(
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.create_session(principal, payload)
    return _respond(result, success_status=201)


@router.patch("/sessions/{session_id}")
async def update_session(
    session_id: str,
    payload: Dict[str, Any] = Body(...),
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.update_session(principal, session_id, payload)
    return _respond(result)


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    principal: Optional[Principal] = Depends(get_current_principal),
    service: ContentService = Depends(get_content_service),
):
    result = await service.delete_session(principal, session_id)
    return _respond(result)


# ============================================
# Slugs
# ============================================

@router.get("/slugs/canonicalize")
async def canonicalize_slug(text: str = Query(..., max_length=1000)):
    """Preview the slug a title would produce, before uniqueness is applied."""
    return {"text": text, "slug": canonicalize(text)}
