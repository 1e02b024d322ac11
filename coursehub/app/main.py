"""
CourseHub Content Service: FastAPI.

Endpoints:
- GET    /health                          → Health check
- POST   /api/v1/courses                  → Create course
- PATCH  /api/v1/courses/{course_id}      → Update course
- DELETE /api/v1/courses/{course_id}      → Delete course with all content
- POST   /api/v1/modules                  → Create module
- PATCH  /api/v1/modules/{module_id}      → Update module
- DELETE /api/v1/modules/{module_id}      → Delete module and its lessons
- POST   /api/v1/lessons                  → Create lesson
- PATCH  /api/v1/lessons/{lesson_id}      → Update lesson
- DELETE /api/v1/lessons/{lesson_id}      → Delete lesson
- POST   /api/v1/sessions                 → Schedule live session
- PATCH  /api/v1/sessions/{session_id}    → Update session
- DELETE /api/v1/sessions/{session_id}    → Delete session
- GET    /api/v1/slugs/canonicalize       → Preview a slug
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coursehub.app.config import get_settings
from coursehub.app.middleware.cors import setup_cors
from coursehub.app.middleware.logging import RequestLoggingMiddleware
from coursehub.app.routers import content
from coursehub.core.observability.logging import setup_logging
from coursehub.core.services.activity_recorder import ActivityRecorder
from coursehub.core.services.content_crud import ContentService, build_repository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.app_version} on port {settings.api_port}")

    # Built once per process and injected; never re-created per request
    repository = build_repository(settings)
    app.state.repository = repository
    app.state.content_service = ContentService(
        repository,
        recorder=ActivityRecorder(repository.activities),
        max_slug_conflicts=settings.slug_persist_max_conflicts,
    )
    yield
    await repository.close()
    logger.info("Shutting down content service")


app = FastAPI(
    title="CourseHub Content Service",
    version="1.0.0",
    lifespan=lifespan,
)

setup_cors(app)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(content.router, prefix="/api/v1", tags=["Content"])


# ============================================
# Health
# ============================================

@app.get("/health")
async def health():
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "storage_backend": settings.storage_backend,
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "coursehub.app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
