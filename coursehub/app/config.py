"""
Configuration for the CourseHub content service.
Centralized settings using Pydantic Settings with environment variable support.

ENVIRONMENT VARIABLES REFERENCE
===============================

All settings can be configured via environment variables (uppercase, underscore-separated).
Example: `api_port` -> `API_PORT`

APPLICATION SETTINGS:
--------------------
ENVIRONMENT             - Runtime environment: development|staging|production|test (default: "development")
LOG_LEVEL               - Logging level: DEBUG|INFO|WARNING|ERROR|CRITICAL (default: "INFO")

API CONFIGURATION:
-----------------
API_HOST                - API bind host (default: "0.0.0.0")
API_PORT                - API bind port (default: 8004)
CORS_ORIGINS            - Plain URL, comma-separated URLs, or JSON array string

AUTHENTICATION:
--------------
DISABLE_AUTH            - Trust no headers and act as the dev principal (default: false, MUST be false in prod)
DEV_USER_ID             - Principal id used when DISABLE_AUTH=true
DEV_USER_ROLE           - Principal role used when DISABLE_AUTH=true

STORAGE:
-------
STORAGE_BACKEND         - memory|firestore (default: "memory")
GCP_PROJECT_ID          - Google Cloud Project ID for Firestore
FIRESTORE_DATABASE      - Firestore database id (default: "(default)")

SLUGS:
-----
SLUG_PERSIST_MAX_CONFLICTS - Unique-constraint collisions tolerated before a create gives up (default: 5)
"""

import os
from typing import Optional
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables.
    Supports .env file loading in development.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Application Settings
    # ============================================
    app_name: str = Field(default="coursehub-content-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production|test)$",
        description="Runtime environment",
    )
    log_level: str = Field(default="INFO")

    # ============================================
    # API Configuration
    # ============================================
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8004)

    # CORS: stored as string to avoid pydantic-settings JSON parsing issues
    cors_origins: str = Field(default="http://localhost:3000")

    # ============================================
    # Authentication
    # ============================================
    disable_auth: bool = Field(default=False)
    dev_user_id: str = Field(default="dev-admin")
    dev_user_role: str = Field(default="ADMIN")

    # ============================================
    # Storage
    # ============================================
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|firestore)$",
        description="Document store implementation",
    )
    gcp_project_id: str = Field(default="local-dev-project")
    firestore_database: str = Field(default="(default)")
    google_application_credentials: Optional[str] = Field(default=None)

    # ============================================
    # Slugs
    # ============================================
    slug_persist_max_conflicts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Unique-constraint collisions tolerated when persisting a new slug",
    )


@lru_cache()
def get_settings() -> Settings:
    settings_instance = Settings()

    # In Cloud Run, credentials come from the service account, not a file
    if settings_instance.google_application_credentials:
        creds_path = settings_instance.google_application_credentials
        if os.path.exists(creds_path):
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = creds_path

    return settings_instance
