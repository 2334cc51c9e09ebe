"""
FastAPI Dependency Injection

Provides the settings, the content backend client and the in-process
registries shared by API endpoints. Tests replace the registries through
app.dependency_overrides.
"""

from functools import lru_cache

from src.api.services.session_registry import SessionRegistry
from src.authoring.config import AuthoringSettings
from src.authoring.services.reorder import ReorderRegistry
from src.content_api_client import ContentApiClient


@lru_cache(maxsize=1)
def get_settings() -> AuthoringSettings:
    return AuthoringSettings.from_env()


@lru_cache(maxsize=1)
def get_content_client() -> ContentApiClient:
    return ContentApiClient.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    """
    FastAPI dependency for the authoring session registry.

    Usage in endpoints:
        @router.get("/sessions/{session_id}")
        def get_session(session_id: str, registry=Depends(get_session_registry)):
            return registry.get(session_id)
    """
    client = get_content_client()
    return SessionRegistry(
        generation=client,
        persistence=client,
        timeout_seconds=get_settings().generation_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_reorder_registry() -> ReorderRegistry:
    return ReorderRegistry(transport=get_content_client())
