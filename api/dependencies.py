"""
FastAPI Dependencies

Tenant scope, metric store and model client for the API routes. Tests
override get_metric_store and get_model_client through
app.dependency_overrides.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Header, HTTPException, status

from dental_marketing.analyzer import create_model_client
from dental_marketing.database import SqlMetricStore, get_session_factory
from dental_marketing.errors import ModelCallError
from dental_marketing.models import TenantScope
from dental_marketing.utils import get_settings

logger = logging.getLogger(__name__)


async def get_tenant_scope(
    x_organization_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> TenantScope:
    """
    Tenant scope from request headers.

    Raises:
        HTTPException 401: No organization header
    """
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return TenantScope(organization_id=x_organization_id, user_id=x_user_id)


def get_metric_store() -> SqlMetricStore:
    """SQL-backed store on the global session factory."""
    return SqlMetricStore(get_session_factory())


class UnconfiguredModel:
    """Stands in when no model client can be built; every call fails."""

    def __init__(self, reason: str):
        self.reason = reason

    async def complete(self, prompt: str) -> str:
        raise ModelCallError(self.reason)


async def get_model_client() -> AsyncGenerator:
    """
    Model client for the configured provider, closed after the request.

    A missing API key does not fail the request: the analysis completes
    without AI output.
    """
    try:
        client = create_model_client(get_settings())
    except ModelCallError as e:
        logger.warning(f"Model client unavailable: {e}")
        yield UnconfiguredModel(str(e))
        return

    try:
        yield client
    finally:
        await client.close()
