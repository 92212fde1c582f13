import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..config import Settings
from ..insights import InsightsService
from ..persistence import BaseDatabase

logger = logging.getLogger(__name__)


def get_database(request: Request) -> BaseDatabase:
    return request.app.state.database


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_insights(request: Request) -> InsightsService:
    return request.app.state.insights


async def require_owner(x_owner_id: Optional[str] = Header(None)) -> str:
    """
    Owner context for dashboard routes. The identity-provider gateway in front
    of the API authenticates the business account and forwards its uid in
    `X-Owner-Id`.
    """
    if x_owner_id is None or not x_owner_id.strip():
        logger.info("Owner route called without X-Owner-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated: owner id required.",
        )
    return x_owner_id.strip()
