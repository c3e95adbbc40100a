"""
FastAPI dependencies shared by the routers
"""

from typing import AsyncGenerator, Optional

import httpx
from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session per request"""
    async with get_session_maker()() as session:
        yield session


def get_http_client(request: Request) -> Optional[httpx.AsyncClient]:
    """Shared upstream HTTP client opened by the application lifespan"""
    return getattr(request.app.state, "http_client", None)


async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    """Reject the request unless it carries the configured API key"""
    if not settings.API_KEY:
        return
    if x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
