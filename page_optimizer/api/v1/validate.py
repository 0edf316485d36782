"""Pre-flight check API router.

Checks that run and fail are reported in the response body with an
``error_code``; only a malformed request is an HTTP error.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.database import get_session
from page_optimizer.schemas.validation import (
    ContentCheckRequest,
    ProviderCheckRequest,
    ProviderCheckResponse,
    PublishReadiness,
    WordPressCheckRequest,
    WordPressCheckResponse,
)
from page_optimizer.services.preflight import (
    check_content,
    check_provider,
    check_wordpress,
)

router = APIRouter(prefix="/validate", tags=["Validation"])


@router.post("/wordpress", response_model=WordPressCheckResponse)
async def validate_wordpress(
    data: WordPressCheckRequest,
    db: AsyncSession = Depends(get_session),
) -> WordPressCheckResponse:
    """Check a site's REST API and credentials; the site is stored on success."""
    return await check_wordpress(db, data)


@router.post("/ai-provider", response_model=ProviderCheckResponse)
async def validate_ai_provider(data: ProviderCheckRequest) -> ProviderCheckResponse:
    """Check an API key with a one-token request to the provider."""
    return await check_provider(data)


@router.post("/content", response_model=PublishReadiness)
async def validate_content(data: ContentCheckRequest) -> PublishReadiness:
    return check_content(data)
