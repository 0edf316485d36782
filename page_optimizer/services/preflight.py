"""Pre-flight checks run before a job is started or published.

Each check turns the pipeline's exceptions into a ``success: false`` report
with a stable ``error_code`` so callers can tell a bad password from a site
that is down.
"""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.exceptions import (
    AuthError,
    FetchError,
    GenerationTimeoutError,
    MissingCredentialsError,
    ProviderError,
)
from page_optimizer.core.logging import get_logger
from page_optimizer.integrations.generative import (
    GenerativeProvider,
    get_generative_provider,
    get_strategy,
)
from page_optimizer.integrations.wordpress import WordPressClient
from page_optimizer.models.activity_log import ActivityLog, ActivityType
from page_optimizer.schemas.validation import (
    ContentCheckRequest,
    ProviderCheckRequest,
    ProviderCheckResponse,
    PublishReadiness,
    WordPressCapabilities,
    WordPressCheckRequest,
    WordPressCheckResponse,
    WordPressSiteInfo,
    WordPressUserInfo,
)
from page_optimizer.services.publish import publishable_content
from page_optimizer.services.readiness import check_publish_readiness
from page_optimizer.services.sitemap_crawl import get_or_create_site, normalize_site_url

logger = get_logger(__name__)


def _wordpress_failure(error: AuthError | FetchError) -> tuple[str, str]:
    """(error_code, message) for a failed connection check."""
    if isinstance(error, AuthError):
        if error.status_code == 403:
            return (
                "INSUFFICIENT_PERMISSIONS",
                "User does not have permission to access the REST API",
            )
        return "INVALID_CREDENTIALS", "Invalid username or application password"
    if error.status_code is None:
        return (
            "NETWORK_ERROR",
            "Could not connect to the WordPress site. Check the URL and that the site is up.",
        )
    if error.url and error.url.endswith("/wp-json/"):
        return "API_NOT_ACCESSIBLE", error.message
    if error.status_code == 404:
        return (
            "ENDPOINT_NOT_FOUND",
            "WordPress REST API users endpoint not found. Ensure the REST API is fully enabled.",
        )
    return "AUTH_FAILED", error.message


async def check_wordpress(
    session: AsyncSession,
    data: WordPressCheckRequest,
    transport: httpx.AsyncBaseTransport | None = None,
) -> WordPressCheckResponse:
    """Validate a site's REST API and credentials; store the site on success."""
    site_url = normalize_site_url(data.site_url)
    try:
        async with WordPressClient(
            site_url, data.username, data.application_password, transport=transport
        ) as client:
            connection = await client.check_connection()
    except (AuthError, FetchError) as e:
        code, message = _wordpress_failure(e)
        logger.warning(
            "WordPress connection check failed",
            extra={"site_url": site_url, "error_code": code, "error_message": e.message},
        )
        return WordPressCheckResponse(success=False, message=message, error_code=code)

    site = await get_or_create_site(session, site_url, None)
    site.name = connection.site_name
    site.username = data.username
    session.add(
        ActivityLog(
            site_id=site.id,
            type=ActivityType.SUCCESS.value,
            message=f"WordPress site connected: {connection.site_name}",
            details={"url": site_url, "user": connection.user_name},
        )
    )
    await session.flush()

    return WordPressCheckResponse(
        success=True,
        message="WordPress connection validated successfully",
        site_id=site.id,
        site_info=WordPressSiteInfo(
            name=connection.site_name,
            description=connection.site_description,
            url=connection.site_url,
        ),
        user_info=WordPressUserInfo(
            id=connection.user_id,
            name=connection.user_name,
            email=connection.user_email,
            roles=connection.roles,
            capabilities=connection.capabilities,
        ),
        capabilities=WordPressCapabilities(
            can_edit=connection.can_edit,
            can_publish=connection.can_publish,
            can_manage_options=connection.can_manage_options,
        ),
    )


async def check_provider(
    data: ProviderCheckRequest,
    generator: GenerativeProvider | None = None,
) -> ProviderCheckResponse:
    """Confirm an API key and model with a one-token request."""
    generator = generator or get_generative_provider()
    model = data.model or get_strategy(data.provider).default_model

    def failed(code: str, message: str) -> ProviderCheckResponse:
        logger.warning(
            "Provider key check failed",
            extra={"provider": data.provider, "error_code": code},
        )
        return ProviderCheckResponse(
            success=False,
            message=message,
            provider=data.provider,
            model=model,
            error_code=code,
        )

    try:
        reported = await generator.check_key(data.provider, data.api_key, model)
    except GenerationTimeoutError:
        return failed("TIMEOUT", "The API request timed out. Please try again.")
    except MissingCredentialsError as e:
        return failed("INVALID_API_KEY", e.message)
    except AuthError:
        return failed("INVALID_API_KEY", "Invalid API key or insufficient permissions")
    except ProviderError as e:
        if e.status_code == 404:
            return failed("MODEL_NOT_FOUND", f"Model '{model}' not found or not accessible")
        if e.status_code == 429:
            return failed("RATE_LIMITED", "Rate limited. The key is valid but over quota.")
        if e.status_code is None:
            return failed("NETWORK_ERROR", e.message)
        return failed("API_ERROR", e.message)

    return ProviderCheckResponse(
        success=True,
        message=f"{data.provider} API key validated successfully",
        provider=data.provider,
        model=reported,
    )


def check_content(data: ContentCheckRequest) -> PublishReadiness:
    return check_publish_readiness(
        data.bundle,
        content=publishable_content(data.bundle),
        keyword=data.target_keyword,
        min_quality_score=data.min_quality_score,
        site_url=data.site_url,
    )
