"""WordPress REST API client for reading and writing post content.

Uses httpx with HTTP Basic Auth (application passwords). Reads look a slug
up on the ``posts`` endpoint first and fall back to ``pages``. Requests are
retried with exponential backoff (see ``_request_with_retry``); transport
failures and unreadable replies surface as FetchError on reads and
PublishError on writes.
"""

import asyncio
import html
from dataclasses import dataclass, field
from typing import Any, cast

import httpx

from page_optimizer.core.config import get_settings
from page_optimizer.core.exceptions import (
    AuthError,
    FetchError,
    MissingCredentialsError,
    NotFoundError,
    PublishError,
)
from page_optimizer.core.logging import get_logger
from page_optimizer.utils.html_text import count_words

logger = get_logger(__name__)

# Content-type endpoints tried in order when resolving a slug
CONTENT_TYPES = ("posts", "pages")


@dataclass
class WPPost:
    """A single WordPress post or page."""

    id: int
    title: str
    url: str
    content_html: str
    excerpt: str
    slug: str
    post_type: str
    status: str = "publish"
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    featured_image: str | None = None
    word_count: int = 0


@dataclass
class WPConnection:
    """What a credential check learned about a site and its user."""

    site_name: str
    site_description: str
    site_url: str
    user_id: int
    user_name: str
    user_email: str
    roles: list[str] = field(default_factory=list)
    capabilities: list[str] = field(default_factory=list)
    can_edit: bool = False
    can_publish: bool = False
    can_manage_options: bool = False


class WordPressClient:
    """WordPress REST API client using httpx + Basic Auth.

    Args:
        site_url: The WordPress site URL (e.g. https://example.com).
        username: WordPress username.
        app_password: WordPress application password.
    """

    def __init__(
        self,
        site_url: str,
        username: str,
        app_password: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not username or not app_password:
            raise MissingCredentialsError(
                "WordPress username and application password are required"
            )
        settings = get_settings()
        self._site_url = site_url.rstrip("/")
        self._api_base = f"{self._site_url}/wp-json/wp/v2"
        self._max_retries = settings.wordpress_max_retries
        self._retry_delay = settings.wordpress_retry_delay
        self._client = httpx.AsyncClient(
            auth=(username, app_password),
            timeout=settings.wordpress_timeout,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def site_url(self) -> str:
        return self._site_url

    async def __aenter__(self) -> "WordPressClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request with exponential backoff.

        429 is always retried. Reads are also retried on 5xx and transport
        errors; writes only when the connection was never made.

        Raises:
            AuthError: Credentials rejected (401/403).
            FetchError: Transport failure once retries are spent.
        """
        retry_server_errors = method == "GET"
        for attempt in range(self._max_retries + 1):
            last_attempt = attempt >= self._max_retries
            try:
                resp = await self._client.request(method, url, params=params, json=json)
            except httpx.RequestError as e:
                retryable = retry_server_errors or isinstance(e, httpx.ConnectError)
                if retryable and not last_attempt:
                    await self._backoff(attempt, url, type(e).__name__)
                    continue
                logger.error(
                    "WP API request failed",
                    extra={"url": url, "method": method, "error_type": type(e).__name__},
                )
                raise FetchError(f"WordPress request failed: {e}", url=url) from e

            retryable = resp.status_code == 429 or (
                retry_server_errors and resp.status_code >= 500
            )
            if retryable and not last_attempt:
                await self._backoff(attempt, url, resp.status_code)
                continue
            break

        if resp.status_code in (401, 403):
            raise AuthError(
                f"WordPress rejected credentials ({resp.status_code})",
                status_code=resp.status_code,
            )
        return resp

    async def _backoff(self, attempt: int, url: str, reason: int | str) -> None:
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            "WP API request failed, retrying",
            extra={"attempt": attempt + 1, "delay": delay, "url": url, "reason": reason},
        )
        await asyncio.sleep(delay)

    async def fetch_by_slug(self, slug: str) -> WPPost:
        """Find a post by slug, falling back from posts to pages.

        Raises:
            NotFoundError: Neither endpoint has a match.
            AuthError: Credentials rejected.
            FetchError: Any other non-success status, a transport failure or
                a reply that is not a JSON list of posts.
        """
        for post_type in CONTENT_TYPES:
            url = f"{self._api_base}/{post_type}"
            resp = await self._request_with_retry(
                "GET",
                url,
                params={"slug": slug, "context": "edit", "_embed": "wp:term,wp:featuredmedia"},
            )
            if resp.status_code >= 400:
                raise FetchError(
                    f"WordPress {post_type} lookup failed ({resp.status_code})",
                    url=url,
                    status_code=resp.status_code,
                )
            items = _json_body(resp)
            if not isinstance(items, list):
                raise FetchError(
                    f"WordPress {post_type} lookup returned an unreadable reply",
                    url=url,
                    status_code=resp.status_code,
                )
            if items:
                post = self._parse_post(items[0], post_type)
                logger.info(
                    "Fetched WordPress content by slug",
                    extra={
                        "slug": slug,
                        "post_type": post_type,
                        "post_id": post.id,
                        "word_count": post.word_count,
                    },
                )
                return post
            logger.debug(
                "No match for slug, trying next content type",
                extra={"slug": slug, "post_type": post_type},
            )

        raise NotFoundError(
            f"No post or page found with slug '{slug}'",
            url=self._api_base,
            status_code=404,
        )

    async def check_connection(self) -> WPConnection:
        """Confirm the REST API answers and the credentials belong to a user.

        Reads the API root, then ``users/me`` in edit context, then reads
        one post in edit context to learn whether the user can edit.

        Raises:
            AuthError: Credentials rejected (401) or REST access denied (403).
            FetchError: The API root or users endpoint failed, or the host
                could not be reached.
        """
        root_url = f"{self._site_url}/wp-json/"
        root = await self._request_with_retry("GET", root_url)
        site = _json_body(root)
        if root.status_code >= 400 or not isinstance(site, dict):
            raise FetchError(
                f"WordPress REST API not accessible ({root.status_code})",
                url=root_url,
                status_code=root.status_code,
            )

        me_url = f"{self._api_base}/users/me"
        me = await self._request_with_retry("GET", me_url, params={"context": "edit"})
        user = _json_body(me)
        if me.status_code >= 400 or not isinstance(user, dict):
            raise FetchError(
                f"WordPress users endpoint failed ({me.status_code})",
                url=me_url,
                status_code=me.status_code,
            )

        try:
            posts = await self._request_with_retry(
                "GET", f"{self._api_base}/posts", params={"per_page": 1, "context": "edit"}
            )
            can_edit = posts.status_code < 400
        except AuthError:
            can_edit = False

        caps = user.get("capabilities") or {}
        granted = [name for name, allowed in caps.items() if allowed is True]
        connection = WPConnection(
            site_name=site.get("name") or "Unknown",
            site_description=site.get("description") or "",
            site_url=site.get("url") or self._site_url,
            user_id=int(user.get("id") or 0),
            user_name=user.get("name") or "",
            user_email=user.get("email") or "",
            roles=list(user.get("roles") or []),
            capabilities=granted[:10],
            can_edit=can_edit,
            can_publish=caps.get("publish_posts") is True
            or caps.get("edit_published_posts") is True,
            can_manage_options=caps.get("manage_options") is True,
        )
        logger.info(
            "WordPress connection checked",
            extra={
                "site_url": self._site_url,
                "user_id": connection.user_id,
                "can_edit": connection.can_edit,
                "can_publish": connection.can_publish,
            },
        )
        return connection

    async def create_post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a new post."""
        return await self._write(f"{self._api_base}/posts", payload)

    async def update_post(
        self, post_id: int, payload: dict[str, Any], post_type: str = "posts"
    ) -> dict[str, Any]:
        """Update an existing post or page."""
        return await self._write(f"{self._api_base}/{post_type}/{post_id}", payload)

    async def _write(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._request_with_retry("POST", url, json=payload)
        except FetchError as e:
            raise PublishError(e.message, status_code=502) from e

        body = _json_body(resp)
        if resp.status_code >= 400:
            message = f"WordPress write failed ({resp.status_code})"
            if isinstance(body, dict) and body.get("message"):
                message = str(body["message"])
            raise PublishError(message, status_code=resp.status_code)
        if not isinstance(body, dict) or not body.get("id"):
            raise PublishError(
                "WordPress write returned an unreadable reply", status_code=502
            )
        return cast(dict[str, Any], body)

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    def _parse_post(self, post: dict[str, Any], post_type: str) -> WPPost:
        """Parse a WP REST API item into a WPPost.

        Raises:
            FetchError: The item has no post id.
        """
        post_id = post.get("id") if isinstance(post, dict) else None
        if not isinstance(post_id, int) or post_id <= 0:
            raise FetchError(
                f"WordPress {post_type} item has no id", url=self._api_base
            )
        title_field = post.get("title", {})
        content_field = post.get("content", {})
        title = html.unescape(title_field.get("raw") or title_field.get("rendered", ""))
        content_html = content_field.get("raw") or content_field.get("rendered", "")
        excerpt = post.get("excerpt", {}).get("rendered", "")

        categories: list[str] = []
        tags: list[str] = []
        embedded = post.get("_embedded", {})
        for term_group in embedded.get("wp:term", []):
            if not isinstance(term_group, list):
                continue
            for term in term_group:
                if term.get("taxonomy") == "category":
                    categories.append(html.unescape(term.get("name", "")))
                elif term.get("taxonomy") == "post_tag":
                    tags.append(html.unescape(term.get("name", "")))

        featured_image = None
        media = embedded.get("wp:featuredmedia", [])
        if media and isinstance(media[0], dict):
            featured_image = media[0].get("source_url")

        return WPPost(
            id=post_id,
            title=title,
            url=post.get("link", ""),
            content_html=content_html,
            excerpt=excerpt,
            slug=post.get("slug", ""),
            post_type=post_type,
            status=post.get("status", "publish"),
            categories=categories,
            tags=tags,
            featured_image=featured_image,
            word_count=count_words(content_html),
        )


def _json_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None
