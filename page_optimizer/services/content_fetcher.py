"""ContentFetcher: read a page's current content from its WordPress host."""

from dataclasses import dataclass, field

import httpx

from page_optimizer.integrations.wordpress import WordPressClient, WPPost


@dataclass
class FetchedContent:
    """Source content of the page being optimized."""

    title: str
    content: str
    host_id: int
    post_type: str
    url: str = ""
    excerpt: str = ""
    word_count: int = 0
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    featured_image: str | None = None

    @classmethod
    def from_post(cls, post: WPPost) -> "FetchedContent":
        return cls(
            title=post.title,
            content=post.content_html,
            host_id=post.id,
            post_type=post.post_type,
            url=post.url,
            excerpt=post.excerpt,
            word_count=post.word_count,
            categories=list(post.categories),
            tags=list(post.tags),
            featured_image=post.featured_image,
        )


class ContentFetcher:
    """Looks a slug up on ``posts`` and then ``pages``. Read-only."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def fetch(
        self, host: str, page_slug: str, username: str, application_password: str
    ) -> FetchedContent:
        """Fetch the page's title and HTML body.

        Raises:
            MissingCredentialsError: Username or application password empty.
            NotFoundError: No post or page has this slug.
            AuthError: The host rejected the credentials.
            FetchError: Any other non-success status.
        """
        async with WordPressClient(
            host, username, application_password, transport=self._transport
        ) as client:
            post = await client.fetch_by_slug(page_slug)
        return FetchedContent.from_post(post)
