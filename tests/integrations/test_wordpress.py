"""Tests for the WordPress REST client.

Uses httpx.MockTransport so no network is touched:
- slug lookup on posts first, then pages
- term and featured media parsing from _embed
- 401/403 mapped to AuthError, 429 retried, reads retried on 5xx and
  transport errors
- transport failures and non-JSON replies kept inside the error taxonomy
- create vs update writes
"""

import json

import httpx
import pytest

from conftest import get_test_settings
from page_optimizer.core.exceptions import (
    AuthError,
    FetchError,
    MissingCredentialsError,
    NotFoundError,
    PublishError,
)
from page_optimizer.integrations.wordpress import WordPressClient
from page_optimizer.services.content_fetcher import ContentFetcher

SITE = "https://blog.example.com"


def _post_item(post_id: int = 42, slug: str = "hiking-boots") -> dict:
    return {
        "id": post_id,
        "slug": slug,
        "link": f"{SITE}/{slug}/",
        "status": "publish",
        "title": {"raw": "Hiking Boots &amp; Socks", "rendered": "ignored"},
        "content": {"raw": "<p>One two three four.</p>"},
        "excerpt": {"rendered": "<p>Short.</p>"},
        "_embedded": {
            "wp:term": [
                [{"taxonomy": "category", "name": "Gear"}],
                [{"taxonomy": "post_tag", "name": "Boots &amp; Shoes"}],
            ],
            "wp:featuredmedia": [{"source_url": f"{SITE}/boots.jpg"}],
        },
    }


def _client(handler) -> WordPressClient:
    client = WordPressClient(
        SITE, "admin", "app pass word", transport=httpx.MockTransport(handler)
    )
    client._retry_delay = 0.0
    return client


class TestFetchBySlug:
    @pytest.mark.asyncio
    async def test_finds_post(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            assert request.url.params["slug"] == "hiking-boots"
            assert request.headers["authorization"].startswith("Basic ")
            return httpx.Response(200, json=[_post_item()])

        async with _client(handler) as client:
            post = await client.fetch_by_slug("hiking-boots")

        assert seen == ["/wp-json/wp/v2/posts"]
        assert post.id == 42
        assert post.title == "Hiking Boots & Socks"
        assert post.post_type == "posts"
        assert post.categories == ["Gear"]
        assert post.tags == ["Boots & Shoes"]
        assert post.featured_image == f"{SITE}/boots.jpg"
        assert post.word_count == 4

    @pytest.mark.asyncio
    async def test_falls_back_to_pages(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/posts"):
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[_post_item(7, "about")])

        async with _client(handler) as client:
            post = await client.fetch_by_slug("about")

        assert post.id == 7
        assert post.post_type == "pages"

    @pytest.mark.asyncio
    async def test_not_found_on_either(self) -> None:
        async with _client(lambda request: httpx.Response(200, json=[])) as client:
            with pytest.raises(NotFoundError):
                await client.fetch_by_slug("missing")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_rejected(self, status: int) -> None:
        async with _client(lambda request: httpx.Response(status)) as client:
            with pytest.raises(AuthError) as exc_info:
                await client.fetch_by_slug("hiking-boots")

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_server_error_is_fetch_error(self) -> None:
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(FetchError) as exc_info:
                await client.fetch_by_slug("hiking-boots")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(429)
            return httpx.Response(200, json=[_post_item()])

        async with _client(handler) as client:
            post = await client.fetch_by_slug("hiking-boots")

        assert calls["count"] == 2
        assert post.id == 42

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=[_post_item()])

        async with _client(handler) as client:
            post = await client.fetch_by_slug("hiking-boots")

        assert calls["count"] == 3
        assert post.id == 42

    @pytest.mark.asyncio
    async def test_transport_error_is_fetch_error(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="connection refused") as exc_info:
                await client.fetch_by_slug("hiking-boots")

        assert calls["count"] == 4
        assert exc_info.value.url == f"{SITE}/wp-json/wp/v2/posts"

    @pytest.mark.asyncio
    async def test_non_json_reply_is_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="unreadable reply"):
                await client.fetch_by_slug("hiking-boots")

    @pytest.mark.asyncio
    async def test_item_without_id_is_fetch_error(self) -> None:
        item = _post_item()
        del item["id"]

        async with _client(lambda request: httpx.Response(200, json=[item])) as client:
            with pytest.raises(FetchError, match="has no id"):
                await client.fetch_by_slug("hiking-boots")


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_post(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": 99, "link": f"{SITE}/new/"})

        async with _client(handler) as client:
            result = await client.create_post({"title": "New", "status": "draft"})

        assert captured["path"] == "/wp-json/wp/v2/posts"
        assert captured["body"]["status"] == "draft"
        assert result["id"] == 99

    @pytest.mark.asyncio
    async def test_update_page(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            return httpx.Response(200, json={"id": 7})

        async with _client(handler) as client:
            await client.update_post(7, {"title": "Updated"}, post_type="pages")

        assert captured["path"] == "/wp-json/wp/v2/pages/7"

    @pytest.mark.asyncio
    async def test_write_error_uses_host_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid post status"})

        async with _client(handler) as client:
            with pytest.raises(PublishError) as exc_info:
                await client.create_post({"title": "x"})

        assert str(exc_info.value) == "Invalid post status"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_write_not_resent_after_read_timeout(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(PublishError) as exc_info:
                await client.create_post({"title": "x"})

        assert calls["count"] == 1
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_write_server_error_not_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(500, text="<html>error</html>")

        async with _client(handler) as client:
            with pytest.raises(PublishError) as exc_info:
                await client.update_post(7, {"title": "x"})

        assert calls["count"] == 1
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_write_non_json_reply_is_publish_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(PublishError) as exc_info:
                await client.create_post({"title": "x"})

        assert exc_info.value.status_code == 502


class TestCredentials:
    def test_missing_password_raises(self) -> None:
        with pytest.raises(MissingCredentialsError):
            WordPressClient(SITE, "admin", "")


class TestContentFetcher:
    @pytest.mark.asyncio
    async def test_fetch_returns_source_content(self) -> None:
        fetcher = ContentFetcher(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json=[_post_item()])
            )
        )

        content = await fetcher.fetch(SITE, "hiking-boots", "admin", "secret")

        assert content.title == "Hiking Boots & Socks"
        assert content.content == "<p>One two three four.</p>"
        assert content.host_id == 42
        assert content.post_type == "posts"
        assert content.categories == ["Gear"]

    @pytest.mark.asyncio
    async def test_blank_credentials_fail_before_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        fetcher = ContentFetcher(transport=httpx.MockTransport(handler))

        with pytest.raises(MissingCredentialsError):
            await fetcher.fetch(SITE, "hiking-boots", "", "")

    @pytest.mark.asyncio
    async def test_unreachable_host_is_fetch_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "page_optimizer.integrations.wordpress.get_settings", get_test_settings
        )

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = ContentFetcher(transport=httpx.MockTransport(handler))

        with pytest.raises(FetchError, match="connection refused"):
            await fetcher.fetch(SITE, "hiking-boots", "admin", "secret")


def _connection_handler(
    posts_status: int = 200, me_status: int = 200, root_status: int = 200
):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/wp-json/":
            return httpx.Response(
                root_status,
                json={"name": "Trail Blog", "description": "Boots", "url": SITE},
            )
        if path.endswith("/users/me"):
            assert request.url.params["context"] == "edit"
            return httpx.Response(
                me_status,
                json={
                    "id": 3,
                    "name": "Admin",
                    "email": "admin@example.com",
                    "roles": ["editor"],
                    "capabilities": {
                        "edit_posts": True,
                        "publish_posts": True,
                        "manage_options": False,
                    },
                },
            )
        return httpx.Response(posts_status, json=[])

    return handler


class TestCheckConnection:
    @pytest.mark.asyncio
    async def test_reports_site_user_and_capabilities(self) -> None:
        async with _client(_connection_handler()) as client:
            connection = await client.check_connection()

        assert connection.site_name == "Trail Blog"
        assert connection.user_id == 3
        assert connection.roles == ["editor"]
        assert connection.capabilities == ["edit_posts", "publish_posts"]
        assert connection.can_edit is True
        assert connection.can_publish is True
        assert connection.can_manage_options is False

    @pytest.mark.asyncio
    async def test_forbidden_post_list_means_cannot_edit(self) -> None:
        async with _client(_connection_handler(posts_status=403)) as client:
            connection = await client.check_connection()

        assert connection.can_edit is False

    @pytest.mark.asyncio
    async def test_rejected_credentials(self) -> None:
        async with _client(_connection_handler(me_status=401)) as client:
            with pytest.raises(AuthError) as exc_info:
                await client.check_connection()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_rest_api(self) -> None:
        async with _client(_connection_handler(root_status=404)) as client:
            with pytest.raises(FetchError) as exc_info:
                await client.check_connection()

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == f"{SITE}/wp-json/"
