"""
Post endpoint tests: CRUD lifecycle, custom URL rules, slug-or-id lookup,
listing filters, and image attachments.

Each test builds the categories and posts it needs through the API, so
test order does not matter.
"""
import runpy

import pytest
from httpx import AsyncClient

from blog_api.config import settings

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _create_post(client: AsyncClient, **fields) -> dict:
    payload = {
        "title": "Hello World",
        "content": "Some content",
        "authorEmail": "author@example.com",
    }
    payload.update(fields)
    resp = await client.post("/posts", data=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_category(client: AsyncClient, name: str) -> dict:
    resp = await client.post("/categories", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    """Health endpoint reports a reachable database."""
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_response_timing_headers(async_client: AsyncClient):
    """Every response carries the timing and query-count headers."""
    resp = await async_client.get("/posts")
    assert "x-response-time-ms" in resp.headers
    assert int(resp.headers["x-query-count"]) >= 0


def test_module_entry_point_starts_server(monkeypatch):
    """``python -m blog_api`` hands off to the uvicorn launcher."""
    calls = []
    monkeypatch.setattr("blog_api.main.run", lambda: calls.append("run"))
    runpy.run_module("blog_api", run_name="__main__")
    assert calls == ["run"]



# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post_generates_slug(async_client: AsyncClient):
    post = await _create_post(async_client, title="  Hello, World!  ", content="  Body  ")
    assert post["title"] == "Hello, World!"
    assert post["content"] == "Body"
    assert post["customUrl"] == "hello-world"
    assert post["Category"] is None
    assert post["publishDate"] is not None


@pytest.mark.asyncio
async def test_same_title_gets_numeric_suffix(async_client: AsyncClient):
    first = await _create_post(async_client, title="Same Title")
    second = await _create_post(async_client, title="Same Title")
    third = await _create_post(async_client, title="Same Title")
    assert first["customUrl"] == "same-title"
    assert second["customUrl"] == "same-title-1"
    assert third["customUrl"] == "same-title-2"


@pytest.mark.asyncio
async def test_create_post_with_seo_fields_and_category(async_client: AsyncClient):
    category = await _create_category(async_client, "Tech")
    post = await _create_post(
        async_client,
        customUrl="my-first-post",
        CategoryId=str(category["id"]),
        metaDescription="A short description",
        socialTitle="Share me",
        socialDescription="Social text",
        seoKeywords="python, fastapi,, blogging ",
        youtubeUrl="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        publishDate="2024-03-01",
    )
    assert post["customUrl"] == "my-first-post"
    assert post["CategoryId"] == category["id"]
    assert post["Category"]["name"] == "Tech"
    assert post["Category"]["backgroundColor"] == "#e0e0e0"
    assert post["seoKeywords"] == ["python", "fastapi", "blogging"]
    assert post["publishDate"] == "2024-03-01"
    assert post["youtubeUrl"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["title", "content", "authorEmail"])
async def test_create_post_requires_fields(async_client: AsyncClient, missing: str):
    payload = {"title": "T", "content": "C", "authorEmail": "a@example.com"}
    del payload[missing]
    resp = await async_client.post("/posts", data=payload)
    assert resp.status_code == 400
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_create_post_rejects_whitespace_title(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts", data={"title": "   ", "content": "C", "authorEmail": "a@example.com"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_post_rejects_bad_email(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts", data={"title": "T", "content": "C", "authorEmail": "not-an-email"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("custom_url", ["My Slug!", "ab", "under_score", "x" * 101])
async def test_create_post_rejects_malformed_custom_url(async_client: AsyncClient, custom_url):
    resp = await async_client.post(
        "/posts",
        data={"title": "T", "content": "C", "authorEmail": "a@example.com", "customUrl": custom_url},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert "Custom URL" in body["error"]
    assert "details" in body


@pytest.mark.asyncio
async def test_error_details_hidden_in_production(async_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "production")
    resp = await async_client.post(
        "/posts",
        data={"title": "T", "content": "C", "authorEmail": "a@example.com", "customUrl": "ab"},
    )
    assert resp.status_code == 400
    assert list(resp.json()) == ["error"]


@pytest.mark.asyncio
async def test_create_post_duplicate_custom_url(async_client: AsyncClient):
    await _create_post(async_client, customUrl="abc")
    resp = await async_client.post(
        "/posts",
        data={"title": "Other", "content": "C", "authorEmail": "a@example.com", "customUrl": "abc"},
    )
    assert resp.status_code == 400
    assert "already taken" in resp.json()["error"]


@pytest.mark.asyncio
async def test_create_post_unknown_category(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts",
        data={"title": "T", "content": "C", "authorEmail": "a@example.com", "CategoryId": "999"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_post_out_of_range_category(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts",
        data={"title": "T", "content": "C", "authorEmail": "a@example.com", "CategoryId": "9" * 30},
    )
    assert resp.status_code == 400



@pytest.mark.asyncio
async def test_create_post_rejects_non_youtube_url(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts",
        data={
            "title": "T",
            "content": "C",
            "authorEmail": "a@example.com",
            "youtubeUrl": "https://vimeo.com/12345678",
        },
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_post_rejects_long_meta_description(async_client: AsyncClient):
    resp = await async_client.post(
        "/posts",
        data={
            "title": "T",
            "content": "C",
            "authorEmail": "a@example.com",
            "metaDescription": "m" * 161,
        },
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post_with_images(async_client: AsyncClient, image_storage):
    resp = await async_client.post(
        "/posts",
        data={"title": "Pictures", "content": "C", "authorEmail": "a@example.com"},
        files={
            "bannerImage": ("banner.png", PNG_BYTES, "image/png"),
            "socialImage": ("social.jpg", b"\xff\xd8\xff" + b"\x00" * 32, "image/jpeg"),
        },
    )
    assert resp.status_code == 201, resp.text
    post = resp.json()
    assert post["bannerImageUrl"].startswith("https://images.example.com/banner/")
    assert post["socialImageUrl"].startswith("https://images.example.com/social/")
    assert {u["folder"] for u in image_storage.uploads} == {"banner", "social"}


@pytest.mark.asyncio
async def test_create_post_rejects_unsupported_image(async_client: AsyncClient, image_storage):
    resp = await async_client.post(
        "/posts",
        data={"title": "Gif", "content": "C", "authorEmail": "a@example.com"},
        files={"bannerImage": ("anim.gif", b"GIF89a", "image/gif")},
    )
    assert resp.status_code == 400
    assert image_storage.uploads == []

    listing = await async_client.get("/posts")
    assert listing.json()["totalItems"] == 0


@pytest.mark.asyncio
async def test_create_post_rejects_oversized_image(async_client: AsyncClient, image_storage):
    big = b"\x00" * (5 * 1024 * 1024 + 1)
    resp = await async_client.post(
        "/posts",
        data={"title": "Big", "content": "C", "authorEmail": "a@example.com"},
        files={"bannerImage": ("big.png", big, "image/png")},
    )
    assert resp.status_code == 400
    assert "too large" in resp.json()["error"]
    assert image_storage.uploads == []


@pytest.mark.asyncio
async def test_upload_failure_aborts_create(async_client: AsyncClient, image_storage):
    image_storage.fail_with = ConnectionError("image host down")
    resp = await async_client.post(
        "/posts",
        data={"title": "Doomed", "content": "C", "authorEmail": "a@example.com"},
        files={"bannerImage": ("banner.png", PNG_BYTES, "image/png")},
    )
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Failed to upload image"
    assert "image host down" in body["details"]

    listing = await async_client.get("/posts")
    assert listing.json()["totalItems"] == 0


@pytest.mark.asyncio
async def test_update_replaces_banner_image(async_client: AsyncClient, image_storage):
    resp = await async_client.post(
        "/posts",
        data={"title": "Swap", "content": "C", "authorEmail": "a@example.com"},
        files={"bannerImage": ("one.png", PNG_BYTES, "image/png")},
    )
    post = resp.json()
    original_url = post["bannerImageUrl"]

    resp = await async_client.put(
        f"/posts/{post['id']}",
        data={"title": "Swap"},
        files={"bannerImage": ("two.png", PNG_BYTES, "image/png")},
    )
    assert resp.status_code == 200
    assert resp.json()["bannerImageUrl"] != original_url
    assert len(image_storage.uploads) == 2


# ---------------------------------------------------------------------------
# Fetch by identifier
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_post_by_slug_has_no_redirect(async_client: AsyncClient):
    post = await _create_post(async_client, title="Canonical Post")
    resp = await async_client.get("/posts/canonical-post")
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == post["id"]
    assert "shouldRedirect" not in data


@pytest.mark.asyncio
async def test_get_post_by_id_hints_redirect(async_client: AsyncClient):
    post = await _create_post(async_client, title="Canonical Post")
    resp = await async_client.get(f"/posts/{post['id']}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["shouldRedirect"] is True
    assert data["redirectTo"] == "/posts/canonical-post"


@pytest.mark.asyncio
async def test_get_post_by_custom_url_route(async_client: AsyncClient):
    await _create_post(async_client, customUrl="only-by-slug")
    resp = await async_client.get("/posts/url/only-by-slug")
    assert resp.status_code == 200
    assert resp.json()["customUrl"] == "only-by-slug"


@pytest.mark.asyncio
async def test_custom_url_route_does_not_accept_ids(async_client: AsyncClient):
    post = await _create_post(async_client)
    resp = await async_client.get(f"/posts/url/{post['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_get_post_not_found(async_client: AsyncClient):
    for identifier in ("no-such-post", "99999"):
        resp = await async_client.get(f"/posts/{identifier}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Post not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("identifier", ["²", "٣", "9" * 30])
async def test_get_post_unusable_numeric_identifier_is_not_found(
    async_client: AsyncClient, identifier: str
):
    """Non-ASCII digits and ids beyond the key range fall through to 404."""
    await _create_post(async_client)
    resp = await async_client.get(f"/posts/{identifier}")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Post not found"


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_post_regenerates_slug_from_title(async_client: AsyncClient):
    post = await _create_post(async_client, title="Original Title", customUrl="custom-one")
    resp = await async_client.put(
        f"/posts/{post['id']}", data={"title": "Updated Title", "content": "New body"}
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["title"] == "Updated Title"
    assert updated["content"] == "New body"
    assert updated["customUrl"] == "updated-title"
    # Untouched fields survive.
    assert updated["authorEmail"] == "author@example.com"


@pytest.mark.asyncio
async def test_update_post_keeps_own_custom_url(async_client: AsyncClient):
    post = await _create_post(async_client, customUrl="keep-me")
    resp = await async_client.put(
        f"/posts/{post['id']}", data={"customUrl": "keep-me", "content": "Edited"}
    )
    assert resp.status_code == 200
    assert resp.json()["customUrl"] == "keep-me"


@pytest.mark.asyncio
async def test_update_post_custom_url_taken_by_other(async_client: AsyncClient):
    await _create_post(async_client, customUrl="taken-slug")
    other = await _create_post(async_client, title="Other")
    resp = await async_client.put(f"/posts/{other['id']}", data={"customUrl": "taken-slug"})
    assert resp.status_code == 400
    assert "already taken" in resp.json()["error"]


@pytest.mark.asyncio
async def test_update_post_changes_category(async_client: AsyncClient):
    category = await _create_category(async_client, "News")
    post = await _create_post(async_client)
    resp = await async_client.put(
        f"/posts/{post['id']}", data={"CategoryId": str(category["id"])}
    )
    assert resp.status_code == 200
    assert resp.json()["Category"]["name"] == "News"


@pytest.mark.asyncio
async def test_update_nonexistent_post(async_client: AsyncClient):
    resp = await async_client.put("/posts/99999", data={"title": "Ghost"})
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["title", "content"])
async def test_update_post_rejects_blank_required_field(async_client: AsyncClient, field: str):
    post = await _create_post(async_client)
    resp = await async_client.put(f"/posts/{post['id']}", data={field: "   "})
    assert resp.status_code == 400

    unchanged = (await async_client.get(f"/posts/{post['customUrl']}")).json()
    assert unchanged["title"] == "Hello World"
    assert unchanged["content"] == "Some content"


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["put", "delete"])
async def test_out_of_range_post_id_is_rejected(async_client: AsyncClient, method: str):
    kwargs = {"data": {"title": "Ghost"}} if method == "put" else {}
    resp = await getattr(async_client, method)("/posts/" + "9" * 30, **kwargs)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_post(async_client: AsyncClient):
    post = await _create_post(async_client)
    resp = await async_client.delete(f"/posts/{post['id']}")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Post deleted successfully"

    resp = await async_client.get(f"/posts/{post['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_nonexistent_post(async_client: AsyncClient):
    resp = await async_client.delete("/posts/99999")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_posts_empty(async_client: AsyncClient):
    resp = await async_client.get("/posts")
    assert resp.status_code == 200
    assert resp.json() == {"totalItems": 0, "posts": [], "currentPage": 1, "totalPages": 0}


@pytest.mark.asyncio
async def test_list_posts_default_page_size(async_client: AsyncClient):
    for i in range(8):
        await _create_post(async_client, title=f"Post {i}")
    data = (await async_client.get("/posts")).json()
    assert len(data["posts"]) == 6
    assert data["totalItems"] == 8
    assert data["totalPages"] == 2

    data = (await async_client.get("/posts?page=2")).json()
    assert len(data["posts"]) == 2
    assert data["currentPage"] == 2


@pytest.mark.asyncio
async def test_list_posts_sort_order(async_client: AsyncClient):
    await _create_post(async_client, title="Old", publishDate="2023-01-01")
    await _create_post(async_client, title="Middle", publishDate="2023-06-01")
    await _create_post(async_client, title="New", publishDate="2024-01-01")

    desc = (await async_client.get("/posts")).json()["posts"]
    assert [p["title"] for p in desc] == ["New", "Middle", "Old"]

    asc = (await async_client.get("/posts?sortOrder=asc")).json()["posts"]
    assert [p["title"] for p in asc] == ["Old", "Middle", "New"]


@pytest.mark.asyncio
async def test_list_posts_filters_by_category_name(async_client: AsyncClient):
    tech = await _create_category(async_client, "Tech")
    life = await _create_category(async_client, "Life")
    await _create_post(async_client, title="Tech One", CategoryId=str(tech["id"]))
    await _create_post(async_client, title="Tech Two", CategoryId=str(tech["id"]))
    await _create_post(async_client, title="Life One", CategoryId=str(life["id"]))
    await _create_post(async_client, title="No Category")

    data = (await async_client.get("/posts?category=Tech")).json()
    assert data["totalItems"] == 2
    assert {p["title"] for p in data["posts"]} == {"Tech One", "Tech Two"}
    assert all(p["Category"]["name"] == "Tech" for p in data["posts"])

    # Category match is case-sensitive.
    data = (await async_client.get("/posts?category=tech")).json()
    assert data["totalItems"] == 0


@pytest.mark.asyncio
async def test_list_posts_search_matches_content_case_insensitively(async_client: AsyncClient):
    await _create_post(async_client, title="Plain title", content="Hidden NEEDLE in here")
    await _create_post(async_client, title="Needle in the title", content="Nothing")
    await _create_post(async_client, title="Unrelated", content="Nothing")

    data = (await async_client.get("/posts?search=needle")).json()
    assert data["totalItems"] == 2
    assert {p["title"] for p in data["posts"]} == {"Plain title", "Needle in the title"}


@pytest.mark.asyncio
async def test_list_posts_search_treats_wildcards_literally(async_client: AsyncClient):
    await _create_post(async_client, title="Discount", content="Save 100% today")
    await _create_post(async_client, title="Other", content="Save 100 dollars")

    data = (await async_client.get("/posts?search=100%25")).json()
    assert [p["title"] for p in data["posts"]] == ["Discount"]


@pytest.mark.asyncio
async def test_list_posts_rejects_bad_page(async_client: AsyncClient):
    resp = await async_client.get("/posts?page=0")
    assert resp.status_code == 400
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_list_posts_rejects_page_beyond_range(async_client: AsyncClient):
    resp = await async_client.get(f"/posts?page={10**19}")
    assert resp.status_code == 400
    assert "error" in resp.json()

