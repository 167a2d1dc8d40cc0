"""
WooCommerce/WordPress repositories over a mocked httpx transport.
"""

import json
from unittest.mock import patch

import httpx
import pytest

from app.core.importer.models import NewReview, ProductRef
from app.core.importer.repositories import WooProductRepository, WooReviewRepository, WooUserRepository
from app.core.woo_client import WooClient, WooCommerceError
from app.core.wp_client import WPClient


pytestmark = pytest.mark.anyio

STORE = "https://shop.example.com"


class Recorder:
    """MockTransport handler serving canned JSON (and optional headers) by (method, path)."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes[(request.method, request.url.path)]
        status_code, body, *headers = route(request) if callable(route) else route
        return httpx.Response(status_code, json=body, headers=headers[0] if headers else None)


def woo(handler, **kwargs) -> WooClient:
    return WooClient(STORE, consumer_key="ck", consumer_secret="cs", rate_limit_rps=0,
                     transport=httpx.MockTransport(handler), **kwargs)


def wp(handler) -> WPClient:
    return WPClient(STORE, "admin", "app pass", transport=httpx.MockTransport(handler))


async def test_variation_sku_resolves_with_parent():
    handler = Recorder({("GET", "/wp-json/wc/v3/products"): (200, [
        {"id": 20, "sku": "SHIRT-RED-MX", "type": "variable"},
        {"id": 21, "sku": "SHIRT-RED-M", "type": "variation", "parent_id": 20},
    ])})

    product = await WooProductRepository(woo(handler)).find_by_sku("SHIRT-RED-M")

    assert product == ProductRef(id=21, is_variation=True, parent_id=20)
    assert handler.requests[0].url.params["sku"] == "SHIRT-RED-M"
    assert handler.requests[0].url.params["status"] == "any"


async def test_sku_without_exact_match():
    handler = Recorder({("GET", "/wp-json/wc/v3/products"): (200, [{"id": 1, "sku": "ABC1234"}])})
    assert await WooProductRepository(woo(handler)).find_by_sku("ABC123") is None


async def test_duplicate_search_covers_spam_and_trash():
    def reviews(request):
        if request.url.params["status"] == "spam":
            return 200, [{"id": 9, "product_id": 10, "reviewer_email": "John@Example.com", "status": "spam"}]
        return 200, []

    handler = Recorder({("GET", "/wp-json/wc/v3/products/reviews"): reviews})

    found = await WooReviewRepository(woo(handler)).find_by_product_and_email(10, "john@example.com")

    assert found.id == 9
    assert found.status == "spam"
    assert [r.url.params["status"] for r in handler.requests] == ["all", "spam"]


async def test_insert_sets_comment_fields():
    woo_handler = Recorder({("POST", "/wp-json/wc/v3/products/reviews"): (201, {"id": 77})})
    wp_handler = Recorder({("POST", "/wp-json/wp/v2/comments/77"): (200, {"id": 77, "meta": {"rating": 5, "verified": 1}})})
    repo = WooReviewRepository(woo(woo_handler), wp(wp_handler))

    review_id = await repo.insert(NewReview(
        product_id=10, author_name="John Doe", author_email="john@example.com", author_ip="10.0.0.1",
        content="Great product works well", date="2024-01-15 10:30:00", rating=5,
        approved=False, verified=True, user_id=7
    ))

    assert review_id == 77
    created = json.loads(woo_handler.requests[0].content)
    assert created["status"] == "hold"
    assert created["date_created"] == "2024-01-15T10:30:00"
    assert created["rating"] == 5
    comment = json.loads(wp_handler.requests[0].content)
    assert comment["author"] == 7
    assert comment["author_ip"] == "10.0.0.1"
    assert comment["meta"] == {"rating": 5, "verified": 1}


async def test_insert_survives_comment_update_failure():
    woo_handler = Recorder({("POST", "/wp-json/wc/v3/products/reviews"): (201, {"id": 78})})
    wp_handler = Recorder({("POST", "/wp-json/wp/v2/comments/78"): (403, {"code": "rest_forbidden"})})
    repo = WooReviewRepository(woo(woo_handler), wp(wp_handler))

    review = NewReview(10, "Jo", "jo@example.com", "10.0.0.1", "Fine enough text", "2024-01-15 10:30:00", 4, True, False)
    assert await repo.insert(review) == 78


async def test_insert_warns_when_verified_meta_not_stored(caplog):
    woo_handler = Recorder({("POST", "/wp-json/wc/v3/products/reviews"): (201, {"id": 79})})
    wp_handler = Recorder({("POST", "/wp-json/wp/v2/comments/79"): (200, {"id": 79, "meta": []})})
    repo = WooReviewRepository(woo(woo_handler), wp(wp_handler))

    review = NewReview(10, "Jo", "jo@example.com", "10.0.0.1", "Fine enough text", "2024-01-15 10:30:00", 4, True, True)
    with caplog.at_level("WARNING", logger="app.core.importer.repositories"):
        assert await repo.insert(review) == 79

    assert "Review 79 created but verified flag was not stored" in caplog.text


async def test_insert_does_not_warn_when_verified_meta_stored(caplog):
    woo_handler = Recorder({("POST", "/wp-json/wc/v3/products/reviews"): (201, {"id": 80})})
    wp_handler = Recorder({("POST", "/wp-json/wp/v2/comments/80"): (200, {"id": 80, "meta": {"verified": 1}})})
    repo = WooReviewRepository(woo(woo_handler), wp(wp_handler))

    review = NewReview(10, "Jo", "jo@example.com", "10.0.0.1", "Fine enough text", "2024-01-15 10:30:00", 4, True, True)
    with caplog.at_level("WARNING", logger="app.core.importer.repositories"):
        await repo.insert(review)

    assert "verified flag" not in caplog.text


async def test_update_content_puts_text_and_rating():
    handler = Recorder({("PUT", "/wp-json/wc/v3/products/reviews/9"): (200, {"id": 9})})

    await WooReviewRepository(woo(handler)).update_content(9, "New text here", 2)

    assert json.loads(handler.requests[0].content) == {"review": "New text here", "rating": 2}


async def test_user_repository_without_wordpress_credentials():
    repo = WooUserRepository(None)

    assert await repo.find_by_email("john@example.com") is None
    with pytest.raises(WooCommerceError):
        await repo.create_customer("john", "pw", "john@example.com", "John")


async def test_username_found_by_slug():
    handler = Recorder({("GET", "/wp-json/wp/v2/users"): (200, [{"id": 4, "username": "John", "slug": "john"}])})

    assert await WooUserRepository(wp(handler)).username_exists("john") is True
    assert handler.requests[0].url.params["slug"] == "john"
    assert handler.requests[0].url.params["context"] == "edit"
    assert len(handler.requests) == 1


async def test_username_found_beyond_first_search_page():
    def users(request):
        params = request.url.params
        if "slug" in params:
            return 200, []
        if params["page"] == "1":
            return 200, [{"id": i, "username": f"john{i}"} for i in range(100)], {"X-WP-TotalPages": "2"}
        return 200, [{"id": 500, "username": "john"}], {"X-WP-TotalPages": "2"}

    handler = Recorder({("GET", "/wp-json/wp/v2/users"): users})

    assert await WooUserRepository(wp(handler)).username_exists("john") is True
    assert [r.url.params.get("page") for r in handler.requests] == [None, "1", "2"]
    assert handler.requests[1].url.params["per_page"] == "100"


async def test_username_absent_after_all_pages():
    def users(request):
        if "slug" in request.url.params:
            return 200, []
        return 200, [{"id": 1, "username": "johnny"}], {"X-WP-TotalPages": "1"}

    handler = Recorder({("GET", "/wp-json/wp/v2/users"): users})

    assert await WooUserRepository(wp(handler)).username_exists("john") is False
    assert len(handler.requests) == 2


async def test_create_customer_role():
    handler = Recorder({("POST", "/wp-json/wp/v2/users"): (201, {
        "id": 31, "email": "john@example.com", "name": "John Doe", "username": "john"
    })})

    user = await WooUserRepository(wp(handler)).create_customer("john", "pw", "john@example.com", "John Doe")

    assert user.id == 31
    assert json.loads(handler.requests[0].content)["roles"] == ["customer"]


async def test_client_error_is_not_retried():
    handler = Recorder({("GET", "/wp-json/wc/v3/products"): (401, {"code": "unauthorized"})})

    with pytest.raises(WooCommerceError, match="HTTP 401"):
        await woo(handler).get_products_by_sku("ABC123")
    assert len(handler.requests) == 1


async def test_server_error_is_retried():
    responses = iter([(503, {}), (200, [{"id": 10, "sku": "ABC123"}])])
    handler = Recorder({("GET", "/wp-json/wc/v3/products"): lambda request: next(responses)})

    with patch.object(WooClient, "_retry_delay", return_value=0):
        items = await woo(handler, max_retries=2).get_products_by_sku("ABC123")

    assert items[0]["id"] == 10
    assert len(handler.requests) == 2
