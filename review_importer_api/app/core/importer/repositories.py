"""
Store record access used by the review importer.

The importer only depends on the Protocols below; the Woo* classes back them
with the WooCommerce and WordPress REST APIs.
"""

import logging
from typing import Optional, Protocol

from app.core.importer.models import ProductRef, UserRef, ReviewRef, NewReview
from app.core.woo_client import WooClient, WooCommerceError
from app.core.wp_client import WPClient

logger = logging.getLogger(__name__)


IMPORTER_USER_AGENT = "Product Reviews Importer"

# Duplicate detection spans every moderation state; "all" covers approved + hold.
REVIEW_SEARCH_STATUSES = ("all", "spam", "trash")

USER_SEARCH_PAGE_SIZE = 100


class ProductRepository(Protocol):
    async def find_by_sku(self, sku: str) -> Optional[ProductRef]:
        ...


class UserRepository(Protocol):
    async def find_by_email(self, email: str) -> Optional[UserRef]:
        ...

    async def username_exists(self, username: str) -> bool:
        ...

    async def create_customer(self, username: str, password: str, email: str, display_name: str) -> UserRef:
        ...

    async def get(self, user_id: int) -> Optional[UserRef]:
        ...


class ReviewRepository(Protocol):
    async def find_by_product_and_email(self, product_id: int, email: str) -> Optional[ReviewRef]:
        ...

    async def insert(self, review: NewReview) -> int:
        ...

    async def update_content(self, review_id: int, content: str, rating: int) -> None:
        ...


class WooProductRepository:
    """SKU lookups through the WooCommerce products endpoint."""

    def __init__(self, client: WooClient):
        self.client = client

    async def find_by_sku(self, sku: str) -> Optional[ProductRef]:
        items = await self.client.get_products_by_sku(sku)
        for item in items:
            if str(item.get("sku", "")) != sku:
                continue
            is_variation = item.get("type") == "variation"
            return ProductRef(
                id=int(item["id"]),
                is_variation=is_variation,
                parent_id=int(item.get("parent_id") or 0)
            )
        return None


def _user_from_api(data: dict) -> UserRef:
    return UserRef(
        id=int(data["id"]),
        email=data.get("email", ""),
        display_name=data.get("name", ""),
        username=data.get("username", "")
    )


class WooUserRepository:
    """User accounts through the WordPress users endpoint."""

    def __init__(self, wp_client: Optional[WPClient]):
        self.wp_client = wp_client

    async def find_by_email(self, email: str) -> Optional[UserRef]:
        if not self.wp_client:
            return None
        for user in await self.wp_client.search_users(email):
            if str(user.get("email", "")).lower() == email.lower():
                return _user_from_api(user)
        return None

    async def username_exists(self, username: str) -> bool:
        """Exact login check: slug lookup first, then every page of a search."""
        if not self.wp_client:
            return False
        login = username.lower()

        def matches(users) -> bool:
            return any(str(u.get("username", "")).lower() == login for u in users)

        users, _ = await self.wp_client.list_users({"slug": username})
        if matches(users):
            return True

        # Slug is derived from the display name, not the login
        page, total_pages = 1, 1
        while page <= total_pages:
            users, total_pages = await self.wp_client.list_users({
                "search": username,
                "per_page": USER_SEARCH_PAGE_SIZE,
                "page": page
            })
            if matches(users):
                return True
            page += 1
        return False

    async def create_customer(self, username: str, password: str, email: str, display_name: str) -> UserRef:
        if not self.wp_client:
            raise WooCommerceError("WordPress credentials not configured; cannot create users")
        data = await self.wp_client.create_user({
            "username": username,
            "email": email,
            "password": password,
            "name": display_name,
            "roles": ["customer"]
        })
        return _user_from_api(data)

    async def get(self, user_id: int) -> Optional[UserRef]:
        if not self.wp_client:
            return None
        data = await self.wp_client.get_user(user_id)
        return _user_from_api(data) if data else None


class WooReviewRepository:
    """Product reviews through the WooCommerce reviews endpoint."""

    def __init__(self, client: WooClient, wp_client: Optional[WPClient] = None):
        self.client = client
        self.wp_client = wp_client

    async def find_by_product_and_email(self, product_id: int, email: str) -> Optional[ReviewRef]:
        for status in REVIEW_SEARCH_STATUSES:
            reviews = await self.client.list_reviews(product_id, reviewer_email=email, status=status, per_page=1)
            for review in reviews:
                if int(review.get("product_id", 0)) != product_id:
                    continue
                if str(review.get("reviewer_email", "")).lower() != email.lower():
                    continue
                return ReviewRef(
                    id=int(review["id"]),
                    product_id=product_id,
                    author_email=review.get("reviewer_email", ""),
                    status=review.get("status", "")
                )
        return None

    async def insert(self, review: NewReview) -> int:
        created = await self.client.create_review({
            "product_id": review.product_id,
            "review": review.content,
            "reviewer": review.author_name.strip(),
            "reviewer_email": review.author_email,
            "rating": review.rating,
            "status": "approved" if review.approved else "hold",
            "date_created": review.date.replace(" ", "T")
        })
        review_id = int(created.get("id") or 0)
        if not review_id:
            raise WooCommerceError("Review endpoint returned no id")

        # The reviews endpoint has no fields for these; set them on the comment.
        if self.wp_client:
            try:
                updated = await self.wp_client.update_comment(review_id, {
                    "author": review.user_id,
                    "author_ip": review.author_ip,
                    "author_user_agent": IMPORTER_USER_AGENT,
                    "meta": {"rating": review.rating, "verified": 1 if review.verified else 0}
                })
            except WooCommerceError as e:
                logger.warning(f"Review {review_id} created but comment fields not set: {str(e)}")
            else:
                # Unregistered meta keys are dropped without an error
                meta = updated.get("meta") if isinstance(updated, dict) else None
                if review.verified and not (isinstance(meta, dict) and meta.get("verified")):
                    logger.warning(
                        f"Review {review_id} created but verified flag was not stored; "
                        f"register the 'verified' comment meta with show_in_rest"
                    )
        else:
            logger.debug(f"No WordPress credentials; author/IP/verified not set on review {review_id}")

        return review_id

    async def update_content(self, review_id: int, content: str, rating: int) -> None:
        await self.client.update_review(review_id, {"review": content, "rating": rating})
