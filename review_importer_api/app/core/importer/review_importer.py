"""
Review importer - source-agnostic per-row import engine.

Given one normalized row: validates fields, resolves the product (variations
attach to their parent), resolves or provisions the reviewer account, then
updates the existing (product, email) review or inserts a new one.
"""

import asyncio
import logging
import random
import secrets
from typing import List, Optional

from app.core.importer.models import (
    ImportRow, RowError, RowErrorKind, ImportOutcome, ImportSuccess, ImportFailure,
    BatchResult, NewReview, ProductRef, UserRef
)
from app.core.importer.normalizer import (
    validate_star_rating, sanitize_email, is_email, sanitize_review_text,
    is_valid_ip, parse_review_date, sanitize_username
)
from app.core.importer.repositories import ProductRepository, UserRepository, ReviewRepository
from app.core.importer.settings import ImporterSettings, get_server_ip
from app.core.woo_client import WooCommerceError

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("product_sku", "author_name", "author_email", "review_text", "review_stars")


def _with_suffix(username: str) -> str:
    return f"{username}_{random.randint(100, 999)}"


class RowImportError(Exception):
    """Raised inside the pipeline when a row cannot be imported."""

    def __init__(self, kind: RowErrorKind, message: str, **context):
        super().__init__(message)
        self.error = RowError(kind=kind, message=message, context=context)


class ReviewImporter:
    """Imports normalized rows into the store's reviews."""

    def __init__(
        self,
        settings: ImporterSettings,
        products: ProductRepository,
        users: UserRepository,
        reviews: ReviewRepository,
        timezone: str = "UTC"
    ):
        self.settings = settings
        self.products = products
        self.users = users
        self.reviews = reviews
        self.timezone = timezone
        self._server_ip: Optional[str] = None

    async def import_reviews(self, rows: List[ImportRow]) -> BatchResult:
        """
        Import a batch of rows in order.

        A failing row is recorded and never affects the others.
        """
        result = BatchResult()

        for index, row in enumerate(rows):
            try:
                outcome = await self.import_review(row)
            except Exception as e:
                logger.error(f"Unexpected error importing row {row.row_number}: {str(e)}", exc_info=True)
                outcome = ImportFailure(RowError(
                    kind=RowErrorKind.COMMENT_INSERT_FAILED,
                    message=f"Unexpected error: {str(e)}"
                ))

            if isinstance(outcome, ImportFailure):
                result.add_error(index, row, outcome.error)
            elif outcome.action == "updated":
                result.updated_count += 1
            else:
                result.success_count += 1

        return result

    async def import_review(self, row: ImportRow) -> ImportOutcome:
        """
        Import a single row.

        Returns:
            ImportSuccess(record_id, action) or ImportFailure(error)
        """
        try:
            return await self._import(row)
        except RowImportError as e:
            return ImportFailure(e.error)

    async def _import(self, row: ImportRow) -> ImportSuccess:
        for field_name in REQUIRED_FIELDS:
            if not getattr(row, field_name):
                raise RowImportError(
                    RowErrorKind.MISSING_FIELD,
                    f"Missing required field: {field_name}",
                    field=field_name
                )

        rating = validate_star_rating(row.review_stars)
        if rating is None:
            raise RowImportError(RowErrorKind.INVALID_RATING, "Star rating must be 1-5", value=row.review_stars)

        product_id = await self._resolve_product_id(row.product_sku)
        if not product_id:
            raise RowImportError(
                RowErrorKind.PRODUCT_NOT_FOUND,
                f"Product not found: {row.product_sku}",
                sku=row.product_sku
            )

        author_email = sanitize_email(row.author_email)
        if not is_email(author_email):
            raise RowImportError(
                RowErrorKind.INVALID_EMAIL,
                f"Invalid email: {row.author_email}",
                email=row.author_email
            )

        review_text = sanitize_review_text(row.review_text)
        min_length = self.settings.min_review_length
        # Length is measured in UTF-8 bytes, as the store measures it
        text_length = len(review_text.encode("utf-8"))
        if text_length < min_length:
            raise RowImportError(
                RowErrorKind.REVIEW_TOO_SHORT,
                f"Review text too short (minimum {min_length} characters)",
                length=text_length
            )

        if row.author_ip and is_valid_ip(row.author_ip):
            author_ip = row.author_ip
        else:
            author_ip = await self._default_ip()
        review_date = parse_review_date(row.review_date, self.timezone)

        user_id = await self._get_or_create_user(author_email, row.author_name)

        try:
            existing = await self.reviews.find_by_product_and_email(product_id, author_email)
            if existing:
                await self.reviews.update_content(existing.id, review_text, rating)
                logger.debug(f"Row {row.row_number}: updated review {existing.id} on product {product_id}")
                return ImportSuccess(record_id=existing.id, action="updated")

            display_name = await self._display_name(user_id, row.author_name)
            review_id = await self.reviews.insert(NewReview(
                product_id=product_id,
                author_name=display_name,
                author_email=author_email,
                author_ip=author_ip,
                content=review_text,
                date=review_date,
                rating=rating,
                approved=self.settings.auto_approve_reviews,
                verified=self.settings.reviews_are_verified,
                user_id=user_id
            ))
        except WooCommerceError as e:
            logger.warning(f"Row {row.row_number}: store write failed: {str(e)}")
            raise RowImportError(RowErrorKind.COMMENT_INSERT_FAILED, "Failed to create review", reason=str(e))

        if not review_id:
            raise RowImportError(RowErrorKind.COMMENT_INSERT_FAILED, "Failed to create review")

        logger.debug(f"Row {row.row_number}: created review {review_id} on product {product_id}")
        return ImportSuccess(record_id=review_id, action="created")

    async def _resolve_product_id(self, sku: str) -> int:
        """Product ID for a SKU; variations resolve to their parent. 0 if not found."""
        try:
            product: Optional[ProductRef] = await self.products.find_by_sku(sku)
        except WooCommerceError as e:
            logger.warning(f"Product lookup failed for SKU '{sku}': {str(e)}")
            return 0

        if not product:
            return 0
        if product.is_variation:
            return product.parent_id
        return product.id

    async def _get_or_create_user(self, email: str, name: str) -> int:
        """Existing user ID, a newly provisioned customer ID, or 0 (guest)."""
        try:
            user = await self.users.find_by_email(email)
        except WooCommerceError as e:
            logger.warning(f"User lookup failed for {email}: {str(e)}")
            return 0

        if user:
            return user.id
        if not self.settings.create_user_accounts:
            return 0
        return await self._create_customer(email, name)

    async def _create_customer(self, email: str, name: str) -> int:
        username = sanitize_username(email.split("@", 1)[0])
        if not username:
            logger.warning(f"Cannot derive a username from {email}; importing as guest")
            return 0

        try:
            if await self.users.username_exists(username):
                username = _with_suffix(username)

            try:
                user = await self._provision(username, email, name)
            except WooCommerceError as e:
                # Login taken but not found by the lookup; one retry with a suffix
                if "existing_user_login" not in str(e):
                    raise
                username = _with_suffix(username)
                user = await self._provision(username, email, name)
        except WooCommerceError as e:
            logger.warning(f"Failed to create user for {email}: {str(e)}")
            return 0

        logger.info(f"Created customer account '{username}' (ID {user.id}) for {email}")
        return user.id

    async def _provision(self, username: str, email: str, name: str) -> UserRef:
        return await self.users.create_customer(
            username=username,
            password=secrets.token_urlsafe(18),
            email=email,
            display_name=name
        )

    async def _default_ip(self) -> str:
        """Configured fallback IP, else the server's address (looked up once, off the event loop)."""
        if self.settings.default_ip_address:
            return self.settings.default_ip_address
        if self._server_ip is None:
            self._server_ip = await asyncio.to_thread(get_server_ip)
        return self._server_ip

    async def _display_name(self, user_id: int, author_name: str) -> str:
        """Linked account's display name, falling back to the CSV author name."""
        if user_id <= 0:
            return author_name
        try:
            user = await self.users.get(user_id)
        except WooCommerceError as e:
            logger.warning(f"Could not load user {user_id}: {str(e)}")
            return author_name
        if user and user.display_name:
            return user.display_name
        return author_name
