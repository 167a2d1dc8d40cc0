"""
WooCommerce REST API client with retry logic and rate limiting.
"""

import time
import random
import asyncio
import logging
from typing import Optional, Dict, List, Any
import httpx
from urllib.parse import urljoin

logger = logging.getLogger(__name__)


class WooCommerceError(Exception):
    """Base exception for WooCommerce API errors."""
    pass


class WooClient:
    """
    Async WooCommerce REST API client.

    Supports:
    - WooCommerce API v3 (consumer_key/consumer_secret)
    - WordPress REST API (wp_username/wp_app_password)
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        wp_username: Optional[str] = None,
        wp_app_password: Optional[str] = None,
        rate_limit_rps: float = 5.0,
        timeout: float = 30.0,
        max_retries: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize WooCommerce client.

        Args:
            store_url: Store base URL (e.g., https://example.com)
            consumer_key: WooCommerce consumer key
            consumer_secret: WooCommerce consumer secret
            wp_username: WordPress username (fallback)
            wp_app_password: WordPress application password (fallback)
            rate_limit_rps: Rate limit (requests per second)
            timeout: Request timeout in seconds
            max_retries: Retry attempts for 429/5xx/timeouts
            transport: Optional httpx transport (tests)
        """
        self.store_url = store_url.rstrip('/')
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.wp_username = wp_username
        self.wp_app_password = wp_app_password
        self.timeout = timeout
        self.max_retries = max_retries

        self._last_request_time = 0.0
        self._min_interval = 1.0 / rate_limit_rps if rate_limit_rps > 0 else 0

        if consumer_key and consumer_secret:
            self.auth_method = "woocommerce"
        elif wp_username and wp_app_password:
            self.auth_method = "wordpress"
        else:
            raise ValueError("Must provide either (consumer_key, consumer_secret) or (wp_username, wp_app_password)")

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport
        )

    def _get_auth(self) -> httpx.Auth:
        """Get authentication for requests."""
        if self.auth_method == "woocommerce":
            return httpx.BasicAuth(self.consumer_key, self.consumer_secret)
        return httpx.BasicAuth(self.wp_username, self.wp_app_password)

    async def _wait_for_rate_limit(self):
        """Wait if needed to respect rate limit."""
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    def _retry_delay(self, attempt: int, initial_delay: float, backoff_factor: float) -> float:
        delay = min(initial_delay * (backoff_factor ** attempt), 60.0)
        return delay + random.uniform(0, 0.4)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None,
        initial_delay: float = 2.0,
        backoff_factor: float = 2.0
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to store_url)
            params: Query parameters
            json_data: JSON body
            initial_delay: Initial retry delay in seconds
            backoff_factor: Backoff multiplier

        Returns:
            httpx.Response

        Raises:
            WooCommerceError: If request fails after retries
        """
        url = urljoin(self.store_url + '/', endpoint.lstrip('/'))
        auth = self._get_auth()
        last_error = None

        for attempt in range(self.max_retries + 1):
            await self._wait_for_rate_limit()

            try:
                response = await self.client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    auth=auth
                )
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {str(e)}"
            except httpx.RequestError as e:
                last_error = f"Request error: {str(e)}"
            else:
                if response.status_code in (200, 201, 204):
                    return response

                if response.status_code in (429, 500, 502, 503, 504):
                    last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                else:
                    raise WooCommerceError(
                        f"HTTP {response.status_code}: {response.text[:200]}"
                    )

            if attempt < self.max_retries:
                delay = self._retry_delay(attempt, initial_delay, backoff_factor)
                logger.warning(f"{method} {endpoint} failed ({last_error}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        raise WooCommerceError(f"Request failed after {self.max_retries} retries: {last_error}")

    async def get_products_by_sku(self, sku: str) -> List[Dict[str, Any]]:
        """
        Find products or variations with an exact SKU.

        Args:
            sku: Product SKU

        Returns:
            List of product dicts (variations carry type='variation' and parent_id)
        """
        response = await self._request(
            "GET",
            "/wp-json/wc/v3/products",
            params={"sku": sku, "status": "any", "per_page": 10}
        )
        items = response.json()
        return items if isinstance(items, list) else []

    async def list_reviews(
        self,
        product_id: int,
        reviewer_email: Optional[str] = None,
        status: str = "all",
        per_page: int = 10
    ) -> List[Dict[str, Any]]:
        """
        List reviews on a product.

        Args:
            product_id: Product ID
            reviewer_email: Only reviews by this email
            status: all, hold, approved, spam or trash
            per_page: Page size

        Returns:
            List of review dicts
        """
        params = {
            "product": product_id,
            "status": status,
            "per_page": per_page
        }
        if reviewer_email:
            params["reviewer_email"] = reviewer_email

        response = await self._request("GET", "/wp-json/wc/v3/products/reviews", params=params)
        items = response.json()
        return items if isinstance(items, list) else []

    async def create_review(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a product review."""
        response = await self._request("POST", "/wp-json/wc/v3/products/reviews", json_data=data)
        return response.json()

    async def update_review(self, review_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update fields of an existing review (partial)."""
        response = await self._request("PUT", f"/wp-json/wc/v3/products/reviews/{review_id}", json_data=data)
        return response.json()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
