"""
WordPress REST API client for user accounts and comment fields the
WooCommerce reviews endpoint does not expose.
"""

import asyncio
import logging
from typing import Optional, Dict, List, Any, Tuple
import httpx

from app.core.woo_client import WooCommerceError

logger = logging.getLogger(__name__)


class WPClient:
    """
    Async client for WordPress REST API (wp/v2).
    """

    def __init__(
        self,
        store_url: str,
        username: str,
        app_password: str,
        timeout: float = 30.0,
        retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize WordPress client.

        Args:
            store_url: Store base URL
            username: WordPress username
            app_password: WordPress application password
            timeout: Request timeout in seconds
            retries: Retries for server errors and timeouts
            transport: Optional httpx transport (tests)
        """
        self.store_url = store_url.rstrip("/")
        self.base = f"{self.store_url}/wp-json/wp/v2"
        self.retries = retries

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            auth=httpx.BasicAuth(username, app_password),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json"
            },
            transport=transport
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None,
        backoff_seconds: float = 1.0
    ) -> httpx.Response:
        """
        Send a request, retrying 429/5xx and transport errors.

        Raises:
            WooCommerceError: On client errors or exhausted retries
        """
        url = f"{self.base}/{path.lstrip('/')}"
        last_error = None

        for attempt in range(self.retries + 1):
            try:
                r = await self.client.request(method, url, params=params, json=json_data)
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {str(e)}"
            except httpx.RequestError as e:
                last_error = f"Request error: {str(e)}"
            else:
                if r.status_code in (200, 201):
                    return r
                if r.status_code not in (429, 500, 502, 503, 504):
                    raise WooCommerceError(f"HTTP {r.status_code}: {r.text[:200]}")
                last_error = f"HTTP {r.status_code}"

            if attempt < self.retries:
                await asyncio.sleep(backoff_seconds * (attempt + 1))

        raise WooCommerceError(f"WordPress request failed after {self.retries + 1} attempts: {last_error}")

    async def list_users(self, params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], int]:
        """
        List users in the edit context, so email and username are included.

        Returns:
            (users on this page, total pages from X-WP-TotalPages)
        """
        r = await self._request("GET", "users", params={"context": "edit", **params})
        items = r.json()
        try:
            total_pages = int(r.headers.get("X-WP-TotalPages", 1))
        except ValueError:
            total_pages = 1
        return (items if isinstance(items, list) else []), total_pages

    async def search_users(self, search: str) -> List[Dict[str, Any]]:
        """
        Search users by a term.

        A search term containing '@' matches on the email column only.
        """
        items, _ = await self.list_users({"search": search, "per_page": 20})
        return items

    async def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Get a user by ID, or None if it doesn't exist."""
        try:
            r = await self._request("GET", f"users/{user_id}", params={"context": "edit"})
        except WooCommerceError as e:
            if "HTTP 404" in str(e):
                return None
            raise
        return r.json()

    async def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a user (username, email, password, name, roles)."""
        r = await self._request("POST", "users", json_data=data)
        return r.json()

    async def update_comment(self, comment_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update comment fields such as author, author_ip and meta."""
        r = await self._request("POST", f"comments/{comment_id}", json_data=data)
        return r.json()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
