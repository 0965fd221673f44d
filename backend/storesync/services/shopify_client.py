"""Shopify Admin REST API client.

WHAT:
    Wrapper for the Shopify Admin REST collection endpoints with:
    - Authentication handling (X-Shopify-Access-Token)
    - Rate limiting (2 requests/second)
    - Cursor-based pagination through the Link header
    - Error handling and retries

WHY:
    The sync engine needs each collection complete or not at all. Pagination
    lives here so a caller never sees a silently truncated page: either every
    page is fetched or ShopifyAPIError is raised.

REFERENCES:
    - REST Admin API: https://shopify.dev/docs/api/admin-rest
    - Rate limits: https://shopify.dev/docs/api/usage/rate-limits
    - Pagination: https://shopify.dev/docs/api/usage/pagination-rest
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

# Default API version
DEFAULT_API_VERSION = "2024-07"

# Max page size the REST API accepts
DEFAULT_PAGE_SIZE = 250

# Rate limiting: Shopify allows 2 requests/second for regular apps
RATE_LIMIT_DELAY = 0.5  # seconds between requests (2 req/sec)

# Wait used when a 429 carries no usable Retry-After header
DEFAULT_RETRY_AFTER = 2.0


def _retry_after_seconds(response: httpx.Response) -> float:
    """Retry-After in seconds; a missing or non-numeric header uses the default."""
    try:
        return max(0.0, float(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER)))
    except ValueError:
        return DEFAULT_RETRY_AFTER


class ShopifyAPIError(Exception):
    """Custom exception for Shopify API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ShopifyClient:
    """REST client for the Shopify Admin API, bound to one tenant's credentials.

    The underlying httpx.AsyncClient is shared and owned by the app lifespan;
    this class never closes it.

    Usage:
        client = ShopifyClient("mystore.myshopify.com", "shpat_xxx", http_client=http)
        products = await client.get_all_products()
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        http_client: httpx.AsyncClient,
        api_version: str = DEFAULT_API_VERSION,
        page_size: int = DEFAULT_PAGE_SIZE,
        min_request_interval: float = RATE_LIMIT_DELAY,
        retries: int = 3,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version
        self.page_size = page_size
        self.min_request_interval = min_request_interval
        self.retries = retries
        self.base_url = f"https://{shop_domain}/admin/api/{api_version}"
        self._http = http_client

        self._last_request_time: float = 0

        logger.info("[SHOPIFY_CLIENT] Initialized for %s (API version: %s)", shop_domain, api_version)

    async def _rate_limit(self) -> None:
        """Wait if needed to respect the request interval."""
        elapsed = time.monotonic() - self._last_request_time

        if elapsed < self.min_request_interval:
            wait_time = self.min_request_interval - elapsed
            logger.debug("[SHOPIFY_CLIENT] Rate limiting: waiting %.3fs", wait_time)
            await asyncio.sleep(wait_time)

        self._last_request_time = time.monotonic()

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """GET with rate limiting and retries for 429, 5xx and transport errors.

        Raises:
            ShopifyAPIError: on a non-retryable status or after all retries
        """
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Accept": "application/json",
        }

        last_error: Optional[str] = None

        for attempt in range(self.retries):
            await self._rate_limit()
            try:
                response = await self._http.get(url, params=params, headers=headers)
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"
                logger.warning("[SHOPIFY_CLIENT] %s (attempt %d/%d)", last_error, attempt + 1, self.retries)
                if attempt < self.retries - 1:
                    await asyncio.sleep(1 * (attempt + 1))
                continue

            # Handle rate limiting (429)
            if response.status_code == 429:
                retry_after = _retry_after_seconds(response)
                last_error = "Rate limited"
                logger.warning(
                    "[SHOPIFY_CLIENT] Rate limited, waiting %ss (attempt %d/%d)",
                    retry_after, attempt + 1, self.retries,
                )
                await asyncio.sleep(retry_after)
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "[SHOPIFY_CLIENT] HTTP error %d (attempt %d/%d)",
                    response.status_code, attempt + 1, self.retries,
                )
                if attempt < self.retries - 1:
                    await asyncio.sleep(1 * (attempt + 1))  # Linear backoff
                continue

            if response.status_code >= 400:
                # Auth/permission/not-found errors will not fix themselves
                raise ShopifyAPIError(
                    f"Shopify API returned HTTP {response.status_code} for {url}",
                    status_code=response.status_code,
                    body=response.text[:500],
                )

            return response

        raise ShopifyAPIError(f"Failed after {self.retries} attempts: {last_error}")

    async def get_collection(
        self,
        resource: str,
        root_key: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a collection endpoint.

        Args:
            resource: Path below the API root, e.g. "products"
            root_key: JSON key holding the list, e.g. "products"
            params: Extra query params for the first page (e.g. status=any)

        Returns:
            All items across all pages, as raw dicts

        Raises:
            ShopifyAPIError: if any page fails or has an unexpected shape
        """
        url: Optional[str] = f"{self.base_url}/{resource}.json"
        page_params: Optional[Dict[str, Any]] = {"limit": self.page_size, **(params or {})}

        items: List[Dict[str, Any]] = []
        pages = 0

        while url:
            response = await self._get(url, page_params)
            pages += 1

            try:
                data = response.json()
            except ValueError as e:
                raise ShopifyAPIError(
                    f"Invalid JSON from {resource} page {pages}: {e}",
                    status_code=response.status_code,
                ) from e

            page_items = data.get(root_key) if isinstance(data, dict) else None
            if not isinstance(page_items, list):
                raise ShopifyAPIError(
                    f"Response for {resource} page {pages} has no '{root_key}' list",
                    status_code=response.status_code,
                )
            items.extend(page_items)

            # The next link already carries page_info and limit; other filters
            # are not allowed alongside page_info
            url = response.links.get("next", {}).get("url")
            page_params = None

        logger.info("[SHOPIFY_CLIENT] Fetched %d %s in %d page(s)", len(items), resource, pages)
        return items

    async def get_all_products(self) -> List[Dict[str, Any]]:
        return await self.get_collection("products", "products")

    async def get_all_customers(self) -> List[Dict[str, Any]]:
        return await self.get_collection("customers", "customers")

    async def get_all_orders(self, status: str = "any") -> List[Dict[str, Any]]:
        """Fetch all orders; status=any includes closed and cancelled ones."""
        return await self.get_collection("orders", "orders", {"status": status})
