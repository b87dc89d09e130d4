"""HTTP JSON scanner: asks a product-search endpoint for listings on a source platform."""

import logging
from typing import Any, Optional

import httpx

from arbscout.config import settings
from arbscout.exceptions import ScannerError
from arbscout.scout.engine import ScannedProduct

logger = logging.getLogger(__name__)


class HttpJsonScanner:
    """
    Scanner backed by a JSON search endpoint.

    Calls ``GET {base_url}/search?platform=...&q=...&limit=...`` and accepts
    either a bare JSON list of products or ``{"products": [...]}``.
    Satisfies the ProductScanner capability, so an instance can be passed
    straight to the engine or the daemon.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the scanner.

        Args:
            base_url: Search service URL (defaults to settings.scanner_base_url)
            api_key: Bearer token sent with each request, if any
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (mainly for tests)
        """
        self.base_url = (base_url or settings.scanner_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.scanner_api_key
        self.timeout = timeout or settings.scanner_timeout_seconds
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=headers,
                follow_redirects=True,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __call__(
        self,
        platform: str,
        keyword: str,
        max_results: int,
    ) -> list[ScannedProduct]:
        """
        Search one platform for one keyword.

        Raises:
            ScannerError: On transport errors, non-2xx responses or bad payloads
        """
        if not self.base_url:
            raise ScannerError("Scanner base URL is not configured")

        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/search",
                params={"platform": platform, "q": keyword, "limit": max_results},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise ScannerError(
                f"{platform} search for '{keyword}' failed: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ScannerError(f"{platform} search for '{keyword}' failed: {exc}") from exc
        except ValueError as exc:
            raise ScannerError(f"{platform} search returned invalid JSON") from exc

        items = self._extract_items(payload)
        products = []
        for item in items[:max_results]:
            if not isinstance(item, dict):
                logger.debug("Ignoring non-object search result from %s: %r", platform, item)
                continue
            products.append(ScannedProduct.from_mapping(item, platform))
        return products

    @staticmethod
    def _extract_items(payload: Any) -> list:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get("products"), list):
            return payload["products"]
        raise ScannerError("Search response has no product list")
