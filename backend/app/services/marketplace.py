import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from app.config import get_settings
from app.services.records import unwrap_collection

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """The marketplace API could not be reached or rejected the request."""


class MessageDeliveryError(MarketplaceError):
    """A message was not delivered; nothing was recorded locally."""


class MarketplaceClient:
    """Thin client for the marketplace REST API the dashboards read from."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        authorization: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.marketplace_api_url
        self.authorization = authorization
        self.timeout = timeout if timeout is not None else settings.marketplace_timeout_seconds
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {}
        if self.authorization:
            headers["Authorization"] = self.authorization

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Marketplace {method} {path} failed: {e}")
            raise MarketplaceError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_my_jobs(self) -> List[Any]:
        return unwrap_collection(await self._request("GET", "/jobs/my-jobs"), "jobs")

    async def fetch_applications(self) -> List[Any]:
        return unwrap_collection(await self._request("GET", "/applications"), "applications")

    async def fetch_companies(self) -> List[Any]:
        return unwrap_collection(await self._request("GET", "/companies"), "companies")

    async def search_candidates(self, **filters: Any) -> List[Any]:
        payload = await self._request("GET", "/employers/candidates/search", params=filters)
        return unwrap_collection(payload, "candidates")

    async def send_message(self, candidate_id: str, text: str) -> None:
        """Deliver a message; raises MarketplaceError on any transport failure."""
        path = f"/employers/candidates/{quote(str(candidate_id), safe='')}/message"
        await self._request("POST", path, json={"message": text})
