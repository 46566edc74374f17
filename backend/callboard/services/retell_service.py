"""
Retell Service - voice-AI provider API

Thin client for the parts of the Retell API the dashboard mirrors locally:
agent definitions.
"""

import logging
from typing import List, Optional

import httpx

from callboard.config import RETELL_API_BASE, RETELL_API_KEY
from callboard.models.agents import RetellAgent

logger = logging.getLogger(__name__)

LIST_AGENTS_LIMIT = 100


class RetellAPIError(Exception):
    """Non-2xx answer (or transport failure) from the Retell API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RetellService:
    """Service for interacting with the Retell API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key or RETELL_API_KEY
        self.base_url = (base_url or RETELL_API_BASE).rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        self._transport = transport

    def is_configured(self) -> bool:
        """Check if Retell is properly configured."""
        return bool(self.api_key)

    async def list_agents(self) -> List[RetellAgent]:
        """
        Fetch agent definitions from Retell.

        Raises:
            RetellAPIError: on missing key, transport error or non-2xx status
        """
        if not self.is_configured():
            raise RetellAPIError("Retell API key is required")

        logger.info("[RETELL] Fetching agents from Retell API...")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/list-agents",
                    headers=self.headers,
                    json={"limit": LIST_AGENTS_LIMIT}
                )
        except httpx.HTTPError as e:
            raise RetellAPIError(f"Retell API request failed: {e}") from e

        if response.status_code >= 400:
            raise RetellAPIError(
                f"Retell API error: {response.status_code} - {response.text}",
                status_code=response.status_code
            )

        data = response.json()
        # The API has answered both {"agents": [...]} and a bare list
        raw_agents = data.get("agents", []) if isinstance(data, dict) else data
        agents = [RetellAgent(**a) for a in (raw_agents or [])]

        logger.info(f"[RETELL] Fetched {len(agents)} agents from Retell API")
        return agents


# Singleton instance
_retell_service: Optional[RetellService] = None


def get_retell_service() -> RetellService:
    """Get or create Retell service instance."""
    global _retell_service
    if _retell_service is None:
        _retell_service = RetellService()
    return _retell_service
