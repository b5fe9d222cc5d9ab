import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from landverify.config import settings
from landverify.core.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)


class LandFacts(BaseModel):
    """Read-only facts about a land record, owned by the land registry."""
    land_id: str
    current_owner: Optional[str] = None
    owner_registered: bool = False
    has_encumbrances: bool = False
    active_legal_cases: int = 0
    active_mortgages: int = 0


class LandLookup:
    """Reads land facts from the land registry service."""

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (base_url or settings.LAND_REGISTRY_URL).rstrip("/")
        self.timeout = timeout or settings.LAND_REGISTRY_TIMEOUT_SECONDS

    async def get_land_facts(self, land_id: str) -> Optional[LandFacts]:
        url = f"{self.base_url}/lands/{land_id}/facts"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Land registry request failed for {land_id}: {e}")
            raise ServiceUnavailableError("Land registry")

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"Land registry error {response.status_code}: {response.text}")
            raise ServiceUnavailableError("Land registry")
        return LandFacts.model_validate(response.json())
