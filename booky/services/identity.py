"""Owner identity resolution."""
import logging
from typing import Optional

from ..errors import APIError
from ..protocols import IAPIClient, IIdentityResolver

logger = logging.getLogger(__name__)


class SessionIdentityResolver(IIdentityResolver):
    """Resolves the signed-in user from the backend auth endpoint."""

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def resolve(self) -> Optional[str]:
        try:
            response = await self._api.get("/auth/v1/user")
        except APIError as e:
            if e.status_code in (401, 403):
                logger.warning("No authenticated session")
                return None
            raise
        user = response.json() or {}
        return user.get("id")


class StaticIdentityResolver(IIdentityResolver):
    """Fixed owner id (tests, service accounts)."""

    def __init__(self, owner_id: Optional[str]):
        self._owner_id = owner_id

    async def resolve(self) -> Optional[str]:
        return self._owner_id
