from datetime import UTC, datetime

import sqlalchemy as sa

from app.models.oauth2 import OAuth2AuthorizationRequest, OAuth2RequestStatus
from app.repos.base import BaseRepo


class OAuth2AuthorizationRequestRepo(BaseRepo[OAuth2AuthorizationRequest]):
    """Pending consent redirects, looked up by the state value the provider echoes back."""

    def __init__(self) -> None:
        super().__init__(OAuth2AuthorizationRequest)

    async def get_by_state(self, state: str) -> OAuth2AuthorizationRequest | None:
        result = await self.execute(self.base_stmt.where(OAuth2AuthorizationRequest.state == state))
        return result.one_or_none()

    async def mark_as_used(
        self, request: OAuth2AuthorizationRequest, status: OAuth2RequestStatus
    ) -> OAuth2AuthorizationRequest:
        """Burn the state whatever the outcome, so a callback can't be replayed."""
        return await self.update(request, {"state_used": True, "status": status})

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Delete requests past their expiry in one statement and return how many went."""
        stmt = sa.delete(OAuth2AuthorizationRequest).where(
            OAuth2AuthorizationRequest.expires_at < (now or datetime.now(UTC))
        )
        result = await self._db.session.execute(stmt)
        return int(result.rowcount or 0)
