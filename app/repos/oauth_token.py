from datetime import datetime

from app.models.account import Account
from app.models.oauth_token import OAuthToken
from app.repos.base import BaseRepo


class OAuthTokenRepo(BaseRepo[OAuthToken]):
    """Repository for stored OAuth credentials. Values passed in and out are already encrypted."""

    def __init__(self) -> None:
        super().__init__(OAuthToken)

    async def get_by_account_id(self, account_id: int) -> OAuthToken | None:
        """Get the credential of an account."""
        result = await self.execute(self.base_stmt.where(OAuthToken.account_id == account_id))
        return result.one_or_none()

    async def replace(
        self, account: Account, access_token: str, refresh_token: str | None, expires_at: datetime
    ) -> OAuthToken:
        """Store the credential of an account, replacing whatever was there (latest wins)."""
        token = await self.get_by_account_id(account.id)
        if token is None:
            token = OAuthToken(
                account_id=account.id,
                provider=account.provider,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
            )
            await self.add(token)
            return token

        values: dict[str, object] = {"access_token": access_token, "expires_at": expires_at}
        # Providers don't always rotate the refresh token; keep the old one in that case.
        if refresh_token:
            values["refresh_token"] = refresh_token
        return await self.update(token, values)

    async def delete_by_account_id(self, account_id: int) -> bool:
        """Delete the credential of an account."""
        token = await self.get_by_account_id(account_id)
        if token is None:
            return False
        await self.delete(token)
        await self.flush()
        return True
