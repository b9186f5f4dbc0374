from app.models.user import User
from app.repos.base import BaseRepo


class UserRepo(BaseRepo[User]):
    """User repository."""

    def __init__(self) -> None:
        super().__init__(User)

    async def get_by_api_key(self, api_key: str) -> User | None:
        """Get user by API key."""
        result = await self.execute(self.base_stmt.where(User.api_key == api_key))
        return result.one_or_none()
