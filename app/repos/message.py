from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import Insert, insert

from app.models.message import MUTABLE_MESSAGE_COLUMNS, Message
from app.repos.base import BaseRepo


def build_upsert_stmt(values: dict[str, Any]) -> Insert:
    """INSERT ... ON CONFLICT (user_id, message_id) DO UPDATE for one normalized message."""
    stmt = insert(Message).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["user_id", "message_id"],
        set_={
            **{column: stmt.excluded[column] for column in MUTABLE_MESSAGE_COLUMNS},
            "updated_at": func.now(),
        },
    )


class MessageRepo(BaseRepo[Message]):
    """Repository for Message model operations."""

    def __init__(self) -> None:
        super().__init__(Message)

    async def upsert(self, values: dict[str, Any]) -> None:
        """Insert a message or refresh its mutable flags if (user_id, message_id) is already stored."""
        await self._db.session.execute(build_upsert_stmt(values))

    async def get_by_user_and_message_id(self, user_id: int, message_id: str) -> Message | None:
        """Get message by owner and provider id."""
        result = await self.execute(
            self.base_stmt.where(Message.user_id == user_id, Message.message_id == message_id)
        )
        return result.one_or_none()
