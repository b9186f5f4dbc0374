import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, WithUUID


class User(Base, WithUUID, TimestampMixin):
    """Owner of mailbox connections. Authenticates against the API with its api_key."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    api_key: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
