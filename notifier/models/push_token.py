"""
Device push token model.
"""

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from notifier.db import Base
from notifier.models.base import TimestampMixin


class PushToken(Base, TimestampMixin):
    """One delivery token issued by the push provider for a user's device.

    The set of rows sharing a user_id is that user's token set; created_at is
    the registration timestamp.
    """

    __tablename__ = "push_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_push_token_user_token"),
        Index("ix_push_tokens_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Opaque identity from the identity provider (not a local FK)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # Provider-defined token value
    token: Mapped[str] = mapped_column(Text, nullable=False)

    # web / android / ios, as reported by the registering client
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # User agent for device identification
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<PushToken user={self.user_id} platform={self.platform}>"
