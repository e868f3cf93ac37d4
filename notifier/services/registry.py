"""
Device token registry: the per-identity set of push tokens.
"""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifier.errors import StorageError
from notifier.models.push_token import PushToken

logger = logging.getLogger(__name__)

# Expo tokens are not FCM tokens; real FCM registration tokens are long
EXPO_TOKEN_PREFIX = "ExponentPushToken"
MIN_FCM_TOKEN_LENGTH = 51


def is_deliverable_token(token: str) -> bool:
    """Check whether a stored token can be handed to FCM."""
    return not token.startswith(EXPO_TOKEN_PREFIX) and len(token) >= MIN_FCM_TOKEN_LENGTH


def _insert_ignore_duplicates(dialect_name: str, values: dict):
    """INSERT that leaves an existing (user_id, token) row untouched.

    Returns None for dialects without ON CONFLICT support.
    """
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return (
        insert(PushToken)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["user_id", "token"])
    )


class TokenRegistry:
    """Stores, per user identity, the set of currently known delivery tokens.

    Registration is a set union: registering a token twice is a no-op, and
    concurrent registrations for the same identity converge to the union of
    their tokens. Each operation runs in its own transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] | None = None):
        if session_maker is None:
            from notifier.db import async_session_maker
            session_maker = async_session_maker
        self._session_maker = session_maker

    async def register(
        self,
        identity: str,
        token: str,
        platform: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        """Union-insert a token into the identity's token set.

        Returns True if the token was new for this identity.
        Raises StorageError if the store is unreachable.
        """
        identity = (identity or "").strip()
        token = (token or "").strip()
        if not identity:
            raise ValueError("identity is required")
        if not token:
            raise ValueError("token is required")

        values = {
            "user_id": identity,
            "token": token,
            "platform": platform,
            "user_agent": user_agent[:500] if user_agent else None,
        }

        try:
            async with self._session_maker() as session:
                stmt = _insert_ignore_duplicates(session.get_bind().dialect.name, values)
                if stmt is not None:
                    result = await session.execute(stmt)
                    created = result.rowcount == 1
                else:
                    created = await self._insert_with_savepoint(session, values)
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("Token registration failed for user %s: %s", identity, e)
            raise StorageError("Token registry unavailable") from e

        if created:
            logger.info("Registered new push token for user %s (platform: %s)", identity, platform)
        else:
            logger.debug("Push token already registered for user %s", identity)
        return created

    async def _insert_with_savepoint(self, session: AsyncSession, values: dict) -> bool:
        existing = await session.execute(
            select(PushToken.id).where(
                PushToken.user_id == values["user_id"],
                PushToken.token == values["token"],
            )
        )
        if existing.scalar_one_or_none() is not None:
            return False
        try:
            async with session.begin_nested():
                session.add(PushToken(**values))
        except IntegrityError:
            # Lost a race with a concurrent registration of the same token
            return False
        return True

    async def resolve(self, identity: str) -> set[str]:
        """Return the identity's token set, empty if nothing is registered."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(PushToken.token).where(PushToken.user_id == identity)
                )
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Token lookup failed for user %s: %s", identity, e)
            raise StorageError("Token registry unavailable") from e

    async def document(self, identity: str) -> dict[str, list[str]]:
        """The identity's registry document, ``{"pushTokens": [...]}``."""
        return {"pushTokens": sorted(await self.resolve(identity))}

    async def count(self, identity: str) -> int:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(func.count(PushToken.id)).where(PushToken.user_id == identity)
                )
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise StorageError("Token registry unavailable") from e

    async def remove(self, identity: str, token: str) -> bool:
        """Drop a single token from the identity's set.

        Returns True if a row was deleted.
        """
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    delete(PushToken).where(
                        PushToken.user_id == identity,
                        PushToken.token == token,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Token removal failed for user %s: %s", identity, e)
            raise StorageError("Token registry unavailable") from e

        removed = result.rowcount > 0
        if removed:
            logger.info("Removed stale push token for user %s", identity)
        return removed

    async def discard(self, token: str) -> int:
        """Drop a token from every identity it is registered under."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(delete(PushToken).where(PushToken.token == token))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Token removal failed: %s", e)
            raise StorageError("Token registry unavailable") from e

        if result.rowcount:
            logger.info("Removed stale push token from %d user(s)", result.rowcount)
        return result.rowcount

    async def all_tokens(self) -> list[str]:
        """Every distinct deliverable token across all identities."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(PushToken.token).distinct().order_by(PushToken.token)
                )
                tokens = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Token listing failed: %s", e)
            raise StorageError("Token registry unavailable") from e

        deliverable = [t for t in tokens if is_deliverable_token(t)]
        skipped = len(tokens) - len(deliverable)
        if skipped:
            logger.info("Skipping %d non-FCM or malformed push tokens", skipped)
        return deliverable
