"""
Credential Store
Persistence of User identities over an async SQLAlchemy session.

Every call is a single bounded read or write. Timeouts and driver errors
surface as StoreError; unique-key collisions on email or Firebase UID
surface as DuplicateEmailError.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from startupvista.core.errors import DuplicateEmailError, StoreError
from startupvista.models.models import User

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """
    Usage:
        store = CredentialStore(db)
        user = await store.find_by_email("a@x.com")
    """

    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Credential store %s timed out after %.1fs", operation, self.timeout)
            raise StoreError() from exc
        except IntegrityError as exc:
            await self.session.rollback()
            logger.info("Credential store %s hit a unique constraint", operation)
            raise DuplicateEmailError() from exc
        except SQLAlchemyError as exc:
            logger.error("Credential store %s failed: %s", operation, exc)
            raise StoreError() from exc

    async def _scalar(self, stmt) -> Optional[User]:
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == normalize_email(email))
        return await self._run("find_by_email", self._scalar(stmt))

    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Load an identity without its password hash (raises if touched)."""
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(defer(User.password_hash, raiseload=True))
        )
        return await self._run("find_by_id", self._scalar(stmt))

    async def find_by_federated_subject(self, firebase_uid: str) -> Optional[User]:
        stmt = select(User).where(User.firebase_uid == firebase_uid)
        return await self._run("find_by_federated_subject", self._scalar(stmt))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _flush(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user

    async def create(self, **fields: Any) -> User:
        if "email" in fields and fields["email"]:
            fields["email"] = normalize_email(fields["email"])
        user = User(**fields)
        return await self._run("create", self._flush(user))

    async def save(self, user: User) -> User:
        if user.email:
            user.email = normalize_email(user.email)
        return await self._run("save", self._flush(user))
