"""
User service.

Registration with referral edges, blocking and deletion.
"""

import secrets
import string

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.user import User
from payout_engine.repositories.ledger_repository import LedgerRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.services.notification_service import NotificationService
from payout_engine.services.referral.graph_reader import ReferralGraphReader
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
)
from payout_engine.utils.validation import normalize_email

REFERRAL_CODE_PREFIX = "REF"
REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_referral_code() -> str:
    """Random ``REF`` code, e.g. ``REFK3Q9ZB1M``."""
    suffix = "".join(
        secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH)
    )
    return f"{REFERRAL_CODE_PREFIX}{suffix}"


class UserService:
    """User lifecycle."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user service."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.graph = ReferralGraphReader(session)
        self.notifier = NotificationService(session)

    @with_rollback_on_error
    async def register(
        self,
        email: str,
        name: str | None = None,
        referral_code: str | None = None,
    ) -> User:
        """
        Register a user, linking them under a sponsor when a code is given.

        Args:
            email: Unique email
            name: Display name
            referral_code: Sponsor's referral code

        Returns:
            Created user

        Raises:
            BusinessRuleViolation: Email taken or unknown referral code
        """
        email = normalize_email(email)
        if await self.user_repo.get_by_email(email) is not None:
            raise BusinessRuleViolation(f"Email {email} is already registered")

        sponsor: User | None = None
        if referral_code:
            sponsor = await self.user_repo.get_by_referral_code(referral_code.strip().upper())
            if sponsor is None:
                raise BusinessRuleViolation(f"Unknown referral code {referral_code}")

        code = generate_referral_code()
        while await self.user_repo.get_by_referral_code(code) is not None:
            code = generate_referral_code()

        user = await self.user_repo.create(
            email=email,
            name=name,
            referral_code=code,
        )
        if sponsor is not None:
            await self.graph.create_referral(sponsor.id, user.id)

        await self.session.commit()
        logger.info(
            "User registered",
            extra={"user_id": user.id, "referrer_id": sponsor.id if sponsor else None},
        )
        return user

    @with_rollback_on_error
    async def set_blocked(self, user_id: int, blocked: bool) -> User:
        """
        Block or unblock a user.

        Blocked users receive no postings and count toward no team.
        """
        user = await self.user_repo.get_by_id(user_id, for_update=True)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        user.is_blocked = blocked
        await self.session.commit()

        action = "blocked" if blocked else "unblocked"
        logger.info(f"User {user_id} {action}")
        await self.notifier.notify(user_id, f"Your account has been {action}.")
        return user

    @with_rollback_on_error
    async def delete_user(self, user_id: int) -> bool:
        """
        Delete a user.

        Referral edges are kept so historical team structure stays intact;
        traversals skip the missing user.

        Raises:
            BusinessRuleViolation: User has ledger history
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        if await LedgerRepository(self.session).exists(user_id=user_id):
            raise BusinessRuleViolation(
                f"User {user_id} has ledger history and cannot be deleted; block instead"
            )

        deleted = await self.user_repo.delete(user_id)
        await self.session.commit()
        logger.warning(f"User {user_id} deleted")
        return deleted
