"""
Deposit service.

Deposit submission and the admin approval workflow that creates ROI
principal.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.settings import settings
from payout_engine.models.deposit import Deposit
from payout_engine.models.enums import DepositStatus
from payout_engine.repositories.deposit_repository import DepositRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.services.notification_service import NotificationService
from payout_engine.utils.datetime_utils import utc_now
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    InvalidStateError,
    NotFoundError,
)
from payout_engine.utils.validation import (
    format_currency,
    quantize_money,
    validate_amount,
)


class DepositService:
    """Deposit service handles the deposit lifecycle."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deposit service."""
        self.session = session
        self.deposit_repo = DepositRepository(session)
        self.user_repo = UserRepository(session)
        self.notifier = NotificationService(session)

    @with_rollback_on_error
    async def submit(
        self,
        user_id: int,
        amount: Decimal,
        method: str | None = None,
    ) -> Deposit:
        """
        Record a pending deposit.

        Args:
            user_id: Depositor
            amount: Deposit amount
            method: Payment method label

        Returns:
            Pending deposit

        Raises:
            NotFoundError: User does not exist
            BusinessRuleViolation: Blocked user or non-positive amount
        """
        amount = quantize_money(validate_amount(amount))
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if user.is_blocked:
            raise BusinessRuleViolation("Blocked users cannot deposit")

        deposit = await self.deposit_repo.create(
            user_id=user_id,
            amount=amount,
            method=method,
            status=DepositStatus.PENDING.value,
        )
        await self.session.commit()

        logger.info(
            "Deposit submitted",
            extra={"deposit_id": deposit.id, "user_id": user_id, "amount": str(amount)},
        )
        return deposit

    @with_rollback_on_error
    async def approve(self, deposit_id: int) -> Deposit:
        """
        Approve a pending deposit.

        Marks it approved (starting ROI accrual), adds the amount to the
        user's self deposit and balance, and activates the account once
        lifetime deposits reach the activation threshold. One transaction.

        Args:
            deposit_id: Deposit to approve

        Returns:
            Approved deposit

        Raises:
            NotFoundError: Deposit or user missing
            InvalidStateError: Deposit not pending
        """
        deposit = await self.deposit_repo.get_by_id(deposit_id, for_update=True)
        if deposit is None:
            raise NotFoundError(f"Deposit {deposit_id} not found")
        if deposit.status != DepositStatus.PENDING.value:
            raise InvalidStateError(
                f"Deposit {deposit_id} is {deposit.status}, not pending"
            )

        user = await self.user_repo.get_by_id(deposit.user_id, for_update=True)
        if user is None:
            raise NotFoundError(f"User {deposit.user_id} not found")

        amount = Decimal(deposit.amount)
        deposit.status = DepositStatus.APPROVED.value
        deposit.approved_at = utc_now()

        user.self_deposit = Decimal(user.self_deposit) + amount
        user.balance = Decimal(user.balance) + amount
        was_active = user.is_active
        user.is_active = user.self_deposit >= settings.activation_threshold

        await self.session.commit()

        logger.info(
            f"Deposit {deposit_id} approved: {amount} for user {user.id}",
            extra={
                "deposit_id": deposit_id,
                "user_id": user.id,
                "self_deposit": str(user.self_deposit),
                "activated": user.is_active and not was_active,
            },
        )

        message = f"Your deposit of {format_currency(amount)} has been approved."
        if user.is_active and not was_active:
            message += " Your account is now active."
        elif not user.is_active:
            remaining = settings.activation_threshold - Decimal(user.self_deposit)
            message += (
                f" Deposit {format_currency(remaining)} more to activate your account."
            )
        await self.notifier.notify(user.id, message)
        return deposit

    @with_rollback_on_error
    async def reject(self, deposit_id: int, reason: str | None = None) -> Deposit:
        """
        Reject a pending deposit.

        Raises:
            NotFoundError: Deposit missing
            InvalidStateError: Deposit not pending
        """
        deposit = await self.deposit_repo.get_by_id(deposit_id, for_update=True)
        if deposit is None:
            raise NotFoundError(f"Deposit {deposit_id} not found")
        if deposit.status != DepositStatus.PENDING.value:
            raise InvalidStateError(
                f"Deposit {deposit_id} is {deposit.status}, not pending"
            )

        deposit.status = DepositStatus.REJECTED.value
        await self.session.commit()

        logger.info(
            "Deposit rejected",
            extra={"deposit_id": deposit_id, "reason": reason},
        )
        message = f"Your deposit of {format_currency(deposit.amount)} has been rejected."
        if reason:
            message += f" Reason: {reason}"
        await self.notifier.notify(deposit.user_id, message)
        return deposit
