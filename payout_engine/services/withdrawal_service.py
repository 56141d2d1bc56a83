"""
Withdrawal service.

Withdrawal requests and the admin approval workflow.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.settings import settings
from payout_engine.models.enums import (
    KycStatus,
    WithdrawalStatus,
    WithdrawalType,
)
from payout_engine.models.withdrawal import Withdrawal
from payout_engine.repositories.kyc_repository import KycRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.repositories.withdrawal_repository import (
    WithdrawalRepository,
)
from payout_engine.services.notification_service import NotificationService
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

HUNDRED = Decimal("100")


class WithdrawalService:
    """Withdrawal service handles the withdrawal lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        fee_percent: Decimal | None = None,
        requires_kyc: bool | None = None,
    ) -> None:
        """
        Initialize withdrawal service.

        Args:
            session: Async database session
            fee_percent: Processing fee percent (defaults to settings)
            requires_kyc: Require approved KYC (defaults to settings)
        """
        self.session = session
        self.withdrawal_repo = WithdrawalRepository(session)
        self.user_repo = UserRepository(session)
        self.kyc_repo = KycRepository(session)
        self.notifier = NotificationService(session)
        self.fee_percent = (
            settings.withdrawal_fee_percent if fee_percent is None else fee_percent
        )
        self.requires_kyc = (
            settings.withdrawal_requires_kyc if requires_kyc is None else requires_kyc
        )

    def calculate_fee(self, amount: Decimal) -> tuple[Decimal, Decimal]:
        """
        Processing fee and net payout for ``amount``.

        Returns:
            Tuple of (processing_fee, net_amount)
        """
        fee = quantize_money(Decimal(amount) * Decimal(self.fee_percent) / HUNDRED)
        return fee, Decimal(amount) - fee

    @with_rollback_on_error
    async def request(
        self,
        user_id: int,
        amount: Decimal,
        withdrawal_type: WithdrawalType | str = WithdrawalType.INCOME,
    ) -> Withdrawal:
        """
        Create a pending withdrawal.

        The amount, together with the user's other pending requests, must
        fit in the balance; principal requests must also fit in the user's
        self deposit.

        Raises:
            NotFoundError: User missing
            BusinessRuleViolation: Blocked user, KYC missing, or funds short
        """
        withdrawal_type = WithdrawalType(withdrawal_type)
        amount = quantize_money(validate_amount(amount))

        user = await self.user_repo.get_by_id(user_id, for_update=True)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if user.is_blocked:
            raise BusinessRuleViolation("Blocked users cannot withdraw")

        if self.requires_kyc:
            kyc = await self.kyc_repo.get_by_id(user_id)
            if kyc is None or kyc.status != KycStatus.APPROVED.value:
                raise BusinessRuleViolation("KYC approval required for withdrawals")

        pending = await self.withdrawal_repo.pending_total(user_id)
        if amount + pending > Decimal(user.balance):
            raise BusinessRuleViolation(
                f"Insufficient balance: requested {amount}, "
                f"available {Decimal(user.balance) - pending}"
            )
        if (
            withdrawal_type == WithdrawalType.PRINCIPAL
            and amount > Decimal(user.self_deposit)
        ):
            raise BusinessRuleViolation(
                f"Principal withdrawal exceeds deposits ({user.self_deposit})"
            )

        fee, net_amount = self.calculate_fee(amount)
        withdrawal = await self.withdrawal_repo.create(
            user_id=user_id,
            type=withdrawal_type.value,
            amount=amount,
            processing_fee=fee,
            net_amount=net_amount,
            status=WithdrawalStatus.PENDING.value,
        )
        await self.session.commit()

        logger.info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": withdrawal.id,
                "user_id": user_id,
                "amount": str(amount),
                "type": withdrawal_type.value,
            },
        )
        return withdrawal

    @with_rollback_on_error
    async def approve(self, withdrawal_id: int) -> Withdrawal:
        """
        Approve a pending withdrawal and debit the balance.

        The debit is a conditional update, so a concurrent approval can
        never take the balance below zero.

        Raises:
            NotFoundError: Withdrawal or user missing
            InvalidStateError: Withdrawal not pending
            BusinessRuleViolation: User blocked or balance short
        """
        withdrawal = await self.withdrawal_repo.get_by_id(
            withdrawal_id, for_update=True
        )
        if withdrawal is None:
            raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
        if withdrawal.status != WithdrawalStatus.PENDING.value:
            raise InvalidStateError(
                f"Withdrawal {withdrawal_id} is {withdrawal.status}, not pending"
            )

        user = await self.user_repo.get_by_id(withdrawal.user_id)
        if user is None:
            raise NotFoundError(f"User {withdrawal.user_id} not found")
        if user.is_blocked:
            raise BusinessRuleViolation("Cannot approve withdrawal of a blocked user")

        if not await self.user_repo.debit_balance(user.id, Decimal(withdrawal.amount)):
            raise BusinessRuleViolation(
                f"Insufficient balance for withdrawal {withdrawal_id}"
            )

        withdrawal.status = WithdrawalStatus.APPROVED.value
        await self.session.commit()

        logger.info(
            f"Withdrawal {withdrawal_id} approved",
            extra={"user_id": user.id, "net_amount": str(withdrawal.net_amount)},
        )
        await self.notifier.notify(
            user.id,
            f"Your {withdrawal.type} withdrawal of {format_currency(withdrawal.amount)} "
            f"has been approved. Net amount: {format_currency(withdrawal.net_amount)}",
        )
        return withdrawal

    @with_rollback_on_error
    async def reject(self, withdrawal_id: int) -> Withdrawal:
        """
        Reject a pending withdrawal. The balance is untouched.

        Raises:
            NotFoundError: Withdrawal missing
            InvalidStateError: Withdrawal not pending
        """
        withdrawal = await self.withdrawal_repo.get_by_id(
            withdrawal_id, for_update=True
        )
        if withdrawal is None:
            raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
        if withdrawal.status != WithdrawalStatus.PENDING.value:
            raise InvalidStateError(
                f"Withdrawal {withdrawal_id} is {withdrawal.status}, not pending"
            )

        withdrawal.status = WithdrawalStatus.REJECTED.value
        await self.session.commit()

        logger.info("Withdrawal rejected", extra={"withdrawal_id": withdrawal_id})
        await self.notifier.notify(
            withdrawal.user_id,
            f"Your {withdrawal.type} withdrawal request has been rejected.",
        )
        return withdrawal
