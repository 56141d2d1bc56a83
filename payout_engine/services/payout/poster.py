"""
Payout poster.

Applies computed income to balances and the ledger exactly once per user,
calendar day and income type.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.constants import (
    LEVEL_KEY_FORMAT,
    REVERSAL_KEY_FORMAT,
    REWARD_KEY_FORMAT,
    ROI_KEY_FORMAT,
)
from payout_engine.models.enums import IncomeType, LedgerStatus
from payout_engine.models.ledger_entry import LedgerEntry
from payout_engine.models.rank_rule import RankRule
from payout_engine.repositories.ledger_repository import LedgerRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    InvalidStateError,
    NotFoundError,
)
from payout_engine.utils.validation import quantize_money, validate_amount

# Income types guarded by a per-day watermark, in posting order
DAILY_INCOME_TYPES = (IncomeType.ROI, IncomeType.LEVEL)

KEY_FORMATS = {
    IncomeType.ROI: ROI_KEY_FORMAT,
    IncomeType.LEVEL: LEVEL_KEY_FORMAT,
}


@dataclass
class PostingResult:
    """Outcome of one posting call."""

    user_id: int
    for_date: date
    credited: dict[str, Decimal] = field(default_factory=dict)
    already_posted: list[str] = field(default_factory=list)
    entries: list[LedgerEntry] = field(default_factory=list)
    blocked: bool = False

    @property
    def total_credited(self) -> Decimal:
        """Sum of amounts credited by this call."""
        return sum(self.credited.values(), Decimal("0"))

    @property
    def is_noop(self) -> bool:
        """Nothing changed (every type was already posted or user blocked)."""
        return not self.credited


class PayoutPoster:
    """
    Exactly-once posting primitive.

    For each daily income type a single conditional UPDATE credits the
    balance and advances the watermark only if the watermark is behind
    ``for_date``. Zero rows updated means the day was already posted, so
    a repeat call from any trigger source is a no-op.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout poster.

        Args:
            session: Async database session
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.ledger_repo = LedgerRepository(session)

    @with_rollback_on_error
    async def post(
        self,
        user_id: int,
        portions: Mapping[IncomeType | str, Decimal],
        for_date: date,
    ) -> PostingResult:
        """
        Post ROI and level income for one calendar day.

        All portions commit together or not at all. A zero portion still
        advances its watermark but writes no ledger entry.

        Args:
            user_id: Recipient
            portions: Amount per income type (roi, level)
            for_date: Calendar day being paid

        Returns:
            PostingResult describing what changed

        Raises:
            NotFoundError: User does not exist
            BusinessRuleViolation: Negative or unsupported portion
        """
        amounts: dict[IncomeType, Decimal] = {}
        for income_type, amount in portions.items():
            income_type = IncomeType(income_type)
            if income_type not in DAILY_INCOME_TYPES:
                raise BusinessRuleViolation(
                    f"{income_type.value} income is not posted daily"
                )
            amounts[income_type] = quantize_money(
                validate_amount(amount, income_type.value, allow_zero=True)
            )

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        result = PostingResult(user_id=user_id, for_date=for_date)
        if user.is_blocked:
            result.blocked = True
            logger.info(
                "Posting skipped for blocked user",
                extra={"user_id": user_id, "for_date": str(for_date)},
            )
            return result

        for income_type in DAILY_INCOME_TYPES:
            if income_type not in amounts:
                continue
            amount = amounts[income_type]

            applied = await self.user_repo.credit_if_not_posted(
                user_id, income_type.value, amount, for_date
            )
            if not applied:
                result.already_posted.append(income_type.value)
                continue

            if amount > 0:
                entry = await self._append_entry(
                    user_id=user_id,
                    income_type=income_type,
                    amount=amount,
                    for_date=for_date,
                    key=KEY_FORMATS[income_type].format(
                        user_id=user_id, for_date=for_date.isoformat()
                    ),
                    description=f"Daily {income_type.value} income for {for_date.isoformat()}",
                )
                result.entries.append(entry)
                result.credited[income_type.value] = amount

        await self.session.commit()

        if result.credited:
            logger.info(
                f"Posted {result.total_credited} to user {user_id} for {for_date}",
                extra={
                    "user_id": user_id,
                    "for_date": str(for_date),
                    "credited": {k: str(v) for k, v in result.credited.items()},
                },
            )
        elif result.already_posted:
            logger.debug(
                "Posting was a no-op, day already posted",
                extra={
                    "user_id": user_id,
                    "for_date": str(for_date),
                    "types": result.already_posted,
                },
            )
        return result

    async def post_reward(
        self,
        user_id: int,
        rule: RankRule,
        for_date: date,
        description: str | None = None,
    ) -> LedgerEntry | None:
        """
        Credit a rank reward inside the caller's transaction.

        The caller commits. A rank is rewarded at most once per user; the
        idempotency key makes a repeat return None without changes.

        Args:
            user_id: Recipient
            rule: Rank reached
            for_date: Calendar day of the promotion
            description: Ledger description

        Returns:
            Created ledger entry, or None if already rewarded
        """
        key = REWARD_KEY_FORMAT.format(user_id=user_id, rank=rule.rank)
        if await self.ledger_repo.get_by_key(key) is not None:
            logger.info(
                "Rank reward already posted",
                extra={"user_id": user_id, "rank": rule.rank},
            )
            return None

        amount = quantize_money(
            validate_amount(rule.reward_income, "reward_income", allow_zero=True)
        )
        if not await self.user_repo.credit_balance(user_id, amount):
            raise NotFoundError(f"User {user_id} not found")

        return await self._append_entry(
            user_id=user_id,
            income_type=IncomeType.REWARD,
            amount=amount,
            for_date=for_date,
            key=key,
            description=description or f"Rank {rule.rank} reward",
        )

    @with_rollback_on_error
    async def reverse(self, entry_id: int, reason: str) -> LedgerEntry:
        """
        Offset a ledger entry.

        Appends a reversal entry with the negated amount and debits the
        balance in one transaction. Watermarks are left alone, so the day
        is not paid again.

        Args:
            entry_id: Entry to reverse
            reason: Why the entry is reversed

        Returns:
            The reversal entry

        Raises:
            NotFoundError: Entry does not exist
            InvalidStateError: Entry is a reversal or already reversed
            BusinessRuleViolation: Balance too low to debit
        """
        entry = await self.ledger_repo.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        if entry.is_reversal:
            raise InvalidStateError(f"Entry {entry_id} is itself a reversal")
        if await self.ledger_repo.get_reversal_of(entry_id) is not None:
            raise InvalidStateError(f"Entry {entry_id} is already reversed")

        amount = Decimal(entry.amount)
        if not await self.user_repo.debit_balance(entry.user_id, amount):
            raise BusinessRuleViolation(
                f"Balance of user {entry.user_id} is below {amount}"
            )

        reversal = await self._append_entry(
            user_id=entry.user_id,
            income_type=IncomeType(entry.type),
            amount=-amount,
            for_date=entry.for_date,
            key=REVERSAL_KEY_FORMAT.format(entry_id=entry_id),
            description=f"Reversal of entry {entry_id}: {reason}",
            status=LedgerStatus.REVERSAL,
            reverses_id=entry_id,
        )
        await self.session.commit()

        logger.warning(
            f"Ledger entry {entry_id} reversed: {reason}",
            extra={"user_id": entry.user_id, "amount": str(amount)},
        )
        return reversal

    async def _append_entry(
        self,
        user_id: int,
        income_type: IncomeType,
        amount: Decimal,
        for_date: date,
        key: str,
        description: str,
        status: LedgerStatus = LedgerStatus.CREDITED,
        reverses_id: int | None = None,
    ) -> LedgerEntry:
        return await self.ledger_repo.create(
            user_id=user_id,
            type=income_type.value,
            amount=amount,
            for_date=for_date,
            status=status.value,
            idempotency_key=key,
            reverses_id=reverses_id,
            description=description,
        )
