"""
Integration tests for deposit, withdrawal, KYC and user workflows.
"""

from datetime import date
from decimal import Decimal

import pytest

from payout_engine.models import User
from payout_engine.models.enums import (
    DepositStatus,
    KycStatus,
    WithdrawalStatus,
    WithdrawalType,
)
from payout_engine.repositories import NotificationRepository, ReferralRepository
from payout_engine.services.deposit_service import DepositService
from payout_engine.services.kyc_service import KycService
from payout_engine.services.payout import PayoutPoster
from payout_engine.services.user_service import UserService, generate_referral_code
from payout_engine.services.withdrawal_service import WithdrawalService
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    InvalidStateError,
    NotFoundError,
)


class TestDepositService:
    """Deposit lifecycle."""

    @pytest.mark.asyncio
    async def test_submit_pending(self, db_session, make_user):
        """New deposits wait for review and do not accrue."""
        user = await make_user()

        deposit = await DepositService(db_session).submit(user.id, Decimal("50"), "upi")

        assert deposit.status == DepositStatus.PENDING.value
        assert deposit.approved_at is None
        assert not deposit.accrues

    @pytest.mark.asyncio
    async def test_approve_activates(self, db_session, make_user):
        """Reaching the threshold activates the account."""
        user = await make_user()
        service = DepositService(db_session)
        deposit = await service.submit(user.id, Decimal("25"))

        approved = await service.approve(deposit.id)

        await db_session.refresh(user)
        messages = await NotificationRepository(db_session).get_for_user(user.id)
        assert approved.status == DepositStatus.APPROVED.value
        assert approved.approved_at is not None
        assert user.self_deposit == Decimal("25")
        assert user.balance == Decimal("25")
        assert user.is_active
        assert "now active" in messages[-1].message

    @pytest.mark.asyncio
    async def test_approve_below_threshold(self, db_session, make_user):
        """Small deposits leave the account inactive with a hint."""
        user = await make_user()
        service = DepositService(db_session)
        deposit = await service.submit(user.id, Decimal("5"))

        await service.approve(deposit.id)

        await db_session.refresh(user)
        messages = await NotificationRepository(db_session).get_for_user(user.id)
        assert not user.is_active
        assert "$15.00 more" in messages[-1].message

    @pytest.mark.asyncio
    async def test_approve_twice_rejected(self, db_session, make_user):
        """Only pending deposits can be approved."""
        user = await make_user()
        service = DepositService(db_session)
        deposit = await service.submit(user.id, Decimal("25"))
        await service.approve(deposit.id)

        with pytest.raises(InvalidStateError):
            await service.approve(deposit.id)

    @pytest.mark.asyncio
    async def test_reject(self, db_session, make_user):
        """Rejected deposits never change balances."""
        user = await make_user()
        service = DepositService(db_session)
        deposit = await service.submit(user.id, Decimal("25"))

        rejected = await service.reject(deposit.id, "bad proof")

        await db_session.refresh(user)
        assert rejected.status == DepositStatus.REJECTED.value
        assert user.self_deposit == Decimal("0")

    @pytest.mark.asyncio
    async def test_blocked_user_cannot_deposit(self, db_session, make_user):
        """Blocked users are refused."""
        user = await make_user(is_blocked=True)

        with pytest.raises(BusinessRuleViolation):
            await DepositService(db_session).submit(user.id, Decimal("25"))

    @pytest.mark.asyncio
    async def test_invalid_amount(self, db_session, make_user):
        """Zero is not a deposit."""
        user = await make_user()

        with pytest.raises(BusinessRuleViolation):
            await DepositService(db_session).submit(user.id, Decimal("0"))

    @pytest.mark.asyncio
    async def test_unknown_deposit(self, db_session):
        """Missing deposits raise."""
        with pytest.raises(NotFoundError):
            await DepositService(db_session).approve(404)


class TestWithdrawalService:
    """Withdrawal lifecycle."""

    @pytest.mark.asyncio
    async def test_request_with_fee(self, db_session, make_user):
        """Fee and net amount are computed up front."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session, fee_percent=Decimal("5"))

        withdrawal = await service.request(user.id, Decimal("40"))

        assert withdrawal.status == WithdrawalStatus.PENDING.value
        assert withdrawal.processing_fee == Decimal("2")
        assert withdrawal.net_amount == Decimal("38")

    @pytest.mark.asyncio
    async def test_pending_requests_reserve_balance(self, db_session, make_user):
        """Open requests count against the available balance."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session)
        await service.request(user.id, Decimal("70"))

        with pytest.raises(BusinessRuleViolation):
            await service.request(user.id, Decimal("40"))

    @pytest.mark.asyncio
    async def test_principal_capped_by_deposits(self, db_session, make_user):
        """Principal withdrawals cannot exceed self deposit."""
        user = await make_user(self_deposit=50, balance=200)

        with pytest.raises(BusinessRuleViolation):
            await WithdrawalService(db_session).request(
                user.id, Decimal("60"), WithdrawalType.PRINCIPAL
            )

    @pytest.mark.asyncio
    async def test_kyc_required(self, db_session, make_user):
        """Without approved KYC the request is refused."""
        user = await make_user(self_deposit=100, balance=100)

        with pytest.raises(BusinessRuleViolation):
            await WithdrawalService(db_session, requires_kyc=True).request(
                user.id, Decimal("10")
            )

    @pytest.mark.asyncio
    async def test_approve_debits(self, db_session, make_user):
        """Approval takes the amount out of the balance."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session)
        withdrawal = await service.request(user.id, Decimal("30"))

        approved = await service.approve(withdrawal.id)

        await db_session.refresh(user)
        assert approved.status == WithdrawalStatus.APPROVED.value
        assert user.balance == Decimal("70")

    @pytest.mark.asyncio
    async def test_approve_blocked_user(self, db_session, make_user):
        """Blocked users' withdrawals stay pending."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session)
        withdrawal = await service.request(user.id, Decimal("30"))
        user.is_blocked = True
        await db_session.commit()

        with pytest.raises(BusinessRuleViolation):
            await service.approve(withdrawal.id)

    @pytest.mark.asyncio
    async def test_approve_after_balance_drop(self, db_session, make_user):
        """The debit never drives the balance negative."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session)
        withdrawal = await service.request(user.id, Decimal("80"))
        user.balance = Decimal("10")
        await db_session.commit()

        with pytest.raises(BusinessRuleViolation):
            await service.approve(withdrawal.id)

    @pytest.mark.asyncio
    async def test_reject_keeps_balance(self, db_session, make_user):
        """Rejected withdrawals leave the balance alone."""
        user = await make_user(self_deposit=100, balance=100)
        service = WithdrawalService(db_session)
        withdrawal = await service.request(user.id, Decimal("30"))

        await service.reject(withdrawal.id)

        await db_session.refresh(user)
        assert user.balance == Decimal("100")
        with pytest.raises(InvalidStateError):
            await service.approve(withdrawal.id)


class TestKycService:
    """KYC review."""

    @pytest.mark.asyncio
    async def test_submit_and_approve(self, db_session, make_user):
        """Approval is recorded in history and unlocks withdrawals."""
        user = await make_user(self_deposit=100, balance=100)
        service = KycService(db_session)
        await service.submit(user.id, "Jane Roe", "P1234567")

        record = await service.approve(user.id)
        history = await service.get_history(user.id)

        assert record.status == KycStatus.APPROVED.value
        assert [h.status for h in history] == ["pending", "approved"]
        withdrawal = await WithdrawalService(db_session, requires_kyc=True).request(
            user.id, Decimal("10")
        )
        assert withdrawal.id is not None

    @pytest.mark.asyncio
    async def test_reject_then_resubmit(self, db_session, make_user):
        """Rejected KYC can be submitted again."""
        user = await make_user()
        service = KycService(db_session)
        await service.submit(user.id, "Jane Roe", "BAD")
        await service.reject(user.id, "Document unreadable")

        record = await service.submit(user.id, "Jane Roe", "P1234567")

        assert record.status == KycStatus.PENDING.value
        assert record.document_number == "P1234567"
        assert record.remarks is None

    @pytest.mark.asyncio
    async def test_resubmit_after_approval(self, db_session, make_user):
        """Approved KYC is final."""
        user = await make_user()
        service = KycService(db_session)
        await service.submit(user.id, "Jane Roe", "P1234567")
        await service.approve(user.id)

        with pytest.raises(InvalidStateError):
            await service.submit(user.id, "Jane Roe", "OTHER")

    @pytest.mark.asyncio
    async def test_update_details(self, db_session, make_user):
        """Admin corrections keep the status."""
        user = await make_user()
        service = KycService(db_session)
        await service.submit(user.id, "Jane Roe", "P1234567")

        record = await service.update_details(user.id, full_name="Jane A. Roe")

        assert record.full_name == "Jane A. Roe"
        assert record.status == KycStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_review_without_record(self, db_session, make_user):
        """Reviewing a user who never submitted raises."""
        user = await make_user()

        with pytest.raises(NotFoundError):
            await KycService(db_session).approve(user.id)


class TestUserService:
    """Registration and account controls."""

    def test_referral_code_format(self):
        """REF plus eight uppercase alphanumerics."""
        code = generate_referral_code()

        assert code.startswith("REF")
        assert len(code) == 11
        assert code[3:].isalnum() and code[3:].upper() == code[3:]

    @pytest.mark.asyncio
    async def test_register_with_referral(self, db_session):
        """A sponsor code creates the referral edge."""
        service = UserService(db_session)
        sponsor = await service.register("Sponsor@Example.com", "Sponsor")

        user = await service.register(
            "new@example.com", "New", referral_code=sponsor.referral_code.lower()
        )

        edge = await ReferralRepository(db_session).get_by_referred(user.id)
        assert sponsor.email == "sponsor@example.com"
        assert user.referrer_id == sponsor.id
        assert edge.referrer_id == sponsor.id
        assert user.self_deposit == Decimal("0")
        assert not user.is_active

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session):
        """Emails are unique regardless of case."""
        service = UserService(db_session)
        await service.register("a@example.com")

        with pytest.raises(BusinessRuleViolation):
            await service.register("A@EXAMPLE.COM")

    @pytest.mark.asyncio
    async def test_unknown_referral_code(self, db_session):
        """Bad codes are rejected and nothing is stored."""
        service = UserService(db_session)

        with pytest.raises(BusinessRuleViolation):
            await service.register("a@example.com", referral_code="REFNOPE0000")

        assert await service.user_repo.count_users() == 0

    @pytest.mark.asyncio
    async def test_block_and_unblock(self, db_session, make_user):
        """Blocking flips the flag and notifies."""
        user = await make_user()
        service = UserService(db_session)

        await service.set_blocked(user.id, True)
        assert user.is_blocked
        await service.set_blocked(user.id, False)
        assert not user.is_blocked

    @pytest.mark.asyncio
    async def test_delete_keeps_edges(self, db_session, make_user):
        """Deleting a user leaves the referral edges in place."""
        sponsor = await make_user()
        user = await make_user(referrer=sponsor)
        await db_session.commit()

        assert await UserService(db_session).delete_user(user.id)

        db_session.expire_all()
        assert await db_session.get(User, user.id) is None
        assert await ReferralRepository(db_session).get_by_referred(user.id) is not None

    @pytest.mark.asyncio
    async def test_delete_with_ledger_refused(self, db_session, make_user):
        """Users with postings can only be blocked."""
        user = await make_user(self_deposit=100)
        await PayoutPoster(db_session).post(user.id, {"roi": Decimal("1")}, date(2026, 1, 1))

        with pytest.raises(BusinessRuleViolation):
            await UserService(db_session).delete_user(user.id)
