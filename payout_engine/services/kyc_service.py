"""
KYC service.

KYC submission and review. Every status change appends a history row.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.enums import KycStatus
from payout_engine.models.kyc import KycHistory, KycRecord
from payout_engine.repositories.kyc_repository import KycRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.services.notification_service import NotificationService
from payout_engine.utils.db_decorators import with_rollback_on_error
from payout_engine.utils.exceptions import InvalidStateError, NotFoundError


class KycService:
    """KYC review workflow."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize KYC service."""
        self.session = session
        self.kyc_repo = KycRepository(session)
        self.user_repo = UserRepository(session)
        self.notifier = NotificationService(session)

    @with_rollback_on_error
    async def submit(
        self,
        user_id: int,
        full_name: str,
        document_number: str,
    ) -> KycRecord:
        """
        Submit (or resubmit) KYC details for review.

        Raises:
            NotFoundError: User missing
            InvalidStateError: KYC already approved
        """
        if await self.user_repo.get_by_id(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        record = await self.kyc_repo.get_by_id(user_id, for_update=True)
        if record is None:
            record = await self.kyc_repo.create(
                user_id=user_id,
                full_name=full_name,
                document_number=document_number,
                status=KycStatus.PENDING.value,
            )
        else:
            if record.status == KycStatus.APPROVED.value:
                raise InvalidStateError(f"KYC of user {user_id} is already approved")
            record.full_name = full_name
            record.document_number = document_number
            record.status = KycStatus.PENDING.value
            record.remarks = None

        await self.kyc_repo.add_history(
            user_id, KycStatus.PENDING.value, "Submitted", updated_by="user"
        )
        await self.session.commit()
        logger.info("KYC submitted", extra={"user_id": user_id})
        return record

    async def approve(self, user_id: int, remarks: str | None = None) -> KycRecord:
        """Approve KYC."""
        return await self._review(
            user_id,
            KycStatus.APPROVED,
            remarks or "KYC approved",
            "Your KYC has been approved.",
        )

    async def reject(self, user_id: int, remarks: str) -> KycRecord:
        """Reject KYC with a reason."""
        return await self._review(
            user_id,
            KycStatus.REJECTED,
            remarks,
            f"Your KYC has been rejected. Reason: {remarks}",
        )

    @with_rollback_on_error
    async def update_details(
        self,
        user_id: int,
        full_name: str | None = None,
        document_number: str | None = None,
        remarks: str | None = None,
    ) -> KycRecord:
        """
        Admin correction of KYC details without changing the status.

        Raises:
            NotFoundError: No KYC record for the user
        """
        record = await self.kyc_repo.get_by_id(user_id, for_update=True)
        if record is None:
            raise NotFoundError(f"No KYC record for user {user_id}")

        if full_name is not None:
            record.full_name = full_name
        if document_number is not None:
            record.document_number = document_number
        if remarks is not None:
            record.remarks = remarks

        await self.kyc_repo.add_history(
            user_id, record.status, remarks or "Details updated"
        )
        await self.session.commit()
        logger.info("KYC details updated", extra={"user_id": user_id})
        return record

    async def get_history(self, user_id: int) -> list[KycHistory]:
        """Review events of a user, oldest first."""
        return await self.kyc_repo.get_history(user_id)

    @with_rollback_on_error
    async def _review(
        self,
        user_id: int,
        status: KycStatus,
        remarks: str,
        message: str,
    ) -> KycRecord:
        record = await self.kyc_repo.get_by_id(user_id, for_update=True)
        if record is None:
            raise NotFoundError(f"No KYC record for user {user_id}")
        if record.status != KycStatus.PENDING.value:
            raise InvalidStateError(
                f"KYC of user {user_id} is {record.status}, not pending"
            )

        record.status = status.value
        record.remarks = remarks
        await self.kyc_repo.add_history(user_id, status.value, remarks)
        await self.session.commit()

        logger.info(f"KYC {status.value}", extra={"user_id": user_id})
        await self.notifier.notify(user_id, message)
        return record
