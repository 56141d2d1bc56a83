"""
Referral graph reader.

Breadth-first traversal of referral edges: the downline grouped by depth,
and the per-branch business split used for ranks.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config.constants import MAX_REFERRAL_DEPTH, RANK_TEAM_DEPTH
from payout_engine.models.referral import ReferralEdge
from payout_engine.models.user import User
from payout_engine.repositories.referral_repository import ReferralRepository
from payout_engine.repositories.user_repository import UserRepository
from payout_engine.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
)


@dataclass
class TeamLevel:
    """Members found at one referral depth."""

    level: int
    members: list[User]

    @property
    def counted_members(self) -> list[User]:
        """Members that count toward business and size (not blocked)."""
        return [member for member in self.members if not member.is_blocked]

    @property
    def business(self) -> Decimal:
        """Sum of self_deposit over non-blocked members."""
        return sum(
            (Decimal(m.self_deposit) for m in self.counted_members),
            Decimal("0"),
        )

    @property
    def size(self) -> int:
        """Count of non-blocked members."""
        return len(self.counted_members)


@dataclass
class TeamSnapshot:
    """Downline of a user grouped by depth, nearest level first."""

    root_id: int
    levels: list[TeamLevel] = field(default_factory=list)
    integrity_warnings: int = 0
    missing_users: int = 0

    def members_at(self, level: int) -> list[User]:
        """Members at ``level`` (1-based); empty past the deepest level."""
        if 1 <= level <= len(self.levels):
            return self.levels[level - 1].members
        return []

    def level(self, level: int) -> TeamLevel:
        """TeamLevel at ``level``; an empty one past the deepest level."""
        if 1 <= level <= len(self.levels):
            return self.levels[level - 1]
        return TeamLevel(level=level, members=[])

    @property
    def depth(self) -> int:
        """Number of non-empty levels."""
        return len(self.levels)

    @property
    def total_size(self) -> int:
        """Non-blocked members across all levels."""
        return sum(level.size for level in self.levels)


@dataclass(frozen=True)
class LegSplit:
    """Business split across direct branches."""

    total_business: Decimal
    power_leg: Decimal
    other_leg: Decimal
    branches: dict[int, Decimal] = field(default_factory=dict)


class ReferralGraphReader:
    """
    Reads the referral forest.

    Traversal is level-synchronous: each depth is one edge query for the
    whole frontier plus one user query. A user reached twice in the same
    traversal is a data-integrity problem (cycle or duplicate edge); the
    repeat is ignored and logged.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize graph reader.

        Args:
            session: Async database session
        """
        self.session = session
        self.referral_repo = ReferralRepository(session)
        self.user_repo = UserRepository(session)

    async def team_by_level(
        self, user_id: int, max_depth: int = MAX_REFERRAL_DEPTH
    ) -> TeamSnapshot:
        """
        Downline of ``user_id`` grouped by depth.

        Args:
            user_id: Root of the traversal
            max_depth: Deepest level to read (clamped to 1..30)

        Returns:
            Snapshot whose levels stop at the first empty depth
        """
        max_depth = max(1, min(max_depth, MAX_REFERRAL_DEPTH))
        snapshot = TeamSnapshot(root_id=user_id)

        visited = {user_id}
        frontier = [user_id]

        for depth in range(1, max_depth + 1):
            edges = await self.referral_repo.get_children(frontier)
            next_ids: list[int] = []
            for referrer_id, referred_id in edges:
                if referred_id in visited:
                    snapshot.integrity_warnings += 1
                    logger.warning(
                        "Referral graph revisits a user, ignoring edge",
                        extra={
                            "root_id": user_id,
                            "referrer_id": referrer_id,
                            "referred_id": referred_id,
                            "depth": depth,
                        },
                    )
                    continue
                visited.add(referred_id)
                next_ids.append(referred_id)

            if not next_ids:
                break

            users = await self.user_repo.get_many(next_ids)
            members: list[User] = []
            for referred_id in next_ids:
                member = users.get(referred_id)
                if member is None:
                    snapshot.missing_users += 1
                    logger.warning(
                        "Referral edge points at a missing user",
                        extra={"root_id": user_id, "referred_id": referred_id},
                    )
                    continue
                members.append(member)

            if not members:
                break

            snapshot.levels.append(TeamLevel(level=depth, members=members))
            frontier = [member.id for member in members]

        return snapshot

    async def leg_business(
        self, user_id: int, max_depth: int = RANK_TEAM_DEPTH
    ) -> LegSplit:
        """
        Business per direct branch.

        Each direct referral roots a branch; its business is the
        self_deposit of the root and every descendant down to
        ``max_depth`` levels below ``user_id``. Blocked users contribute
        zero.

        Args:
            user_id: User whose legs are measured
            max_depth: Depth window measured from ``user_id``

        Returns:
            LegSplit with the largest branch as the power leg
        """
        max_depth = max(1, min(max_depth, MAX_REFERRAL_DEPTH))
        direct_ids = await self.referral_repo.get_direct_referral_ids(user_id)

        visited = {user_id}
        # branch root id -> members of that branch on the current frontier
        frontier: dict[int, int] = {}
        for child_id in direct_ids:
            if child_id in visited:
                continue
            visited.add(child_id)
            frontier[child_id] = child_id

        branches: dict[int, Decimal] = {root: Decimal("0") for root in frontier}
        depth = 1
        while frontier:
            users = await self.user_repo.get_many(list(frontier))
            for member_id, root_id in frontier.items():
                member = users.get(member_id)
                if member is not None and not member.is_blocked:
                    branches[root_id] += Decimal(member.self_deposit)

            if depth >= max_depth:
                break

            edges = await self.referral_repo.get_children(list(frontier))
            next_frontier: dict[int, int] = {}
            for referrer_id, referred_id in edges:
                if referred_id in visited:
                    logger.warning(
                        "Referral graph revisits a user, ignoring edge",
                        extra={
                            "root_id": user_id,
                            "referrer_id": referrer_id,
                            "referred_id": referred_id,
                        },
                    )
                    continue
                visited.add(referred_id)
                next_frontier[referred_id] = frontier[referrer_id]
            frontier = next_frontier
            depth += 1

        total = sum(branches.values(), Decimal("0"))
        power = max(branches.values(), default=Decimal("0"))
        return LegSplit(
            total_business=total,
            power_leg=power,
            other_leg=total - power,
            branches=branches,
        )

    async def create_referral(
        self, referrer_id: int, referred_id: int
    ) -> ReferralEdge:
        """
        Create the edge for a newly registered user.

        Args:
            referrer_id: Sponsor
            referred_id: New user

        Returns:
            Created edge

        Raises:
            NotFoundError: Either user does not exist
            BusinessRuleViolation: Self-referral, already referred, or cycle
        """
        if referrer_id == referred_id:
            raise BusinessRuleViolation("User cannot refer themselves")

        users = await self.user_repo.get_many([referrer_id, referred_id])
        if referrer_id not in users:
            raise NotFoundError(f"Referrer {referrer_id} not found")
        if referred_id not in users:
            raise NotFoundError(f"User {referred_id} not found")

        if await self.referral_repo.get_by_referred(referred_id) is not None:
            raise BusinessRuleViolation(
                f"User {referred_id} already has a referrer"
            )

        upline = await self.referral_repo.get_upline_ids(
            referrer_id, MAX_REFERRAL_DEPTH * 10
        )
        if referred_id in upline:
            raise BusinessRuleViolation(
                f"Edge {referrer_id}->{referred_id} would create a cycle"
            )

        edge = await self.referral_repo.create(
            referrer_id=referrer_id, referred_id=referred_id
        )
        users[referred_id].referrer_id = referrer_id
        await self.session.flush()

        logger.info(
            "Referral edge created",
            extra={"referrer_id": referrer_id, "referred_id": referred_id},
        )
        return edge
