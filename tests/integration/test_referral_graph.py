"""
Integration tests for referral graph traversal and edge creation.
"""

from decimal import Decimal

import pytest

from payout_engine.models import ReferralEdge
from payout_engine.services.referral import ReferralGraphReader
from payout_engine.utils.exceptions import BusinessRuleViolation, NotFoundError


@pytest.fixture
async def tree(make_user):
    """
    A -> B -> D -> E
    A -> C
    """
    a = await make_user(self_deposit=100)
    b = await make_user(self_deposit=200, referrer=a)
    c = await make_user(self_deposit=300, referrer=a)
    d = await make_user(self_deposit=400, referrer=b)
    e = await make_user(self_deposit=500, referrer=d)
    return {"a": a, "b": b, "c": c, "d": d, "e": e}


class TestTeamByLevel:
    """Downline grouped by depth."""

    @pytest.mark.asyncio
    async def test_levels(self, db_session, tree):
        """Each depth holds the users at exactly that distance."""
        team = await ReferralGraphReader(db_session).team_by_level(tree["a"].id)

        assert team.depth == 3
        assert {u.id for u in team.members_at(1)} == {tree["b"].id, tree["c"].id}
        assert [u.id for u in team.members_at(2)] == [tree["d"].id]
        assert [u.id for u in team.members_at(3)] == [tree["e"].id]
        assert team.members_at(4) == []
        assert team.level(1).business == Decimal("500")
        assert team.total_size == 4

    @pytest.mark.asyncio
    async def test_max_depth_limits_levels(self, db_session, tree):
        """Traversal stops at the requested depth."""
        team = await ReferralGraphReader(db_session).team_by_level(
            tree["a"].id, max_depth=2
        )

        assert team.depth == 2

    @pytest.mark.asyncio
    async def test_leaf_has_no_team(self, db_session, tree):
        """A user without referrals has an empty snapshot."""
        team = await ReferralGraphReader(db_session).team_by_level(tree["e"].id)

        assert team.depth == 0
        assert team.total_size == 0

    @pytest.mark.asyncio
    async def test_blocked_member_traversed_but_not_counted(
        self, db_session, tree
    ):
        """Blocked users stay in the tree; their downline is still reached."""
        tree["b"].is_blocked = True
        await db_session.flush()

        team = await ReferralGraphReader(db_session).team_by_level(tree["a"].id)

        assert team.level(1).size == 1
        assert team.level(1).business == Decimal("300")
        assert [u.id for u in team.members_at(2)] == [tree["d"].id]

    @pytest.mark.asyncio
    async def test_cycle_is_reported_not_followed(self, db_session, make_user):
        """A -> B -> C -> A terminates with an integrity warning."""
        a = await make_user(self_deposit=10)
        b = await make_user(self_deposit=10, referrer=a)
        c = await make_user(self_deposit=10, referrer=b)
        db_session.add(ReferralEdge(referrer_id=c.id, referred_id=a.id))
        await db_session.flush()

        team = await ReferralGraphReader(db_session).team_by_level(a.id)

        assert team.depth == 2
        assert team.integrity_warnings == 1

    @pytest.mark.asyncio
    async def test_missing_user_skipped(self, db_session, make_user):
        """Edges to deleted users are counted and ignored."""
        a = await make_user(self_deposit=10)
        b = await make_user(self_deposit=10, referrer=a)
        db_session.add(ReferralEdge(referrer_id=a.id, referred_id=99999))
        await db_session.flush()

        team = await ReferralGraphReader(db_session).team_by_level(a.id)

        assert [u.id for u in team.members_at(1)] == [b.id]
        assert team.missing_users == 1


class TestLegBusiness:
    """Per-branch business split."""

    @pytest.mark.asyncio
    async def test_branches(self, db_session, tree):
        """Branch B holds B, D and E; branch C holds C."""
        legs = await ReferralGraphReader(db_session).leg_business(tree["a"].id)

        assert legs.branches == {
            tree["b"].id: Decimal("1100"),
            tree["c"].id: Decimal("300"),
        }
        assert legs.total_business == Decimal("1400")
        assert legs.power_leg == Decimal("1100")
        assert legs.other_leg == Decimal("300")

    @pytest.mark.asyncio
    async def test_depth_window(self, db_session, tree):
        """Only members within the window count."""
        legs = await ReferralGraphReader(db_session).leg_business(
            tree["a"].id, max_depth=2
        )

        assert legs.branches[tree["b"].id] == Decimal("600")
        assert legs.total_business == Decimal("900")

    @pytest.mark.asyncio
    async def test_blocked_contributes_zero(self, db_session, tree):
        """A blocked branch root adds nothing but its downline still counts."""
        tree["b"].is_blocked = True
        await db_session.flush()

        legs = await ReferralGraphReader(db_session).leg_business(tree["a"].id)

        assert legs.branches[tree["b"].id] == Decimal("900")

    @pytest.mark.asyncio
    async def test_no_referrals(self, db_session, tree):
        """No branches means all zeros."""
        legs = await ReferralGraphReader(db_session).leg_business(tree["e"].id)

        assert legs.total_business == Decimal("0")
        assert legs.power_leg == Decimal("0")
        assert legs.other_leg == Decimal("0")


class TestCreateReferral:
    """Edge creation rules."""

    @pytest.mark.asyncio
    async def test_creates_edge(self, db_session, make_user):
        """New edge links the users and sets referrer_id."""
        sponsor = await make_user()
        newcomer = await make_user()

        edge = await ReferralGraphReader(db_session).create_referral(
            sponsor.id, newcomer.id
        )

        assert edge.referrer_id == sponsor.id
        assert newcomer.referrer_id == sponsor.id

    @pytest.mark.asyncio
    async def test_self_referral(self, db_session, make_user):
        """Users cannot refer themselves."""
        user = await make_user()

        with pytest.raises(BusinessRuleViolation):
            await ReferralGraphReader(db_session).create_referral(user.id, user.id)

    @pytest.mark.asyncio
    async def test_already_referred(self, db_session, make_user):
        """Edges are never retargeted."""
        first = await make_user()
        second = await make_user()
        newcomer = await make_user(referrer=first)

        with pytest.raises(BusinessRuleViolation):
            await ReferralGraphReader(db_session).create_referral(
                second.id, newcomer.id
            )

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, db_session, tree):
        """A user cannot be placed under their own downline."""
        with pytest.raises(BusinessRuleViolation):
            await ReferralGraphReader(db_session).create_referral(
                tree["d"].id, tree["a"].id
            )

    @pytest.mark.asyncio
    async def test_unknown_referrer(self, db_session, make_user):
        """Referrer must exist."""
        newcomer = await make_user()

        with pytest.raises(NotFoundError):
            await ReferralGraphReader(db_session).create_referral(
                99999, newcomer.id
            )
