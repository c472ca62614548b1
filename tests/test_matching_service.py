"""Unit tests for MatchingService — reciprocal skill-overlap matching."""
import uuid

import pytest

from app.models.user import User
from app.services.errors import NotFoundError
from app.services.matching_service import MatchingService, explain_match, is_match


@pytest.fixture
def matching_service():
    return MatchingService()


def _user(offered, desired):
    return User(id=uuid.uuid4(), offered_skills=offered, desired_skills=desired)


class TestExplainMatch:
    """Pure overlap computation, no database."""

    def test_candidate_can_teach_requester(self):
        requester = _user(["Python"], ["React.js"])
        candidate = _user(["React.js", "Figma"], ["Go"])
        why = explain_match(requester, candidate)
        assert why.can_teach_you == ["React.js"]
        assert why.wants_from_you == []
        assert why.is_match

    def test_requester_can_teach_candidate(self):
        requester = _user(["Python"], ["React.js"])
        candidate = _user(["Go"], ["Python"])
        why = explain_match(requester, candidate)
        assert why.can_teach_you == []
        assert why.wants_from_you == ["Python"]
        assert why.is_match

    def test_no_overlap(self):
        requester = _user(["Python"], ["React.js"])
        candidate = _user(["Go"], ["Rust"])
        assert not explain_match(requester, candidate).is_match

    def test_exact_string_comparison(self):
        """No case folding or trimming: 'react' is not 'React'."""
        requester = _user([], ["React"])
        candidate = _user(["react", " React"], [])
        assert not explain_match(requester, candidate).is_match

    def test_keeps_candidate_list_order(self):
        requester = _user([], ["C", "A", "B"])
        candidate = _user(["A", "B", "C"], [])
        assert explain_match(requester, candidate).can_teach_you == ["A", "B", "C"]

    def test_self_is_never_a_match(self):
        user = _user(["Python"], ["Python"])
        assert not is_match(user, user)


class TestGetMatches:
    """Directory queries against the database."""

    @pytest.mark.asyncio
    async def test_scenario_from_two_complementary_students(
        self, db_session, make_user, matching_service
    ):
        """A offers Python wants React; B offers React wants Python; C unrelated."""
        a = await make_user("A", offered=["Python"], desired=["React"])
        b = await make_user("B", offered=["React"], desired=["Python"])
        await make_user("C", offered=["Go"], desired=["Rust"])

        matches = await matching_service.get_matches(db_session, a.id)
        assert [u.id for u in matches] == [b.id]

    @pytest.mark.asyncio
    async def test_one_directional_overlap_is_enough(
        self, db_session, make_user, matching_service
    ):
        a = await make_user("A", offered=["Python"], desired=[])
        b = await make_user("B", offered=[], desired=["Python"])
        matches = await matching_service.get_matches(db_session, a.id)
        assert [u.id for u in matches] == [b.id]

    @pytest.mark.asyncio
    async def test_requester_never_in_own_result(
        self, db_session, make_user, matching_service
    ):
        a = await make_user("A", offered=["Python"], desired=["Python"])
        await make_user("B", offered=["Python"], desired=["Python"])
        matches = await matching_service.get_matches(db_session, a.id)
        assert a.id not in {u.id for u in matches}
        assert len(matches) == 1

    @pytest.mark.asyncio
    async def test_empty_skill_lists_match_nobody(
        self, db_session, make_user, matching_service
    ):
        a = await make_user("A")
        await make_user("B", offered=["Python"], desired=["React"])
        assert await matching_service.get_matches(db_session, a.id) == []

    @pytest.mark.asyncio
    async def test_results_in_directory_order(
        self, db_session, make_user, matching_service
    ):
        a = await make_user("A", offered=["SQL"], desired=["Go"])
        first = await make_user("First", offered=["Go"])
        second = await make_user("Second", desired=["SQL"])
        third = await make_user("Third", offered=["Go"], desired=["SQL"])

        matches = await matching_service.get_matches(db_session, a.id)
        assert [u.id for u in matches] == [first.id, second.id, third.id]

    @pytest.mark.asyncio
    async def test_matching_is_symmetric(self, db_session, make_user, matching_service):
        a = await make_user("A", offered=["Python"])
        b = await make_user("B", desired=["Python"])
        a_sees = {u.id for u in await matching_service.get_matches(db_session, a.id)}
        b_sees = {u.id for u in await matching_service.get_matches(db_session, b.id)}
        assert b.id in a_sees
        assert a.id in b_sees

    @pytest.mark.asyncio
    async def test_unknown_requester_not_found(self, db_session, matching_service):
        with pytest.raises(NotFoundError):
            await matching_service.get_matches(db_session, uuid.uuid4())


class TestListOthers:

    @pytest.mark.asyncio
    async def test_lists_everyone_but_the_actor(
        self, db_session, make_user, matching_service
    ):
        a = await make_user("A")
        b = await make_user("B")
        c = await make_user("C")
        others = await matching_service.list_others(db_session, a.id)
        assert [u.id for u in others] == [b.id, c.id]
