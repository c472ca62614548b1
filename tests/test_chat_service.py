"""Unit tests for ChatService — visibility, ensure_chat and message append."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from app.models.chat import Chat, Message, make_pair_key
from app.services.chat_service import ChatService
from app.services.errors import InternalError, NotFoundError, ValidationError


@pytest.fixture
def chat_service():
    return ChatService()


@pytest_asyncio.fixture
async def chat_setup(db_session, make_user, chat_service):
    a = await make_user("A")
    b = await make_user("B")
    c = await make_user("C")
    chat, created = await chat_service.ensure_chat(db_session, a.id, b.id)
    assert created
    return chat, a, b, c


class TestPairKey:

    def test_order_independent(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        assert make_pair_key(x, y) == make_pair_key(y, x)

    def test_distinct_pairs_distinct_keys(self):
        x, y, z = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        assert make_pair_key(x, y) != make_pair_key(x, z)


class TestEnsureChat:

    @pytest.mark.asyncio
    async def test_existing_chat_is_reused(self, db_session, chat_setup, chat_service):
        chat, a, b, _ = chat_setup
        again, created = await chat_service.ensure_chat(db_session, b.id, a.id)
        assert not created
        assert again.id == chat.id
        count = (await db_session.execute(select(func.count(Chat.id)))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_lost_race_adopts_winner(
        self, db_session, make_user, chat_service, monkeypatch
    ):
        """Pre-check misses a concurrently created chat; the unique key catches it."""
        a = await make_user("A")
        b = await make_user("B")
        winner = Chat(
            participant_a_id=b.id,
            participant_b_id=a.id,
            pair_key=make_pair_key(a.id, b.id),
        )
        db_session.add(winner)
        await db_session.flush()

        real_find = ChatService.find_by_pair
        calls = []

        async def stale_first_lookup(self, session, x, y):
            calls.append((x, y))
            if len(calls) == 1:
                return None
            return await real_find(self, session, x, y)

        monkeypatch.setattr(ChatService, "find_by_pair", stale_first_lookup)

        chat, created = await chat_service.ensure_chat(db_session, a.id, b.id)
        assert not created
        assert chat.id == winner.id
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_lost_race_without_winner_is_internal(
        self, db_session, make_user, chat_service, monkeypatch
    ):
        a = await make_user("A")
        b = await make_user("B")
        db_session.add(
            Chat(participant_a_id=a.id, participant_b_id=b.id, pair_key=make_pair_key(a.id, b.id))
        )
        await db_session.flush()

        async def never_found(self, session, x, y):
            return None

        monkeypatch.setattr(ChatService, "find_by_pair", never_found)
        with pytest.raises(InternalError):
            await chat_service.ensure_chat(db_session, a.id, b.id)


class TestVisibility:

    @pytest.mark.asyncio
    async def test_participants_can_read(self, db_session, chat_setup, chat_service):
        chat, a, b, _ = chat_setup
        for user in (a, b):
            fetched = await chat_service.get_chat(db_session, chat.id, user.id)
            assert fetched.id == chat.id
            assert {u.id for u in fetched.participants} == {a.id, b.id}

    @pytest.mark.asyncio
    async def test_outsider_sees_not_found(self, db_session, chat_setup, chat_service):
        chat, _, _, c = chat_setup
        with pytest.raises(NotFoundError):
            await chat_service.get_chat(db_session, chat.id, c.id)

    @pytest.mark.asyncio
    async def test_missing_chat_looks_the_same(self, db_session, chat_setup, chat_service):
        _, a, _, _ = chat_setup
        with pytest.raises(NotFoundError) as missing:
            await chat_service.get_chat(db_session, uuid.uuid4(), a.id)
        assert missing.value.message == "Chat not found"

    @pytest.mark.asyncio
    async def test_outsider_cannot_append(self, db_session, chat_setup, chat_service):
        chat, _, _, c = chat_setup
        with pytest.raises(NotFoundError):
            await chat_service.append_message(db_session, chat.id, c.id, "hello")
        count = (await db_session.execute(select(func.count(Message.id)))).scalar_one()
        assert count == 0


class TestAppendMessage:

    @pytest.mark.asyncio
    async def test_scenario_alternating_messages(self, db_session, chat_setup, chat_service):
        chat, a, b, _ = chat_setup
        m1 = await chat_service.append_message(db_session, chat.id, a.id, "hi")
        m2 = await chat_service.append_message(db_session, chat.id, b.id, "hey")

        fetched = await chat_service.get_chat(db_session, chat.id, a.id)
        assert [(m.sender_id, m.text) for m in fetched.messages] == [
            (a.id, "hi"),
            (b.id, "hey"),
        ]
        assert [m.id for m in fetched.messages] == [m1.id, m2.id]

    @pytest.mark.asyncio
    async def test_seq_is_contiguous(self, db_session, chat_setup, chat_service):
        chat, a, b, _ = chat_setup
        for i in range(5):
            sender = a if i % 2 == 0 else b
            msg = await chat_service.append_message(db_session, chat.id, sender.id, f"m{i}")
            assert msg.seq == i + 1

        fetched = await chat_service.get_chat(db_session, chat.id, b.id)
        assert [m.seq for m in fetched.messages] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_message_carries_sender(self, db_session, chat_setup, chat_service):
        chat, a, _, _ = chat_setup
        msg = await chat_service.append_message(db_session, chat.id, a.id, "hello")
        assert msg.sender.id == a.id
        assert msg.sender.name == "A"
        assert msg.chat_id == chat.id
        assert msg.created_at is not None

    @pytest.mark.asyncio
    async def test_text_stored_verbatim(self, db_session, chat_setup, chat_service):
        chat, a, _, _ = chat_setup
        msg = await chat_service.append_message(db_session, chat.id, a.id, "  spaced  ")
        assert msg.text == "  spaced  "

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_rejected(self, db_session, chat_setup, chat_service, text):
        chat, a, _, _ = chat_setup
        with pytest.raises(ValidationError):
            await chat_service.append_message(db_session, chat.id, a.id, text)

    @pytest.mark.asyncio
    async def test_unknown_chat_not_found(self, db_session, chat_setup, chat_service):
        _, a, _, _ = chat_setup
        with pytest.raises(NotFoundError):
            await chat_service.append_message(db_session, uuid.uuid4(), a.id, "hi")


class TestListForUser:

    @pytest.mark.asyncio
    async def test_only_own_chats_most_recent_first(
        self, db_session, make_user, chat_service
    ):
        a = await make_user("A")
        b = await make_user("B")
        c = await make_user("C")
        d = await make_user("D")
        ab, _ = await chat_service.ensure_chat(db_session, a.id, b.id)
        ac, _ = await chat_service.ensure_chat(db_session, a.id, c.id)
        cd, _ = await chat_service.ensure_chat(db_session, c.id, d.id)

        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        ab.created_at = base
        ac.created_at = base + timedelta(minutes=1)
        await db_session.flush()

        # Fresh activity in the older chat moves it to the front.
        msg = await chat_service.append_message(db_session, ab.id, b.id, "ping")
        msg.created_at = base + timedelta(minutes=5)
        await db_session.flush()

        chats = await chat_service.list_for_user(db_session, a.id)
        assert [ch.id for ch in chats] == [ab.id, ac.id]
        assert cd.id not in {ch.id for ch in chats}

    @pytest.mark.asyncio
    async def test_no_chats(self, db_session, make_user, chat_service):
        a = await make_user("A")
        assert await chat_service.list_for_user(db_session, a.id) == []
