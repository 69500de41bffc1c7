import json
import uuid
from datetime import timedelta

import pytest

from inbox.core.config import settings
from inbox.core.constants import NO_MESSAGES_PREVIEW
from inbox.core.datetime_utils import utcnow
from inbox.core.exceptions import ForbiddenError, NotFoundError
from inbox.messaging.schemas.conversation import ConversationCreate, matches_search
from inbox.messaging.services.conversation_service import ConversationService
from tests.utils.factories import (
    create_conversation_factory,
    create_message_factory,
    create_user_factory,
    join_conversation,
)


class TestListConversations:
    def test_should_list_only_conversations_the_user_joined(
        self, db_session, test_user, other_user
    ):
        mine = create_conversation_factory(db_session, [test_user, other_user], name="Ours")
        create_conversation_factory(db_session, [other_user], name="Theirs")

        result = ConversationService(db_session).list_conversations(test_user)

        assert result.total == 1
        assert [c.id for c in result.conversations] == [mine.id]

    def test_should_order_by_join_time(self, db_session, test_user, other_user):
        first = create_conversation_factory(db_session, [other_user], name="Joined first")
        second = create_conversation_factory(db_session, [other_user], name="Joined second")
        now = utcnow()
        join_conversation(db_session, second, test_user, joined_at=now)
        join_conversation(db_session, first, test_user, joined_at=now + timedelta(minutes=1))

        result = ConversationService(db_session).list_conversations(test_user)

        assert [c.name for c in result.conversations] == ["Joined second", "Joined first"]

    def test_should_preview_last_message(self, db_session, test_user, other_user):
        conversation = create_conversation_factory(db_session, [test_user, other_user])
        now = utcnow()
        create_message_factory(db_session, conversation, test_user, "first", created_at=now)
        create_message_factory(
            db_session, conversation, other_user, "latest", created_at=now + timedelta(seconds=5)
        )

        item = ConversationService(db_session).list_conversations(test_user).conversations[0]

        assert item.last_message is not None
        assert item.last_message.content == "latest"
        assert item.last_message.sender_name == "Other User"
        assert item.last_message_text == "latest"

    def test_should_use_placeholder_without_messages(self, db_session, test_user):
        create_conversation_factory(db_session, [test_user])

        item = ConversationService(db_session).list_conversations(test_user).conversations[0]

        assert item.last_message is None
        assert item.last_message_text == NO_MESSAGES_PREVIEW

    def test_should_filter_by_name_or_last_message(self, db_session, test_user):
        create_conversation_factory(db_session, [test_user], name="Design Team")
        other = create_conversation_factory(db_session, [test_user], name="Random")
        create_message_factory(db_session, other, test_user, "lunch at noon?")

        service = ConversationService(db_session)

        assert [c.name for c in service.list_conversations(test_user, "design").conversations] == [
            "Design Team"
        ]
        assert [c.name for c in service.list_conversations(test_user, "LUNCH").conversations] == [
            "Random"
        ]
        assert service.list_conversations(test_user, "nothing here").total == 0


class TestSeeding:
    def test_should_seed_configured_conversations_for_new_user(
        self, db_session, test_user, monkeypatch
    ):
        fixtures = [{"name": "General", "kind": "group"}, {"name": "Notes"}, {"kind": "group"}]
        monkeypatch.setattr(settings, "DEMO_CONVERSATIONS", json.dumps(fixtures))

        result = ConversationService(db_session).list_conversations(test_user)

        assert [(c.name, c.kind) for c in result.conversations] == [
            ("General", "group"),
            ("Notes", "individual"),
        ]

    def test_should_not_seed_when_list_is_empty(self, db_session, test_user, monkeypatch):
        monkeypatch.setattr(settings, "DEMO_CONVERSATIONS", "[]")

        assert ConversationService(db_session).list_conversations(test_user).total == 0

    def test_should_not_seed_when_disabled(self, db_session, test_user, monkeypatch):
        monkeypatch.setattr(settings, "DEMO_CONVERSATIONS", '[{"name": "General"}]')

        result = ConversationService(db_session).list_conversations(
            test_user, seed_when_empty=False
        )

        assert result.total == 0

    def test_should_ignore_malformed_setting(self, db_session, test_user, monkeypatch):
        monkeypatch.setattr(settings, "DEMO_CONVERSATIONS", "not json")

        assert ConversationService(db_session).list_conversations(test_user).total == 0


class TestCreateConversation:
    def test_should_add_creator_and_participants(self, db_session, test_user, other_user):
        service = ConversationService(db_session)
        data = ConversationCreate(name="  Pair  ", participant_ids=[other_user.id, test_user.id])

        item = service.create_conversation(test_user, data)

        assert item.name == "Pair"
        assert service.is_participant(item.id, test_user.id)
        assert service.is_participant(item.id, other_user.id)

    def test_should_reject_unknown_participant(self, db_session, test_user):
        data = ConversationCreate(name="Ghost", participant_ids=[uuid.uuid4()])

        with pytest.raises(NotFoundError):
            ConversationService(db_session).create_conversation(test_user, data)


class TestMembership:
    def test_should_raise_not_found_for_unknown_conversation(self, db_session, test_user):
        with pytest.raises(NotFoundError):
            ConversationService(db_session).require_participant(uuid.uuid4(), test_user.id)

    def test_should_raise_forbidden_for_non_participant(self, db_session, test_user):
        outsider = create_user_factory(db_session)
        conversation = create_conversation_factory(db_session, [test_user])

        with pytest.raises(ForbiddenError):
            ConversationService(db_session).require_participant(conversation.id, outsider.id)


class TestMatchesSearch:
    def test_should_match_everything_without_query(self, db_session, test_user):
        create_conversation_factory(db_session, [test_user], name="Anything")
        item = ConversationService(db_session).list_conversations(test_user).conversations[0]

        assert matches_search(item, None)
        assert matches_search(item, "")
        assert matches_search(item, "  any ")
