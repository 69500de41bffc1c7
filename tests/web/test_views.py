import pytest

from inbox.core.config import settings
from inbox.core.constants import (
    AUTH_ERROR_FALLBACK_MESSAGE,
    AUTH_ERROR_MESSAGES,
    CONFIRMATION_PENDING_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    USER_ALREADY_REGISTERED_MESSAGE,
)
from inbox.messaging.models.message import Message
from tests.utils.factories import (
    create_conversation_factory,
    create_message_factory,
    create_user_factory,
)


class TestSessionGate:
    @pytest.mark.asyncio
    async def test_should_redirect_signed_out_visitor_to_login(self, test_client):
        response = await test_client.get("/chat")

        assert response.status_code == 307
        assert response.headers["location"] == "/"

    @pytest.mark.asyncio
    async def test_should_redirect_signed_in_visitor_to_chat(self, test_client, test_user_token):
        test_client.cookies.set("access_token", test_user_token)

        response = await test_client.get("/")

        assert response.status_code == 307
        assert response.headers["location"] == "/chat"

    @pytest.mark.asyncio
    async def test_should_treat_invalid_token_as_signed_out(self, test_client):
        test_client.cookies.set("access_token", "garbage")

        response = await test_client.get("/")

        assert response.status_code == 200
        assert "Welcome Back" in response.text


class TestLoginView:
    @pytest.mark.asyncio
    async def test_should_render_sign_in_form(self, test_client):
        response = await test_client.get("/")

        assert response.status_code == 200
        assert "Welcome Back" in response.text
        assert 'name="mode" value="signin"' in response.text

    @pytest.mark.asyncio
    async def test_should_render_sign_up_form(self, test_client):
        response = await test_client.get("/", params={"mode": "signup"})

        assert "Create Account" in response.text

    @pytest.mark.asyncio
    async def test_should_sign_in_and_redirect_to_chat(self, test_client, test_user):
        response = await test_client.post(
            "/", data={"email": test_user.email, "password": "testpass123", "mode": "signin"}
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/chat"
        assert "access_token" in response.cookies

    @pytest.mark.asyncio
    async def test_should_show_literal_error_and_stay_on_login(self, test_client, test_user):
        response = await test_client.post(
            "/", data={"email": test_user.email, "password": "nope", "mode": "signin"}
        )

        assert response.status_code == 400
        assert INVALID_CREDENTIALS_MESSAGE in response.text
        assert "Welcome Back" in response.text
        assert "access_token" not in response.cookies

    @pytest.mark.asyncio
    async def test_should_ask_for_confirmation_after_sign_up(self, test_client, email_outbox):
        response = await test_client.post(
            "/", data={"email": "fresh@example.com", "password": "secret123", "mode": "signup"}
        )

        assert response.status_code == 200
        assert "Check your email for the confirmation link!" in response.text
        assert CONFIRMATION_PENDING_MESSAGE.split("!")[0] in response.text
        assert len(email_outbox.sent) == 1

    @pytest.mark.asyncio
    async def test_should_show_duplicate_sign_up_error(self, test_client, test_user):
        response = await test_client.post(
            "/", data={"email": test_user.email, "password": "secret123", "mode": "signup"}
        )

        assert response.status_code == 400
        assert USER_ALREADY_REGISTERED_MESSAGE in response.text
        assert "Create Account" in response.text

    @pytest.mark.asyncio
    async def test_should_sign_in_after_sign_up_without_confirmation(
        self, test_client, monkeypatch
    ):
        monkeypatch.setattr(settings, "EMAIL_CONFIRMATION_REQUIRED", False)

        response = await test_client.post(
            "/", data={"email": "quick@example.com", "password": "secret123", "mode": "signup"}
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/chat"


class TestConfirmationCallback:
    @pytest.mark.asyncio
    async def test_should_confirm_and_sign_in(self, test_client, email_outbox):
        await test_client.post(
            "/", data={"email": "confirm@example.com", "password": "secret123", "mode": "signup"}
        )
        token = email_outbox.confirmation_token("confirm@example.com")

        response = await test_client.get("/auth/callback", params={"token": token})

        assert response.status_code == 303
        assert response.headers["location"] == "/chat"
        assert "access_token" in response.cookies

        again = await test_client.get("/auth/callback", params={"token": token})
        assert again.headers["location"] == "/auth/error?error=auth_error"

    @pytest.mark.asyncio
    async def test_should_report_invalid_token(self, test_client):
        response = await test_client.get("/auth/callback", params={"token": "bogus"})

        assert response.status_code == 303
        assert response.headers["location"] == "/auth/error?error=auth_error"

    @pytest.mark.asyncio
    async def test_should_pass_access_denied_through(self, test_client):
        response = await test_client.get("/auth/callback", params={"error": "access_denied"})

        assert response.headers["location"] == "/auth/error?error=access_denied"


class TestAuthErrorView:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["auth_error", "access_denied"])
    async def test_should_show_known_messages(self, test_client, code):
        response = await test_client.get("/auth/error", params={"error": code})

        assert response.status_code == 200
        assert "Authentication Error" in response.text
        assert AUTH_ERROR_MESSAGES[code] in response.text
        assert 'href="/"' in response.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"error": "something_else"}])
    async def test_should_fall_back_for_unknown_codes(self, test_client, params):
        response = await test_client.get("/auth/error", params=params)

        assert AUTH_ERROR_FALLBACK_MESSAGE in response.text


class TestChatView:
    @pytest.fixture
    def signed_in(self, test_client, test_user_token):
        test_client.cookies.set("access_token", test_user_token)
        return test_client

    @pytest.mark.asyncio
    async def test_should_select_first_conversation_by_default(
        self, signed_in, db_session, test_user, other_user
    ):
        first = create_conversation_factory(db_session, [test_user, other_user], name="Alpha")
        create_conversation_factory(db_session, [test_user], name="Beta")
        create_message_factory(db_session, first, other_user, "hello from alpha")

        response = await signed_in.get("/chat")

        assert response.status_code == 200
        assert f'data-id="{first.id}"' in response.text
        assert "hello from alpha" in response.text
        assert "Test User" in response.text

    @pytest.mark.asyncio
    async def test_should_open_requested_conversation(self, signed_in, db_session, test_user):
        create_conversation_factory(db_session, [test_user], name="Alpha")
        beta = create_conversation_factory(db_session, [test_user], name="Beta")

        response = await signed_in.get("/chat", params={"chat": str(beta.id)})

        assert f'<section id="conversation" data-id="{beta.id}">' in response.text

    @pytest.mark.asyncio
    async def test_should_filter_sidebar_with_query(self, signed_in, db_session, test_user):
        create_conversation_factory(db_session, [test_user], name="Alpha")
        create_conversation_factory(db_session, [test_user], name="Beta")

        response = await signed_in.get("/chat", params={"q": "bet"})

        sidebar = response.text.split('<ul id="conversations">')[1].split("</ul>")[0]
        assert "Beta" in sidebar
        assert "Alpha" not in sidebar

    @pytest.mark.asyncio
    async def test_should_show_empty_state(self, signed_in):
        response = await signed_in.get("/chat")

        assert "Select a chat to start messaging" in response.text

    @pytest.mark.asyncio
    async def test_should_escape_message_content(self, signed_in, db_session, test_user):
        conversation = create_conversation_factory(db_session, [test_user])
        create_message_factory(db_session, conversation, test_user, "<script>x</script>")

        response = await signed_in.get("/chat")

        assert "<script>x</script>" not in response.text
        assert "&lt;script&gt;" in response.text

    @pytest.mark.asyncio
    async def test_should_post_message_and_redirect_back(
        self, signed_in, db_session, test_user
    ):
        conversation = create_conversation_factory(db_session, [test_user])

        response = await signed_in.post(
            f"/chat/{conversation.id}/messages", data={"content": "  via form  "}
        )

        assert response.status_code == 303
        assert response.headers["location"] == f"/chat?chat={conversation.id}"
        stored = db_session.query(Message).filter(Message.conversation_id == conversation.id)
        assert [m.content for m in stored] == ["via form"]

    @pytest.mark.asyncio
    async def test_should_ignore_post_to_foreign_conversation(self, signed_in, db_session):
        stranger = create_user_factory(db_session)
        conversation = create_conversation_factory(db_session, [stranger])

        response = await signed_in.post(
            f"/chat/{conversation.id}/messages", data={"content": "sneaky"}
        )

        assert response.status_code == 303
        assert db_session.query(Message).count() == 0

    @pytest.mark.asyncio
    async def test_should_sign_out_and_return_to_login(self, signed_in, test_refresh_token):
        signed_in.cookies.set("refresh_token", test_refresh_token)

        response = await signed_in.post("/logout")

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        set_cookie = response.headers.get("set-cookie", "")
        assert "access_token=" in set_cookie
        assert "Max-Age=0" in set_cookie

    @pytest.mark.asyncio
    async def test_should_clear_cookies_of_deactivated_user(
        self, signed_in, db_session, test_user
    ):
        test_user.is_active = False
        db_session.flush()

        response = await signed_in.get("/chat")

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        set_cookie = response.headers.get("set-cookie", "")
        assert "access_token=" in set_cookie
        assert "Max-Age=0" in set_cookie

        signed_in.cookies.clear()
        login = await signed_in.get("/")
        assert login.status_code == 200
        assert "Welcome Back" in login.text

    @pytest.mark.asyncio
    async def test_should_clear_cookies_when_posting_as_deactivated_user(
        self, signed_in, db_session, test_user
    ):
        conversation = create_conversation_factory(db_session, [test_user])
        test_user.is_active = False
        db_session.flush()

        response = await signed_in.post(
            f"/chat/{conversation.id}/messages", data={"content": "hello"}
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert "Max-Age=0" in response.headers.get("set-cookie", "")
        assert db_session.query(Message).count() == 0
