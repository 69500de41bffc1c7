"""Bare HTML for the three views. Layout and styling are deliberately absent."""

from html import escape
from uuid import UUID

from inbox.auth.session import AuthSession
from inbox.messaging.schemas.conversation import ConversationListItem
from inbox.messaging.schemas.message import MessageRecord


def _page(title: str, body: str) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
</head>
<body>
{body}
</body>
</html>"""


def render_login(notice: str | None = None, mode: str = "signin", email: str = "") -> str:
    is_signup = mode == "signup"
    heading = "Create Account" if is_signup else "Welcome Back"
    subtitle = "Sign up to start chatting" if is_signup else "Sign in to your account"
    submit = "Sign Up" if is_signup else "Sign In"
    other_mode = "signin" if is_signup else "signup"
    toggle = "Already have an account? Sign in" if is_signup else "Don't have an account? Sign up"
    notice_html = f'<p class="notice" role="alert">{escape(notice)}</p>' if notice else ""

    body = f"""\
<main id="login">
  <h1>{heading}</h1>
  <p>{subtitle}</p>
  <form method="post" action="/">
    <input type="hidden" name="mode" value="{mode}">
    <input type="email" name="email" placeholder="Email" value="{escape(email)}" required>
    <input type="password" name="password" placeholder="Password" required>
    {notice_html}
    <button type="submit">{submit}</button>
  </form>
  <a href="/?mode={other_mode}">{toggle}</a>
</main>"""
    return _page(heading, body)


def _conversation_link(item: ConversationListItem, selected_id: UUID | None, q: str) -> str:
    marker = ' aria-current="true"' if item.id == selected_id else ""
    group = " (group)" if item.kind == "group" else ""
    query = f"&q={escape(q)}" if q else ""
    return (
        f'<li{marker}><a href="/chat?chat={item.id}{query}">{escape(item.name)}{group}</a>'
        f"<small>{escape(item.last_message_text)}</small></li>"
    )


def _message_item(message: MessageRecord, session: AuthSession) -> str:
    own = "own" if message.sender_id == session.user_id else "other"
    time = message.created_at.strftime("%H:%M")
    return (
        f'<li class="{own}" data-id="{message.id}" data-type="{message.message_type}">'
        f"<strong>{escape(message.sender_name)}</strong> {escape(message.content)} "
        f"<time>{time}</time></li>"
    )


def render_chat(
    session: AuthSession,
    conversations: list[ConversationListItem],
    selected: ConversationListItem | None,
    messages: list[MessageRecord],
    q: str = "",
) -> str:
    selected_id = selected.id if selected else None
    items = "\n".join(_conversation_link(c, selected_id, q) for c in conversations)

    if selected is None:
        main = '<section id="conversation"><p>Select a chat to start messaging</p></section>'
    else:
        kind = "Group chat" if selected.kind == "group" else "Individual chat"
        rendered = "\n".join(_message_item(m, session) for m in messages)
        main = f"""\
<section id="conversation" data-id="{selected.id}">
  <h2>{escape(selected.name)}</h2>
  <p>{kind}</p>
  <ol id="messages">
{rendered}
  </ol>
  <form method="post" action="/chat/{selected.id}/messages">
    <input type="text" name="content" placeholder="Type a message..." required>
    <button type="submit">Send</button>
  </form>
</section>"""

    body = f"""\
<header>
  <span>{escape(session.display_name)}</span>
  <form method="post" action="/logout"><button type="submit">Sign out</button></form>
</header>
<nav>
  <form method="get" action="/chat">
    <input type="search" name="q" placeholder="Search chats..." value="{escape(q)}">
  </form>
  <ul id="conversations">
{items}
  </ul>
</nav>
{main}"""
    return _page("Chats", body)


def render_auth_error(message: str) -> str:
    body = f"""\
<main id="auth-error">
  <h1>Authentication Error</h1>
  <p>{escape(message)}</p>
  <a href="/">Back to Login</a>
</main>"""
    return _page("Authentication Error", body)
