"""Async client for the inbox service.

Talks to the JSON API over ``httpx`` with the cookie session the service
sets, follows the selected conversation over the realtime socket with
``websockets``, and keeps an :class:`InboxState` up to date.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

import httpx
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from inbox.auth.schemas.auth import SessionInfo
from inbox.client.state import InboxState, LocalMessage
from inbox.messaging.schemas.attachment import AttachmentKind, AttachmentResponse
from inbox.messaging.schemas.conversation import (
    ConversationKind,
    ConversationListItem,
    ConversationListResponse,
)
from inbox.messaging.schemas.message import MessageListResponse, MessageRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
ChangeCallback = Callable[[MessageRecord], Awaitable[None] | None]

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class InboxClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def error_message(response: httpx.Response) -> str:
    """The human-readable error the service put in a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or DEFAULT_ERROR_MESSAGE

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail and isinstance(detail[0], dict):
            return str(detail[0].get("msg", DEFAULT_ERROR_MESSAGE))
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return DEFAULT_ERROR_MESSAGE


class InboxClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api/v1",
        http: httpx.AsyncClient | None = None,
        progress_interval: float = 0.1,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.http = http or httpx.AsyncClient(base_url=self.base_url, timeout=10.0)
        self.progress_interval = progress_interval
        self.state = InboxState()
        self.session: SessionInfo | None = None
        self._socket: ClientConnection | None = None

    async def __aenter__(self) -> "InboxClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._socket is not None:
            await self._socket.close()
        await self.http.aclose()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> str:
        """Create an account. Returns the service's message for the user."""
        response = await self.http.post(
            self._api("/auth/signup"),
            json={"email": email, "password": password, "full_name": full_name},
        )
        if response.is_error:
            raise InboxClientError(error_message(response), response.status_code)

        if not response.json().get("confirmation_required", True):
            await self.get_session()
        return str(response.json()["message"])

    async def sign_in(self, email: str, password: str) -> str | None:
        """Sign in. Returns None on success, otherwise the error to show."""
        response = await self.http.post(
            self._api("/auth/login"), json={"email": email, "password": password}
        )
        if response.is_error:
            return error_message(response)
        await self.get_session()
        return None

    async def sign_out(self) -> None:
        try:
            response = await self.http.post(self._api("/auth/logout"))
            if response.is_error:
                logger.warning("Sign-out returned %s", response.status_code)
        finally:
            self.http.cookies.clear()
            self.session = None
            self.state = InboxState()

    async def get_session(self) -> SessionInfo | None:
        response = await self.http.get(self._api("/auth/session"))
        if response.is_error:
            self.session = None
            return None
        payload = response.json().get("session")
        self.session = SessionInfo.model_validate(payload) if payload else None
        return self.session

    # ------------------------------------------------------------------
    # Conversations and messages
    # ------------------------------------------------------------------

    async def load_conversations(self, search: str | None = None) -> ConversationListResponse:
        params = {"search": search} if search else None
        response = await self.http.get(self._api("/conversations"), params=params)
        if response.is_error:
            raise InboxClientError(error_message(response), response.status_code)

        listing = ConversationListResponse.model_validate(response.json())
        self.state.set_conversations(listing.conversations)
        return listing

    async def create_conversation(
        self,
        name: str,
        participant_ids: list[uuid.UUID] | None = None,
        kind: ConversationKind = "individual",
    ) -> ConversationListItem:
        response = await self.http.post(
            self._api("/conversations"),
            json={
                "name": name,
                "kind": kind,
                "participant_ids": [str(p) for p in participant_ids or []],
            },
        )
        if response.is_error:
            raise InboxClientError(error_message(response), response.status_code)

        item = ConversationListItem.model_validate(response.json())
        self.state.set_conversations([*self.state.conversations, item])
        return item

    async def select_conversation(self, conversation_id: uuid.UUID) -> list[LocalMessage]:
        """Open a conversation and load its messages. A failed load shows none."""
        previous = self.state.selected_id
        self.state.select(conversation_id)

        try:
            response = await self.http.get(self._api(f"/conversations/{conversation_id}/messages"))
            response.raise_for_status()
            listing = MessageListResponse.model_validate(response.json())
            self.state.load_messages(listing.messages)
        except httpx.HTTPError:
            logger.exception("Failed to load messages for %s", conversation_id)
            self.state.load_messages([])

        if self._socket is not None and previous != conversation_id:
            if previous is not None:
                await self._send_frame({"type": "unsubscribe", "conversation_id": str(previous)})
            await self._send_frame({"type": "subscribe", "conversation_id": str(conversation_id)})

        return self.state.messages

    async def send_message(self, content: str) -> LocalMessage:
        """Show the message immediately, then store it.

        On failure the optimistic copy stays in the list marked ``failed``.
        """
        content = content.strip()
        if not content:
            raise InboxClientError("Message cannot be empty")
        sender_id, sender_name = self._sender()
        client_id = uuid.uuid4().hex
        optimistic = self.state.add_optimistic(
            content, sender_id, sender_name, client_id=client_id
        )

        try:
            response = await self.http.post(
                self._api(f"/conversations/{optimistic.conversation_id}/messages"),
                json={"content": content, "client_id": client_id},
            )
        except httpx.HTTPError:
            logger.exception("Failed to send message to %s", optimistic.conversation_id)
            return self._failed(optimistic, client_id)

        if response.is_error:
            logger.warning("Message rejected: %s", error_message(response))
            return self._failed(optimistic, client_id)

        return self.state.confirm(client_id, MessageRecord.model_validate(response.json()))

    async def send_attachment(
        self,
        file_name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        kind: AttachmentKind | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AttachmentResponse:
        """Post the attachment placeholder for the selected conversation.

        ``on_progress`` sees 0, then 10..90 while the request is in flight,
        and 100 once the service has stored the message.
        """
        conversation_id = self.state.selected_id
        if conversation_id is None:
            raise InboxClientError("No conversation selected")

        report = on_progress or (lambda _: None)
        report(0)
        ticker = asyncio.create_task(self._simulate_progress(report))
        form: dict[str, Any] = {"client_id": uuid.uuid4().hex}
        if kind is not None:
            form["kind"] = kind

        try:
            response = await self.http.post(
                self._api(f"/conversations/{conversation_id}/attachments"),
                files={"file": (file_name, data, content_type)},
                data=form,
            )
        except httpx.HTTPError as e:
            raise InboxClientError("Error uploading file. Please try again.") from e
        finally:
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)

        if response.is_error:
            raise InboxClientError(error_message(response), response.status_code)

        result = AttachmentResponse.model_validate(response.json())
        self.state.apply_insert(result.message)
        report(100)
        return result

    async def _simulate_progress(self, report: ProgressCallback) -> None:
        progress = 0
        while progress < 90:
            await asyncio.sleep(self.progress_interval)
            progress += 10
            report(progress)

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    async def listen(self, on_change: ChangeCallback | None = None) -> None:
        """Follow the selected conversation until the socket closes.

        INSERT events are merged into the state and then passed to
        ``on_change``. Selecting another conversation while listening moves
        the subscription along.
        """
        async with connect(self._ws_url(), additional_headers=self._cookie_header()) as socket:
            self._socket = socket
            try:
                if self.state.selected_id is not None:
                    await self._send_frame(
                        {"type": "subscribe", "conversation_id": str(self.state.selected_id)}
                    )
                async for raw in socket:
                    record = self.handle_frame(json.loads(raw))
                    if record is not None and on_change is not None:
                        result = on_change(record)
                        if result is not None:
                            await result
            except ConnectionClosed:
                logger.info("Realtime connection closed")
            finally:
                self._socket = None

    def handle_frame(self, frame: dict[str, Any]) -> MessageRecord | None:
        """Apply one server frame. Returns the record when the view changed."""
        frame_type = frame.get("type")
        if frame_type == "error":
            logger.warning("Realtime error: %s", frame.get("message"))
            return None
        if frame_type != "INSERT" or frame.get("table") != "messages":
            return None

        record = MessageRecord.model_validate(frame["record"])
        return record if self.state.apply_insert(record) else None

    async def _send_frame(self, frame: dict[str, Any]) -> None:
        if self._socket is not None:
            await self._socket.send(json.dumps(frame))

    # ------------------------------------------------------------------

    def _api(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    def _ws_url(self) -> str:
        scheme, rest = self.base_url.split("://", 1)
        ws_scheme = "wss" if scheme == "https" else "ws"
        return f"{ws_scheme}://{rest}{self._api('/realtime')}"

    def _cookie_header(self) -> dict[str, str]:
        cookies = "; ".join(f"{c.name}={c.value}" for c in self.http.cookies.jar)
        return {"Cookie": cookies} if cookies else {}

    def _sender(self) -> tuple[uuid.UUID, str]:
        if self.session is None:
            raise InboxClientError("Not signed in", 401)
        return uuid.UUID(self.session.user_id), self.session.display_name

    def _failed(self, optimistic: LocalMessage, client_id: str) -> LocalMessage:
        # None once another conversation was selected mid-send
        return self.state.mark_failed(client_id) or replace(optimistic, status="failed")
