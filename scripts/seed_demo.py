"""
Demo Data Seeder

Seeds a running inbox service through its HTTP API: two users, one
conversation between them and a few messages. The service must run with
EMAIL_CONFIRMATION_REQUIRED=false so the users can sign in right away.
Idempotent for users; each run adds a new conversation.

Usage:
    python scripts/seed_demo.py
"""

import asyncio
import os
import sys
import uuid

from inbox.client import InboxClient, InboxClientError
from inbox.core.constants import USER_ALREADY_REGISTERED_MESSAGE

BASE_URL = os.environ.get("DEMO_BASE_URL", "http://localhost:8000")

USERS = [
    (os.environ.get("DEMO_ALICE_EMAIL", "alice@example.com"), "Alice"),
    (os.environ.get("DEMO_BOB_EMAIL", "bob@example.com"), "Bob"),
]
PASSWORD = os.environ.get("DEMO_PASSWORD", "demo-password")

MESSAGES = [
    (0, "Hey Bob, did the deploy go out?"),
    (1, "Yes, about ten minutes ago."),
    (0, "Great, thanks!"),
]


async def sign_up_if_not_exists(email: str, name: str) -> bool:
    async with InboxClient(BASE_URL) as client:
        try:
            await client.sign_up(email, PASSWORD, full_name=name)
        except InboxClientError as e:
            if e.message == USER_ALREADY_REGISTERED_MESSAGE:
                print(f"  SKIP: User {email} already exists")
                return True
            print(f"  FAIL: Could not sign up {email}: {e.message}")
            return False
    print(f"  OK: Signed up {email}")
    return True


async def signed_in_client(email: str) -> InboxClient | None:
    client = InboxClient(BASE_URL)
    error = await client.sign_in(email, PASSWORD)
    if error:
        print(f"  FAIL: Sign-in failed for {email}: {error}")
        await client.aclose()
        return None
    print(f"  OK: Signed in as {email}")
    return client


async def main() -> int:
    print("Users")
    for email, name in USERS:
        if not await sign_up_if_not_exists(email, name):
            return 1

    clients = [await signed_in_client(email) for email, _ in USERS]
    if any(c is None or c.session is None for c in clients):
        return 1

    try:
        alice, bob = clients
        assert alice is not None and bob is not None and bob.session is not None

        print("Conversation")
        try:
            conversation = await alice.create_conversation(
                "Alice & Bob", participant_ids=[uuid.UUID(bob.session.user_id)]
            )
        except InboxClientError as e:
            print(f"  FAIL: Could not create conversation: {e.message}")
            return 1
        conversation_id = conversation.id
        print(f"  OK: Created conversation (id={conversation_id})")

        print("Messages")
        for client in clients:
            assert client is not None
            await client.select_conversation(conversation_id)
        for sender, content in MESSAGES:
            client = clients[sender]
            assert client is not None
            message = await client.send_message(content)
            print(f"  {'OK' if message.status == 'confirmed' else 'FAIL'}: {content}")
    finally:
        for client in clients:
            if client is not None:
                await client.aclose()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
