from inbox.client.client import InboxClient, InboxClientError
from inbox.client.state import InboxState, LocalMessage

__all__ = ["InboxClient", "InboxClientError", "InboxState", "LocalMessage"]
