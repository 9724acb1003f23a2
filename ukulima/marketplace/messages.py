"""Buyer-seller messaging."""
from ukulima.core.constants import NS_CONVERSATIONS, NS_MESSAGES
from ukulima.offline.actions import ActionKind, SendMessage

ALL_CONVERSATIONS_KEY = "all"


class MessagesManager:
    """Conversations and per-user message threads.

    Attributes:
        manager: Offline manager sends and reads go through
        conversations: Last loaded conversation list
        messages: Threads keyed by the other user's id
    """

    def __init__(self, manager):
        self.manager = manager
        self.conversations: list[dict] = []
        self.messages: dict[str, list[dict]] = {}
        manager.register_collaborator("messages", self.load_conversations,
                                      kinds=[ActionKind.SEND_MESSAGE])

    async def load_conversations(self) -> list[dict]:
        conversations, _ = await self.manager.read_through(
            NS_CONVERSATIONS, ALL_CONVERSATIONS_KEY, self.manager.remote.list_conversations)
        self.conversations = list(conversations or [])
        return self.conversations

    @property
    def unread_count(self) -> int:
        return sum(c.get("unreadCount", 0) for c in self.conversations)

    async def load_messages(self, user_id: str) -> list[dict]:
        messages, _ = await self.manager.read_through(
            NS_MESSAGES, user_id, lambda: self.manager.remote.list_messages(user_id))
        self.messages[user_id] = list(messages or [])
        return self.messages[user_id]

    async def send_message(self, receiver: str, content: str) -> dict:
        """Append the message locally, then send or queue it."""
        content = content.strip()
        if not content or not receiver:
            return {"status": "ignored"}

        local = {"receiver": receiver, "content": content, "messageType": "text", "pending": True}
        thread = self.messages.setdefault(receiver, [])
        thread.append(local)

        outcome = await self.manager.submit(SendMessage(receiver=receiver, content=content))
        if outcome["status"] == "sent":
            thread[thread.index(local)] = outcome["result"]
        elif outcome["status"] == "rejected":
            thread.remove(local)
        return outcome
