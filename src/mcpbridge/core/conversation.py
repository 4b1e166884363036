"""In-memory conversation store: one bounded message log per conversation ID."""

import logging
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
)

from mcpbridge.config import settings
from mcpbridge.core.schema import (
    ConversationContext,
    ConversationMessage,
    Role,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Per-agent partition of conversation contexts, keyed by conversation ID.

    Each context keeps at most *max_messages* entries; appending beyond that evicts the oldest
    messages first.  Contexts are created lazily and live until :meth:`clear` is called.
    """

    def __init__(self, max_messages: int | None = None):
        self.max_messages = settings.HISTORY_LIMIT if max_messages is None else max_messages
        self._contexts: Dict[str, ConversationContext] = {}

    def get_or_create(self, conversation_id: str) -> ConversationContext:
        """Return the context for *conversation_id*, creating an empty one on first use."""
        context = self._contexts.get(conversation_id)
        if context is None:
            context = ConversationContext(conversation_id=conversation_id)
            self._contexts[conversation_id] = context
        return context

    def get(self, conversation_id: str) -> Optional[ConversationContext]:
        return self._contexts.get(conversation_id)

    def append(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        tools_used: Iterable[str] = (),
    ) -> ConversationMessage:
        """Append a message and trim the log to the configured bound (FIFO)."""
        context = self.get_or_create(conversation_id)
        message = ConversationMessage(role=role, content=content, tools_used=list(tools_used))
        context.messages.append(message)

        overflow = len(context.messages) - self.max_messages
        if overflow > 0:
            del context.messages[:overflow]
            logger.debug("Evicted %d message(s) from conversation '%s'", overflow, conversation_id)
        return message

    def history(self, conversation_id: str) -> List[ConversationMessage]:
        """Copy of the message log (empty if the conversation is unknown)."""
        context = self._contexts.get(conversation_id)
        return list(context.messages) if context else []

    def clear(self, conversation_id: str) -> bool:
        """Drop a conversation.  Returns False if it did not exist."""
        return self._contexts.pop(conversation_id, None) is not None

    def conversation_ids(self) -> List[str]:
        return list(self._contexts.keys())

    def __len__(self) -> int:
        return len(self._contexts)
