"""Conversation log and outbound message window.

The full log is kept for display; only the most recent ``window`` turns
are sent upstream, always behind one fixed system message.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping

from singaseong_chat.errors import ValidationError
from singaseong_chat.types import ChatMessage, Role

_logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 6


def coerce_message(raw: ChatMessage | Mapping[str, Any] | str) -> ChatMessage:
    """Accept the loose history shapes callers tend to pass around."""
    if isinstance(raw, ChatMessage):
        return raw
    if isinstance(raw, str):
        return ChatMessage(Role.USER, raw)
    role = raw.get("role") or Role.USER.value
    content = raw.get("content") or raw.get("prompt") or ""
    try:
        return ChatMessage(Role(role), str(content))
    except ValueError as e:
        raise ValidationError(f"Unknown message role: {role!r}") from e


def build_messages(
    prompt: str,
    history: Iterable[ChatMessage | Mapping[str, Any] | str],
    system_prompt: str,
    window: int = DEFAULT_WINDOW,
) -> list[dict[str, str]]:
    """Assemble the ``messages`` array for one request.

    System seed first, then the last *window* prior turns in their original
    order, then the new user prompt.
    """
    prior = [coerce_message(m) for m in history]
    # System turns from the caller are replaced by the fixed seed.
    prior = [m for m in prior if m.role is not Role.SYSTEM]
    recent = prior[-window:] if window > 0 else []
    if len(prior) > len(recent):
        _logger.debug("Trimmed history from %d to %d turns", len(prior), len(recent))

    messages = [ChatMessage(Role.SYSTEM, system_prompt).to_dict()]
    messages.extend(m.to_dict() for m in recent)
    messages.append(ChatMessage(Role.USER, prompt).to_dict())
    return messages


class ConversationHistory:
    """Ordered, append-only log of one chat session."""

    def __init__(self, messages: Iterable[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = list(messages or [])

    def append(self, role: Role | str, content: str) -> ChatMessage:
        try:
            message = ChatMessage(Role(role), content)
        except ValueError as e:
            raise ValidationError(f"Unknown message role: {role!r}") from e
        self._messages.append(message)
        return message

    def record_exchange(self, prompt: str, reply: str) -> None:
        """Log a completed user/assistant round trip."""
        self.append(Role.USER, prompt)
        self.append(Role.ASSISTANT, reply)

    def window(self, size: int = DEFAULT_WINDOW) -> list[ChatMessage]:
        if size <= 0:
            return []
        return self._messages[-size:]

    def clear(self) -> None:
        self._messages.clear()

    @property
    def messages(self) -> list[ChatMessage]:
        """Return a copy of the full log."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))
