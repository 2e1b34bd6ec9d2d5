"""Streaming chat client for Ollama-compatible generation endpoints."""

from singaseong_chat.client import ChatClient
from singaseong_chat.config import ClientConfig, load_config
from singaseong_chat.errors import (
    ChatError,
    ChatTimeout,
    ConfigurationError,
    MalformedChunk,
    StreamUnsupported,
    TransportError,
    ValidationError,
)
from singaseong_chat.history import ConversationHistory
from singaseong_chat.types import ChatMessage, ChatRequest, Role, StreamResult

__all__ = [
    "ChatClient",
    "ChatError",
    "ChatMessage",
    "ChatRequest",
    "ChatTimeout",
    "ClientConfig",
    "ConfigurationError",
    "ConversationHistory",
    "MalformedChunk",
    "Role",
    "StreamResult",
    "StreamUnsupported",
    "TransportError",
    "ValidationError",
    "load_config",
]
