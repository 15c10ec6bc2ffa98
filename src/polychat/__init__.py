"""polychat - multi-vendor LLM chat core with streaming response normalization."""

from polychat.config import ChatConfig, load_config
from polychat.context import ChatContext, ChatTurn, Conversation, Credentials
from polychat.errors import (
    AuthenticationError,
    CapabilityError,
    ChatError,
    ConfigError,
    ParseError,
    ToolLoopError,
    TransportError,
    UnsupportedContentError,
    VendorError,
)
from polychat.service import ChatService
from polychat.types import (
    AudioPart,
    ImagePart,
    ReadResult,
    RequestMessage,
    TextPart,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

__version__ = "0.3.0"

__all__ = [
    "AudioPart",
    "AuthenticationError",
    "CapabilityError",
    "ChatConfig",
    "ChatContext",
    "ChatError",
    "ChatService",
    "ChatTurn",
    "ConfigError",
    "Conversation",
    "Credentials",
    "ImagePart",
    "ParseError",
    "ReadResult",
    "RequestMessage",
    "TextPart",
    "ToolCall",
    "ToolDescriptor",
    "ToolLoopError",
    "ToolResult",
    "TransportError",
    "UnsupportedContentError",
    "VendorError",
    "load_config",
]
