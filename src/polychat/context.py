"""Read-only chat context: resolves provider, model and sampling parameters.

The conversation store is external. :class:`Conversation` and
:class:`ChatTurn` describe the shape this package reads from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from polychat.config import ChatConfig
from polychat.providers.descriptor import (
    AuthScheme,
    ModelSpec,
    ProviderDescriptor,
)

_logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


@dataclass
class ChatTurn:
    """A completed prompt/reply pair from conversation history.

    ``structured_prompts`` holds the prompt as a list of
    ``{"role": ..., "content": [content blocks]}`` dicts when the turn was
    produced by a tool-use round; it takes precedence over ``prompt``.
    """

    id: str
    prompt: str = ""
    reply: str = ""
    structured_prompts: list[dict[str, Any]] | None = None


@dataclass
class Conversation:
    id: str = ""
    provider: str = ""
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    system_message: str | None = None
    max_ctx_messages: int | None = None
    stream: bool = True
    tools_enabled: bool = True
    turns: list[ChatTurn] = field(default_factory=list)


@dataclass(frozen=True)
class Credentials:
    api_key: str = ""
    session_token: str = ""


class ChatContext:
    """Facade over a :class:`Conversation` and :class:`ChatConfig`.

    Every accessor always resolves to a usable value: an unknown provider
    falls back to the configured default, an unknown model to the
    provider's default model, out-of-range parameters to range defaults.
    """

    def __init__(
        self,
        conversation: Conversation | None = None,
        config: ChatConfig | None = None,
    ) -> None:
        self.conversation = conversation or Conversation()
        self.config = config or ChatConfig()
        self._provider = self.config.resolve_provider(
            self.conversation.provider or None
        )

    @property
    def chat_id(self) -> str:
        return self.conversation.id

    @property
    def provider(self) -> ProviderDescriptor:
        return self._provider

    @property
    def model(self) -> ModelSpec:
        provider = self._provider
        model = provider.get_model(self.conversation.model)
        if model is not None:
            return model
        if self.conversation.model and provider.model_customizable:
            # Custom model names inherit the default model's capabilities.
            base = provider.get_model(
                self.config.settings_for(provider.name).default_model
            ) or provider.default_model()
            _logger.debug(
                "Model %r not in catalog for %s; using capabilities of %s",
                self.conversation.model, provider.name, base.name,
            )
            return ModelSpec(
                name=self.conversation.model,
                context_window=base.context_window,
                max_tokens=base.max_tokens,
                default_max_tokens=base.default_max_tokens,
                tools=base.tools,
                json_mode=base.json_mode,
                audio=base.audio,
                vision=base.vision,
                no_streaming=base.no_streaming,
            )
        configured = provider.get_model(
            self.config.settings_for(provider.name).default_model
        )
        return configured or provider.default_model()

    @property
    def temperature(self) -> float:
        value = self.conversation.temperature
        rng = self._provider.temperature
        if rng.contains(value):
            return float(value)  # type: ignore[arg-type]
        return rng.default

    @property
    def max_tokens(self) -> int:
        model = self.model
        value = self.conversation.max_tokens
        if value is not None and 0 < value <= model.max_tokens:
            return value
        return model.default_max_tokens or model.max_tokens or DEFAULT_MAX_TOKENS

    @property
    def system_message(self) -> str | None:
        msg = self.conversation.system_message
        if msg is None or not msg.strip():
            return None
        return msg

    @property
    def max_ctx_messages(self) -> int:
        value = self.conversation.max_ctx_messages
        if value is None:
            return self.config.max_ctx_messages
        return max(0, value)

    def ctx_messages(self, msg_id: str | None = None) -> list[ChatTurn]:
        """Prior turns to replay as history, oldest first."""
        limit = self.max_ctx_messages
        if limit <= 0:
            return []
        turns = list(self.conversation.turns)
        if msg_id:
            for i, turn in enumerate(turns):
                if turn.id == msg_id:
                    turns = turns[:i]
                    break
        turns = [t for t in turns if t.prompt and t.reply]
        return turns[-limit:]

    @property
    def is_stream(self) -> bool:
        if self.model.no_streaming:
            return False
        return self.conversation.stream

    @property
    def tools_enabled(self) -> bool:
        return self.model.tools and self.conversation.tools_enabled

    def credentials(self) -> Credentials:
        settings = self.config.settings_for(self._provider.name)
        return Credentials(
            api_key=settings.resolve_api_key(),
            session_token=settings.session_token.strip(),
        )

    @property
    def requires_key(self) -> bool:
        return self._provider.auth not in (AuthScheme.NONE, AuthScheme.SESSION)
