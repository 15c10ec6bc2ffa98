"""Static provider and model descriptors.

Descriptors are pure data: a base URL, an auth scheme, parameter ranges, a
model catalog with capability flags, and the wire format the provider speaks.
Vendor quirks that change payload shape are declared as string flags in
``quirks`` so payload builders can stay free of provider-name checks.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any


class WireFormat(enum.Enum):
    """Streaming wire format family. Selects payload builder and reader."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"


class AuthScheme(enum.Enum):
    """How credentials are attached to a request."""

    BEARER = "bearer"            # Authorization: Bearer <key>
    X_API_KEY = "x-api-key"      # Anthropic
    API_KEY_HEADER = "api-key"   # Azure
    QUERY_KEY = "query-key"      # Google ?key=
    SESSION = "session"          # bearer token minted from a user session
    NONE = "none"


# Payload quirks
DEVELOPER_ROLE = "developer_role"
MAX_COMPLETION_TOKENS = "max_completion_tokens"
STREAM_USAGE = "stream_usage"
LOWERCASE_MODEL = "lowercase_model"
TOOL_BRIDGE = "tool_bridge"
FILTER_PARTS = "filter_parts"


@dataclass(frozen=True)
class ParamRange:
    min: float
    max: float
    default: float

    def contains(self, value: float | None) -> bool:
        if value is None:
            return False
        return self.min <= value <= self.max


@dataclass(frozen=True)
class VisionSpec:
    enabled: bool = False
    allow_base64: bool = True
    allow_url: bool = True


@dataclass(frozen=True)
class ModelSpec:
    """One entry of a provider's model catalog."""

    name: str
    context_window: int = 0
    max_tokens: int = 4096
    default_max_tokens: int = 0
    is_default: bool = False
    tools: bool = False
    json_mode: bool = False
    audio: bool = False
    vision: VisionSpec = field(default_factory=VisionSpec)
    no_streaming: bool = False
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def wire_name(self) -> str:
        """Name sent on the wire (``model_id`` extra overrides)."""
        return self.extras.get("model_id") or self.name


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    api_base: str
    wire: WireFormat
    auth: AuthScheme = AuthScheme.BEARER
    chat_path: str = "/chat/completions"
    api_version: str = ""
    temperature: ParamRange = ParamRange(0, 2, 1)
    top_p: ParamRange = ParamRange(0, 1, 1)
    presence_penalty: ParamRange = ParamRange(-2, 2, 0)
    models: tuple[ModelSpec, ...] = ()
    quirks: frozenset[str] = frozenset()
    model_customizable: bool = True

    def has_quirk(self, quirk: str) -> bool:
        return quirk in self.quirks

    def get_model(self, name: str | None) -> ModelSpec | None:
        if not name:
            return None
        for m in self.models:
            if m.name == name:
                return m
        return None

    def default_model(self) -> ModelSpec:
        for m in self.models:
            if m.is_default:
                return m
        if self.models:
            return self.models[0]
        return ModelSpec(name="default")

    def with_overrides(self, api_base: str = "", api_version: str = "") -> ProviderDescriptor:
        changes: dict[str, Any] = {}
        if api_base:
            changes["api_base"] = api_base.strip()
        if api_version:
            changes["api_version"] = api_version.strip()
        return replace(self, **changes) if changes else self
