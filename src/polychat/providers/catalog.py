"""Built-in provider catalog.

Only the data the chat core needs: endpoints, auth, parameter ranges and a
short model list per provider with capability flags. Pricing is not tracked.
"""

from __future__ import annotations

from polychat.providers.descriptor import (
    DEVELOPER_ROLE,
    FILTER_PARTS,
    LOWERCASE_MODEL,
    MAX_COMPLETION_TOKENS,
    STREAM_USAGE,
    TOOL_BRIDGE,
    AuthScheme,
    ModelSpec,
    ParamRange,
    ProviderDescriptor,
    VisionSpec,
    WireFormat,
)

_VISION = VisionSpec(enabled=True)
_VISION_B64_ONLY = VisionSpec(enabled=True, allow_url=False)


OPENAI = ProviderDescriptor(
    name="OpenAI",
    api_base="https://api.openai.com/v1",
    wire=WireFormat.OPENAI,
    temperature=ParamRange(0, 2, 1),
    quirks=frozenset({DEVELOPER_ROLE, MAX_COMPLETION_TOKENS, STREAM_USAGE}),
    models=(
        ModelSpec("gpt-4o", 128000, 16384, 4096, is_default=True, tools=True,
                  json_mode=True, vision=_VISION),
        ModelSpec("gpt-4o-mini", 128000, 16384, 4096, tools=True,
                  json_mode=True, vision=_VISION),
        ModelSpec("gpt-4.1", 1047576, 32768, 4096, tools=True,
                  json_mode=True, vision=_VISION),
        ModelSpec("o3-mini", 200000, 100000, 4096, tools=True, json_mode=True),
        ModelSpec("o1", 200000, 100000, 4096, vision=_VISION),
    ),
)

AZURE = ProviderDescriptor(
    name="Azure",
    api_base="",
    wire=WireFormat.OPENAI,
    auth=AuthScheme.API_KEY_HEADER,
    chat_path="/openai/deployments/{deployment}/chat/completions",
    api_version="2024-10-21",
    quirks=frozenset({STREAM_USAGE}),
    models=(
        ModelSpec("gpt-4o", 128000, 16384, 4096, is_default=True, tools=True,
                  json_mode=True, vision=_VISION),
        ModelSpec("gpt-4o-mini", 128000, 16384, 4096, tools=True,
                  json_mode=True, vision=_VISION),
    ),
)

ANTHROPIC = ProviderDescriptor(
    name="Anthropic",
    api_base="https://api.anthropic.com/v1",
    wire=WireFormat.ANTHROPIC,
    auth=AuthScheme.X_API_KEY,
    chat_path="/messages",
    temperature=ParamRange(0, 1, 1),
    models=(
        ModelSpec("claude-sonnet-4-5", 200000, 64000, 8192, is_default=True,
                  tools=True, vision=_VISION),
        ModelSpec("claude-opus-4-1", 200000, 32000, 8192, tools=True,
                  vision=_VISION),
        ModelSpec("claude-3-5-haiku-latest", 200000, 8192, 4096, tools=True),
    ),
)

GOOGLE = ProviderDescriptor(
    name="Google",
    api_base="https://generativelanguage.googleapis.com",
    wire=WireFormat.GOOGLE,
    auth=AuthScheme.QUERY_KEY,
    chat_path="/v1beta/models/{model}:{method}",
    temperature=ParamRange(0, 2, 1),
    models=(
        ModelSpec("gemini-2.5-flash", 1048576, 65536, 8192, is_default=True,
                  tools=True, json_mode=True, audio=True,
                  vision=_VISION_B64_ONLY),
        ModelSpec("gemini-2.5-pro", 1048576, 65536, 8192, tools=True,
                  json_mode=True, audio=True, vision=_VISION_B64_ONLY),
        ModelSpec("gemini-2.0-flash-lite", 1048576, 8192, 4096, tools=True),
    ),
)

BAIDU = ProviderDescriptor(
    name="Baidu",
    api_base="https://qianfan.baidubce.com",
    wire=WireFormat.OPENAI,
    chat_path="/v2/chat/completions",
    temperature=ParamRange(0, 1, 0.8),
    quirks=frozenset({LOWERCASE_MODEL}),
    models=(
        ModelSpec("ERNIE-4.0-8K", 8192, 2048, 2048, is_default=True, tools=True),
        ModelSpec("ERNIE-Speed-128K", 131072, 4096, 2048),
    ),
)

DEEPSEEK = ProviderDescriptor(
    name="DeepSeek",
    api_base="https://api.deepseek.com",
    wire=WireFormat.OPENAI,
    quirks=frozenset({STREAM_USAGE}),
    models=(
        ModelSpec("deepseek-chat", 65536, 8192, 4096, is_default=True,
                  tools=True, json_mode=True),
        ModelSpec("deepseek-reasoner", 65536, 65536, 8192),
    ),
)

DOUBAO = ProviderDescriptor(
    name="Doubao",
    api_base="https://ark.cn-beijing.volces.com/api/v3",
    wire=WireFormat.OPENAI,
    models=(
        ModelSpec("Doubao-pro-32k", 32768, 4096, 4096, is_default=True,
                  tools=True),
    ),
)

GROK = ProviderDescriptor(
    name="Grok",
    api_base="https://api.x.ai/v1",
    wire=WireFormat.OPENAI,
    temperature=ParamRange(0, 2, 0.9),
    models=(
        ModelSpec("grok-4", 256000, 256000, 8000, tools=True, json_mode=True),
        ModelSpec("grok-3-fast", 131072, 131072, 4000, is_default=True,
                  tools=True, json_mode=True),
        ModelSpec("grok-3-mini", 131072, 131072, 4000, tools=True),
    ),
)

MISTRAL = ProviderDescriptor(
    name="Mistral",
    api_base="https://api.mistral.ai/v1",
    wire=WireFormat.OPENAI,
    temperature=ParamRange(0, 1, 0.7),
    quirks=frozenset({TOOL_BRIDGE, FILTER_PARTS}),
    models=(
        ModelSpec("mistral-large-latest", 131072, 131072, 4096,
                  is_default=True, tools=True, json_mode=True),
        ModelSpec("pixtral-large-latest", 131072, 131072, 4096, tools=True,
                  vision=_VISION),
    ),
)

MOONSHOT = ProviderDescriptor(
    name="Moonshot",
    api_base="https://api.moonshot.cn/v1",
    wire=WireFormat.OPENAI,
    temperature=ParamRange(0, 1, 0.3),
    quirks=frozenset({FILTER_PARTS}),
    models=(
        ModelSpec("moonshot-v1-8k", 8192, 8192, 2048, is_default=True,
                  tools=True),
        ModelSpec("moonshot-v1-8k-vision-preview", 8192, 8192, 2048,
                  vision=_VISION),
    ),
)

OLLAMA = ProviderDescriptor(
    name="Ollama",
    api_base="http://127.0.0.1:11434",
    wire=WireFormat.OLLAMA,
    auth=AuthScheme.NONE,
    chat_path="/api/chat",
    models=(
        ModelSpec("llama3.2", 131072, 4096, 2048, is_default=True, tools=True),
        ModelSpec("qwen3:8b", 40960, 8192, 4096, tools=True),
        ModelSpec("llava", 4096, 4096, 2048, vision=_VISION_B64_ONLY),
    ),
)

PERPLEXITY = ProviderDescriptor(
    name="Perplexity",
    api_base="https://api.perplexity.ai",
    wire=WireFormat.OPENAI,
    temperature=ParamRange(0, 2, 0.2),
    top_p=ParamRange(0, 1, 0.9),
    models=(
        ModelSpec("sonar", 127072, 8000, 4000, is_default=True),
        ModelSpec("sonar-reasoning-pro", 127072, 8000, 4000),
    ),
)

ZHIPU = ProviderDescriptor(
    name="Zhipu",
    api_base="https://open.bigmodel.cn/api/paas/v4",
    wire=WireFormat.OPENAI,
    models=(
        ModelSpec("GLM-4.5", 128000, 96000, 8000, is_default=True, tools=True,
                  json_mode=True),
        ModelSpec("GLM-4.5-Air", 128000, 96000, 8000, tools=True,
                  json_mode=True),
        ModelSpec("GLM-4V-Plus-0111", 16000, 16000, 4000, json_mode=True,
                  vision=_VISION),
    ),
)

FIRE = ProviderDescriptor(
    name="5ire",
    api_base="https://api.5ire.app",
    wire=WireFormat.OPENAI,
    auth=AuthScheme.SESSION,
    chat_path="/v1/chat/completions",
    model_customizable=False,
    models=(
        ModelSpec("gpt-4o-mini", 128000, 16384, 4096, is_default=True,
                  tools=True, vision=_VISION),
    ),
)


CATALOG: dict[str, ProviderDescriptor] = {
    p.name: p
    for p in (
        OPENAI, AZURE, ANTHROPIC, GOOGLE, BAIDU, DEEPSEEK, DOUBAO, GROK,
        MISTRAL, MOONSHOT, OLLAMA, PERPLEXITY, ZHIPU, FIRE,
    )
}


def get_provider(name: str) -> ProviderDescriptor | None:
    """Look up a provider by name (case-insensitive)."""
    if name in CATALOG:
        return CATALOG[name]
    lowered = name.lower()
    for key, provider in CATALOG.items():
        if key.lower() == lowered:
            return provider
    return None


def list_providers() -> list[ProviderDescriptor]:
    return list(CATALOG.values())
