"""Tests for ChatContext resolution rules."""

from polychat.config import ChatConfig, ProviderSettings
from polychat.context import ChatContext, ChatTurn, Conversation


def _ctx(config: ChatConfig | None = None, **kwargs) -> ChatContext:
    return ChatContext(Conversation(**kwargs), config)


class TestProviderAndModel:
    def test_defaults(self):
        ctx = ChatContext()
        assert ctx.provider.name == "OpenAI"
        assert ctx.model.name == "gpt-4o"

    def test_unknown_provider_falls_back_to_configured(self):
        ctx = _ctx(ChatConfig(provider="Anthropic"), provider="Nope")
        assert ctx.provider.name == "Anthropic"

    def test_provider_name_case_insensitive(self):
        assert _ctx(provider="deepseek").provider.name == "DeepSeek"

    def test_catalog_model(self):
        assert _ctx(provider="OpenAI", model="gpt-4o-mini").model.name == "gpt-4o-mini"

    def test_custom_model_inherits_default_capabilities(self):
        model = _ctx(provider="OpenAI", model="gpt-5-preview").model
        assert model.name == "gpt-5-preview"
        assert model.tools
        assert model.vision.enabled
        assert model.max_tokens == 16384

    def test_custom_model_rejected_when_not_customizable(self):
        assert _ctx(provider="5ire", model="anything").model.name == "gpt-4o-mini"

    def test_configured_default_model(self):
        config = ChatConfig(providers={"Grok": ProviderSettings(default_model="grok-4")})
        assert _ctx(config, provider="Grok").model.name == "grok-4"

    def test_api_base_override(self):
        config = ChatConfig(providers={"ollama": ProviderSettings(api_base="http://gpu:11434")})
        assert _ctx(config, provider="Ollama").provider.api_base == "http://gpu:11434"


class TestParameters:
    def test_temperature_in_range(self):
        assert _ctx(provider="OpenAI", temperature=0.2).temperature == 0.2

    def test_temperature_out_of_range_uses_default(self):
        assert _ctx(provider="Anthropic", temperature=1.7).temperature == 1
        assert _ctx(provider="Perplexity", temperature=-1).temperature == 0.2

    def test_temperature_missing(self):
        assert _ctx(provider="Grok").temperature == 0.9

    def test_max_tokens(self):
        assert _ctx(provider="OpenAI", max_tokens=1000).max_tokens == 1000

    def test_max_tokens_over_limit(self):
        assert _ctx(provider="OpenAI", max_tokens=10**6).max_tokens == 4096

    def test_max_tokens_zero(self):
        assert _ctx(provider="OpenAI", max_tokens=0).max_tokens == 4096

    def test_system_message(self):
        assert _ctx(system_message="Be kind").system_message == "Be kind"
        assert _ctx(system_message="   ").system_message is None
        assert _ctx().system_message is None

    def test_stream_flag(self):
        assert _ctx().is_stream
        assert not _ctx(stream=False).is_stream

    def test_tools_enabled(self):
        assert _ctx(provider="OpenAI", model="gpt-4o").tools_enabled
        assert not _ctx(provider="OpenAI", model="o1").tools_enabled
        assert not _ctx(provider="OpenAI", tools_enabled=False).tools_enabled


class TestHistory:
    TURNS = [ChatTurn(id=str(i), prompt=f"q{i}", reply=f"a{i}") for i in range(1, 16)]

    def test_bounded_by_config_default(self):
        turns = _ctx(turns=self.TURNS).ctx_messages()
        assert len(turns) == 10
        assert turns[0].id == "6"
        assert turns[-1].id == "15"

    def test_bounded_by_conversation(self):
        turns = _ctx(turns=self.TURNS, max_ctx_messages=2).ctx_messages()
        assert [t.id for t in turns] == ["14", "15"]

    def test_zero_disables_history(self):
        assert _ctx(turns=self.TURNS, max_ctx_messages=0).ctx_messages() == []

    def test_before_msg_id(self):
        turns = _ctx(turns=self.TURNS, max_ctx_messages=3).ctx_messages("5")
        assert [t.id for t in turns] == ["2", "3", "4"]

    def test_incomplete_turns_skipped(self):
        turns = [
            ChatTurn(id="1", prompt="q1", reply="a1"),
            ChatTurn(id="2", prompt="q2", reply=""),
            ChatTurn(id="3", prompt="", reply="a3"),
        ]
        assert [t.id for t in _ctx(turns=turns).ctx_messages()] == ["1"]


class TestCredentials:
    def test_from_config(self):
        config = ChatConfig(providers={"OpenAI": ProviderSettings(api_key=" sk-1 ")})
        assert _ctx(config).credentials().api_key == "sk-1"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "env-key")
        config = ChatConfig(providers={"OpenAI": ProviderSettings(api_key_env="MY_KEY")})
        assert _ctx(config).credentials().api_key == "env-key"

    def test_session_token(self):
        config = ChatConfig(providers={"5ire": ProviderSettings(session_token="tok")})
        creds = _ctx(config, provider="5ire").credentials()
        assert creds.session_token == "tok"

    def test_requires_key(self):
        assert _ctx(provider="OpenAI").requires_key
        assert not _ctx(provider="Ollama").requires_key
        assert not _ctx(provider="5ire").requires_key
