"""Tests for URL and auth header resolution."""

from dataclasses import replace

import pytest

from polychat.context import Credentials
from polychat.endpoints import ANTHROPIC_VERSION, resolve_endpoint, url_join
from polychat.errors import AuthenticationError, ConfigError
from polychat.providers.catalog import get_provider

KEY = Credentials(api_key="k-1")


def _resolve(name: str, credentials: Credentials = KEY, stream: bool = True, **overrides):
    provider = get_provider(name)
    if overrides:
        provider = provider.with_overrides(**overrides)
    return resolve_endpoint(provider, provider.default_model(), credentials, stream=stream)


class TestUrls:
    def test_url_join(self):
        assert url_join("https://a.test/v1/", "/chat") == "https://a.test/v1/chat"
        assert url_join(" https://a.test ", "chat") == "https://a.test/chat"

    def test_openai(self):
        url, headers = _resolve("OpenAI")
        assert url == "https://api.openai.com/v1/chat/completions"
        assert headers["Authorization"] == "Bearer k-1"
        assert headers["Content-Type"] == "application/json"

    def test_baidu_v2_path(self):
        url, _ = _resolve("Baidu")
        assert url == "https://qianfan.baidubce.com/v2/chat/completions"

    def test_anthropic(self):
        url, headers = _resolve("Anthropic")
        assert url == "https://api.anthropic.com/v1/messages"
        assert headers["x-api-key"] == "k-1"
        assert headers["anthropic-version"] == ANTHROPIC_VERSION
        assert "Authorization" not in headers

    def test_google_stream_and_complete(self):
        url, headers = _resolve("Google")
        assert url == (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-2.5-flash:streamGenerateContent?key=k-1"
        )
        assert "Authorization" not in headers
        url, _ = _resolve("Google", stream=False)
        assert ":generateContent?key=k-1" in url

    def test_azure_deployment(self):
        url, headers = _resolve("Azure", api_base="https://me.openai.azure.com/")
        assert url == (
            "https://me.openai.azure.com/openai/deployments/gpt-4o/chat/completions"
            "?api-version=2024-10-21"
        )
        assert headers["api-key"] == "k-1"

    def test_azure_deployment_id_extra(self):
        provider = get_provider("Azure").with_overrides(api_base="https://me.test")
        model = replace(provider.default_model(), extras={"deployment_id": "prod-4o"})
        url, _ = resolve_endpoint(provider, model, KEY)
        assert "/deployments/prod-4o/" in url

    def test_azure_without_base(self):
        with pytest.raises(ConfigError):
            _resolve("Azure")

    def test_ollama_keyless(self):
        url, headers = _resolve("Ollama", Credentials())
        assert url == "http://127.0.0.1:11434/api/chat"
        assert "Authorization" not in headers


class TestAuth:
    def test_missing_key(self):
        with pytest.raises(AuthenticationError, match="Missing API key for DeepSeek"):
            _resolve("DeepSeek", Credentials())

    def test_session_token(self):
        url, headers = _resolve("5ire", Credentials(session_token="s-1"))
        assert url == "https://api.5ire.app/v1/chat/completions"
        assert headers["Authorization"] == "Bearer s-1"

    def test_session_without_token(self):
        with pytest.raises(AuthenticationError, match="User is not authenticated"):
            _resolve("5ire", KEY)
