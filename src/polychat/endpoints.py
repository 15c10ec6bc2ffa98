"""Resolve request URL and auth headers for a provider."""

from __future__ import annotations

from urllib.parse import quote

from polychat.context import Credentials
from polychat.errors import AuthenticationError, ConfigError
from polychat.providers.descriptor import (
    AuthScheme,
    ModelSpec,
    ProviderDescriptor,
)

ANTHROPIC_VERSION = "2023-06-01"


def url_join(base: str, path: str) -> str:
    return base.strip().rstrip("/") + "/" + path.lstrip("/")


def resolve_endpoint(
    provider: ProviderDescriptor,
    model: ModelSpec,
    credentials: Credentials,
    stream: bool = True,
) -> tuple[str, dict[str, str]]:
    """Return ``(url, headers)`` for a chat request.

    Raises :class:`AuthenticationError` when the auth scheme needs a
    credential that is missing; no request should be attempted then.
    """
    if not provider.api_base:
        raise ConfigError(
            f"{provider.name} has no API base configured",
            hint=f"Set providers.{provider.name}.api_base in the config file.",
        )
    headers = {"Content-Type": "application/json"}
    api_key = credentials.api_key

    if provider.auth is AuthScheme.SESSION:
        if not credentials.session_token:
            raise AuthenticationError(
                "User is not authenticated",
                hint=f"Sign in to {provider.name} and set its session_token.",
            )
        headers["Authorization"] = f"Bearer {credentials.session_token}"
    elif provider.auth is not AuthScheme.NONE and not api_key:
        raise AuthenticationError(
            f"Missing API key for {provider.name}",
            hint=f"Set providers.{provider.name}.api_key or api_key_env.",
        )
    elif provider.auth is AuthScheme.BEARER:
        headers["Authorization"] = f"Bearer {api_key}"
    elif provider.auth is AuthScheme.X_API_KEY:
        headers["x-api-key"] = api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
    elif provider.auth is AuthScheme.API_KEY_HEADER:
        headers["api-key"] = api_key

    path = provider.chat_path.format(
        model=quote(model.wire_name, safe=""),
        deployment=quote(model.extras.get("deployment_id") or model.name, safe=""),
        method="streamGenerateContent" if stream else "generateContent",
    )
    url = url_join(provider.api_base, path)

    params: list[str] = []
    if provider.auth is AuthScheme.API_KEY_HEADER and provider.api_version:
        params.append(f"api-version={quote(provider.api_version)}")
    if provider.auth is AuthScheme.QUERY_KEY:
        params.append(f"key={quote(api_key, safe='')}")
    if params:
        url += ("&" if "?" in url else "?") + "&".join(params)
    return url, headers
