"""Provider descriptors and the built-in catalog."""

from polychat.providers.catalog import CATALOG, get_provider, list_providers
from polychat.providers.descriptor import (
    AuthScheme,
    ModelSpec,
    ParamRange,
    ProviderDescriptor,
    VisionSpec,
    WireFormat,
)

__all__ = [
    "AuthScheme",
    "CATALOG",
    "ModelSpec",
    "ParamRange",
    "ProviderDescriptor",
    "VisionSpec",
    "WireFormat",
    "get_provider",
    "list_providers",
]
