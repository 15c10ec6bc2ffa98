"""Token accounting fallback for vendors that report no usage."""

from __future__ import annotations

import json
from typing import Any, Protocol

_CHARS_PER_TOKEN = 4


class TokenEstimator(Protocol):
    def count_input(self, payload: dict[str, Any]) -> int: ...

    def count_output(self, text: str) -> int: ...


def estimate_tokens(text: str) -> int:
    """Rough token count estimate."""
    return max(1, len(text) // _CHARS_PER_TOKEN) if text else 0


class CharEstimator:
    """Default estimator using the chars/4 heuristic."""

    def count_input(self, payload: dict[str, Any]) -> int:
        messages = payload.get("messages") or payload.get("contents") or []
        total = 0
        for msg in messages:
            total += estimate_tokens(json.dumps(msg, ensure_ascii=False))
        system = payload.get("system") or payload.get("system_instruction")
        if system:
            total += estimate_tokens(json.dumps(system, ensure_ascii=False))
        return total

    def count_output(self, text: str) -> int:
        return estimate_tokens(text)
