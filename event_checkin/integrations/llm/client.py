from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from django.conf import settings

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_MODELS = {
    "anthropic": "claude-3-5-haiku-latest",
    "gemini": "gemini-1.5-flash",
}


class LLMNotConfiguredError(Exception):
    """Raised when no oracle is enabled or its configuration is incomplete."""


class LLMTimeoutError(TimeoutError):
    """The provider did not answer within the configured timeout."""


@dataclass
class LLMConfig:
    provider: str = "anthropic"
    model: str = DEFAULT_MODELS["anthropic"]
    api_key: str | None = None
    timeout: float = 15.0
    max_tokens: int = 1024


def strip_code_fences(text: str) -> str:
    """Drop a surrounding ```json ... ``` block some models add anyway."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class LLMClient:
    """Provider-agnostic interface for text-generation returning JSON.

    ``generate_json`` returns the parsed JSON object, or None when the provider
    answered with something unusable. Timeouts raise :class:`LLMTimeoutError`.
    """

    def generate_json(self, prompt: str, system: str | None = None) -> Any | None:
        raise NotImplementedError

    def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> Any | None:
        req = urllib.request.Request(  # noqa: S310 - external URL by config
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", **headers},
            method="POST",
        )
        name = type(self).__name__
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:  # noqa: S310 - external URL by config
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:  # pragma: no cover - network
            logger.warning("%s HTTPError: %s", name, e.read().decode("utf-8", "ignore"))
            return None
        except (TimeoutError, socket.timeout) as e:
            raise LLMTimeoutError(str(e) or "timed out") from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, (TimeoutError, socket.timeout)):
                raise LLMTimeoutError(str(e.reason) or "timed out") from e
            logger.warning("%s request failed: %s", name, e)
            return None
        except ValueError as e:
            logger.warning("%s returned invalid JSON: %s", name, e)
            return None

    @staticmethod
    def _loads(text: str | None) -> Any | None:
        if not text:
            return None
        try:
            return json.loads(strip_code_fences(text))
        except ValueError as e:
            logger.debug("Failed to parse model JSON: %s", e)
            return None


class GeminiClient(LLMClient):
    """Minimal Gemini HTTP client over REST.

    Uses responseMimeType=application/json so the model returns JSON text.
    """

    def __init__(self, cfg: LLMConfig):
        if not cfg.api_key:
            msg = "GEMINI_API_KEY missing"
            raise LLMNotConfiguredError(msg)
        self.cfg = cfg

    def generate_json(self, prompt: str, system: str | None = None) -> Any | None:
        url = (
            f"https://generativelanguage.googleapis.com/v1beta/models/"
            f"{self.cfg.model}:generateContent?key={self.cfg.api_key}"
        )
        contents: list[dict[str, Any]] = []
        if system:
            contents.append({"role": "user", "parts": [{"text": system}]})
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": 0.1,
                "responseMimeType": "application/json",
            },
        }
        obj = self._post(url, payload, {}, self.cfg.timeout)
        if not isinstance(obj, dict):
            return None

        # candidates -> content -> parts -> text
        candidates = obj.get("candidates") or []
        if not candidates:
            return None
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        if not parts:
            return None
        return self._loads(parts[0].get("text"))


class AnthropicClient(LLMClient):
    """Anthropic Messages API client over REST."""

    def __init__(self, cfg: LLMConfig):
        if not cfg.api_key:
            msg = "ANTHROPIC_API_KEY missing"
            raise LLMNotConfiguredError(msg)
        self.cfg = cfg

    def generate_json(self, prompt: str, system: str | None = None) -> Any | None:
        payload: dict[str, Any] = {
            "model": self.cfg.model,
            "max_tokens": self.cfg.max_tokens,
            "temperature": 0.1,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": str(self.cfg.api_key),
            "anthropic-version": ANTHROPIC_VERSION,
        }
        obj = self._post(ANTHROPIC_API_URL, payload, headers, self.cfg.timeout)
        if not isinstance(obj, dict):
            return None

        text = "".join(
            block.get("text", "")
            for block in obj.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        return self._loads(text)


def get_llm_client_from_settings() -> LLMClient:
    """Build the configured oracle client.

    Raises LLMNotConfiguredError when the oracle is disabled, the provider is
    unknown, or its API key is missing.
    """
    if not getattr(settings, "PREREGISTRATION_LLM_ENABLED", False):
        msg = "Column classification is disabled (PREREGISTRATION_LLM_ENABLED)"
        raise LLMNotConfiguredError(msg)

    provider = str(getattr(settings, "LLM_PROVIDER", "") or "anthropic").lower()
    if provider not in DEFAULT_MODELS:
        msg = f"LLM provider '{provider}' not supported"
        raise LLMNotConfiguredError(msg)

    cfg = LLMConfig(
        provider=provider,
        model=getattr(settings, "LLM_MODEL", "") or DEFAULT_MODELS[provider],
        api_key=getattr(settings, f"{provider.upper()}_API_KEY", None) or None,
        timeout=float(getattr(settings, "LLM_TIMEOUT", 15.0)),
    )
    if provider == "gemini":
        return GeminiClient(cfg)
    return AnthropicClient(cfg)
