from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import google.generativeai as genai

from .config import Settings
from .errors import ConfigurationError, GenerationError

logger = logging.getLogger("solutions_hub.gemini")

ROLE_MAP = {"user": "user", "assistant": "model", "model": "model"}


class CompletionClient(Protocol):
    def ensure_configured(self) -> None:
        ...

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        max_output_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> str:
        ...


class GeminiClient:
    """Thin async wrapper around the Gemini SDK for chat-style completions."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Keep provider settings; the SDK is configured on first use.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: None until ensure_configured() succeeds.
        Dependencies: google.generativeai and Settings from config.
        Failure Modes: None here; a missing key surfaces as ConfigurationError per call.
        If Removed: No provider calls can be made.
        Testing Notes: Build with an empty key and assert complete() raises.
        """
        self._settings = settings
        self._default_model = _normalize_model_name(settings.gemini_model)
        self._configured = False

    def ensure_configured(self) -> None:
        if not self._settings.is_configured:
            raise ConfigurationError("GEMINI_API_KEY is required")
        if not self._default_model:
            raise ConfigurationError("GEMINI_MODEL is required")
        if not self._configured:
            genai.configure(api_key=self._settings.gemini_api_key)
            self._configured = True

    def generation_config(self, max_output_tokens: Optional[int] = None) -> Dict[str, Any]:
        settings = self._settings
        config: Dict[str, Any] = {
            "max_output_tokens": max_output_tokens or settings.max_output_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
        }
        # Not every model accepts penalties; only send them when set.
        if settings.frequency_penalty:
            config["frequency_penalty"] = settings.frequency_penalty
        if settings.presence_penalty:
            config["presence_penalty"] = settings.presence_penalty
        return config

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        max_output_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> str:
        """Purpose: Generate one assistant reply from a role-tagged message list.
        Inputs/Outputs: Input is messages (system/user/assistant) and optional
            token cap/model; returns the stripped reply text.
        Side Effects / State: Network call to the provider.
        Dependencies: genai.GenerativeModel.generate_content_async, to_gemini_contents.
        Failure Modes: ConfigurationError when unconfigured; any provider error or
            an empty reply raises GenerationError with the cause chained.
        If Removed: Assistant replies are never generated.
        Testing Notes: Exercised through fakes; conversion is tested directly.
        """
        self.ensure_configured()
        model_name = _normalize_model_name(model) if model else self._default_model
        system_instruction, contents = to_gemini_contents(messages)
        try:
            generative_model = genai.GenerativeModel(model_name, system_instruction=system_instruction or None)
            response = await generative_model.generate_content_async(
                contents,
                generation_config=self.generation_config(max_output_tokens),
            )
            text: Optional[str] = getattr(response, "text", None)
        except Exception as exc:
            logger.exception("model=%s status=error", model_name)
            raise GenerationError("Text generation failed") from exc
        if not text or not text.strip():
            logger.warning("model=%s status=empty_response", model_name)
            raise GenerationError("Text generation returned no content")
        return text.strip()


def to_gemini_contents(messages: Sequence[Dict[str, str]]) -> Tuple[str, List[Dict[str, Any]]]:
    """Purpose: Split role-tagged messages into a system instruction and Gemini contents.
    Inputs/Outputs: Input is a list of {role, content}; output is (system_text, contents).
    Side Effects / State: None.
    Failure Modes: Unknown roles are sent as user turns; empty contents are skipped.
    If Removed: Gemini rejects history with assistant/system roles.
    Testing Notes: "assistant" must map to "model"; multiple system messages join.
    """
    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []
    for message in messages:
        role = message.get("role", "user")
        text = message.get("content") or ""
        if role == "system":
            if text:
                system_parts.append(text)
            continue
        if not text:
            continue
        contents.append({"role": ROLE_MAP.get(role, "user"), "parts": [{"text": text}]})
    return "\n\n".join(system_parts), contents


def _normalize_model_name(name: Optional[str]) -> str:
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
