"""
Espiritualizei — LLM Provider Abstraction.

Two public functions route to the configured provider:
`complete()` for free text and `complete_json()` for responses constrained by
a response schema. Provider is selected at first call via the LLM_PROVIDER
env var. Supports: gemini (default), anthropic, openai, cohere.

Both raise on API errors and raise LLMUnavailable when no API key is
configured; callers decide how to degrade.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class LLMUnavailable(RuntimeError):
    """No generative text provider is configured."""


# Type alias for provider implementations:
# (api_key, model, system, user_message, max_tokens, json_schema) -> text
_ProviderFn = Callable[[str, str, str, str, int, "dict | None"], Awaitable[str]]


def _schema_instruction(json_schema: dict) -> str:
    return (
        "\n\nRespond ONLY with a JSON object matching this schema "
        "(no markdown, no extra text):\n" + json.dumps(json_schema, ensure_ascii=False)
    )


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    json_schema: dict | None,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system or None,
    )
    config_kwargs: dict = {"max_output_tokens": max_tokens}
    if json_schema is not None:
        config_kwargs["response_mime_type"] = "application/json"
        config_kwargs["response_schema"] = json_schema
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(**config_kwargs),
    )
    return response.text


async def _complete_anthropic(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    json_schema: dict | None,
) -> str:
    import anthropic

    if json_schema is not None:
        system = system + _schema_instruction(json_schema)
    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return response.content[0].text


async def _complete_openai(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    json_schema: dict | None,
) -> str:
    from openai import AsyncOpenAI

    extra: dict = {}
    if json_schema is not None:
        system = system + _schema_instruction(json_schema)
        extra["response_format"] = {"type": "json_object"}
    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
        **extra,
    )
    return response.choices[0].message.content


async def _complete_cohere(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    json_schema: dict | None,
) -> str:
    import cohere

    extra: dict = {}
    if json_schema is not None:
        system = system + _schema_instruction(json_schema)
        extra["response_format"] = {"type": "json_object"}
    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
        **extra,
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read settings and return (provider_fn, model, api_key)."""
    from src.config import settings

    if not settings.llm_configured:
        raise LLMUnavailable("LLM_API_KEY is not set")

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton, populated on first call
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


async def _call(system: str, user_message: str, max_tokens: int, json_schema: dict | None) -> str:
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    return await _provider_fn(_api_key, _model, system, user_message, max_tokens, json_schema)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(system: str, user_message: str, max_tokens: int = 256) -> str:
    """Send a prompt to the configured LLM provider and return the response text.

    Raises on API errors; callers should handle exceptions.
    """
    return await _call(system, user_message, max_tokens, None)


async def complete_json(
    system: str, user_message: str, json_schema: dict, max_tokens: int = 2048,
) -> str:
    """Like complete(), but asks the provider for JSON matching json_schema.

    Returns the raw response text; validation is the caller's job.
    """
    return await _call(system, user_message, max_tokens, json_schema)
