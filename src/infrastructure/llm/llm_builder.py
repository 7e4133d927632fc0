"""
infrastructure.llm.llm_builder - Centralized chat model construction.

Single source of truth for the tool-calling chat model used by the search
agent. The provider comes from LLM_PROVIDER; every provider must return a
chat model that supports bind_tools().

Supported providers:
    - "openai"  → langchain_openai.ChatOpenAI
    - "groq"    → langchain_groq.ChatGroq
    - "ollama"  → langchain_ollama.ChatOllama
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from langchain_core.language_models import BaseChatModel

from infrastructure.config import Settings

logger = logging.getLogger(__name__)

# Groq rejects requests without an explicit completion budget on some models
GROQ_DEFAULT_MAX_TOKENS = 2048


def _openai(options: Dict[str, Any], api_keys: Dict[str, str]) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    if not api_keys.get("openai"):
        raise ValueError("OPENAI_API_KEY is required when LLM_PROVIDER='openai'")
    return ChatOpenAI(openai_api_key=api_keys["openai"], **options)


def _groq(options: Dict[str, Any], api_keys: Dict[str, str]) -> BaseChatModel:
    from langchain_groq import ChatGroq

    if not api_keys.get("groq"):
        raise ValueError("GROQ_API_KEY is required when LLM_PROVIDER='groq'")
    options.setdefault("max_tokens", GROQ_DEFAULT_MAX_TOKENS)
    return ChatGroq(groq_api_key=api_keys["groq"], **options)


def _ollama(options: Dict[str, Any], api_keys: Dict[str, str]) -> BaseChatModel:
    from langchain_ollama import ChatOllama

    # ChatOllama names the completion budget num_predict and has no timeout
    options.pop("timeout", None)
    if "max_tokens" in options:
        options["num_predict"] = options.pop("max_tokens")
    return ChatOllama(**options)


_BUILDERS: Dict[str, Callable[[Dict[str, Any], Dict[str, str]], BaseChatModel]] = {
    "openai": _openai,
    "groq": _groq,
    "ollama": _ollama,
}


def build_llm(
    *,
    provider: str,
    model: str,
    temperature: float = 0.7,
    ollama_base_url: str = "http://localhost:11434/",
    openai_api_key: str = "",
    groq_api_key: str = "",
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
) -> BaseChatModel:
    """Build a chat model instance for the given provider.

    Args:
        provider: One of "openai", "groq", "ollama".
        model: Model name for the selected provider.
        temperature: Sampling temperature.
        ollama_base_url: Ollama server URL (only used when provider="ollama").
        openai_api_key: API key for OpenAI.
        groq_api_key: API key for Groq.
        max_tokens: Maximum completion tokens (Groq defaults to 2048).
        timeout: Request timeout in seconds, where the provider supports it.

    Raises:
        ValueError: If the provider is unknown or required credentials are missing.
    """
    name = provider.lower().strip()
    builder = _BUILDERS.get(name)
    if builder is None:
        raise ValueError(
            f"Unsupported LLM_PROVIDER: '{provider}'. "
            f"Must be one of: {', '.join(sorted(_BUILDERS))}."
        )

    options: Dict[str, Any] = {"model": model, "temperature": temperature}
    if name == "ollama":
        options["base_url"] = ollama_base_url
    if max_tokens is not None:
        options["max_tokens"] = max_tokens
    if timeout is not None:
        options["timeout"] = timeout

    logger.info("Building %s chat model (model=%s)", name, model)
    return builder(options, {"openai": openai_api_key, "groq": groq_api_key})


def build_llm_from_settings(config: Settings) -> BaseChatModel:
    """Build the agent's chat model from application settings."""
    return build_llm(
        provider=config.llm_provider,
        model=config.active_llm_model,
        temperature=config.llm_temperature,
        ollama_base_url=config.ollama_base_url,
        openai_api_key=config.openai_api_key,
        groq_api_key=config.groq_api_key,
        timeout=config.llm_timeout_seconds,
    )
