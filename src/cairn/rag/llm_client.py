"""LiteLLM client wrapper with retry, backoff, and API key validation.

All completion + embedding calls route through this module. LiteLLM's
built-in retry is used (num_retries=3, exponential backoff). Callers receive
LLMClient / Embedder instances by injection; nothing here is a global client.
"""

from __future__ import annotations

import logging
import os

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(provider: str) -> str | None:
    """Env var holding the API key for *provider*; None for local providers."""
    if provider in _PROVIDER_ENV:
        return _PROVIDER_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    temperature: float = 0.0,
    num_retries: int = 3,
    timeout: float | None = None,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    kwargs: dict = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        **kwargs,
    )
    return response.choices[0].message.content or ""


def embed(model: str, texts: list[str], num_retries: int = 3) -> list[list[float]]:
    """Call litellm.embedding() for a list of inputs. Returns vectors in input order."""
    response = litellm.embedding(
        model=model,
        input=texts,
        num_retries=num_retries,
    )
    return [item["embedding"] for item in response.data]


# ------------------------------------------------------------------
# Injectable capabilities
# ------------------------------------------------------------------


class LLMClient:
    """Chat-completion capability: ``complete(system_prompt, user_prompt) -> text``."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 2048,
        temperature: float = 0.2,
        num_retries: int = 2,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.num_retries = num_retries

    def complete(
        self, system_prompt: str, user_prompt: str, timeout: float | None = None
    ) -> str:
        return complete(
            self.model,
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            num_retries=self.num_retries,
            timeout=timeout,
        )


class Embedder:
    """Embedding capability used by the vector store.

    Texts are sent in slices of *batch_size* to keep request payloads bounded.
    """

    def __init__(self, model: str, batch_size: int = 64) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.model = model
        self.batch_size = batch_size

    def embed(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            vectors.extend(embed(self.model, batch))
        logger.debug("Embedded %d text(s) with %s", len(texts), self.model)
        return vectors
