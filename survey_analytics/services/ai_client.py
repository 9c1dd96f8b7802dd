"""AI completion client.

Thin async client for a single chat-completion endpoint: a local Ollama
server in development, Groq (or any OpenAI-compatible API) in production.

Every failure surfaces as a typed ``ProviderError`` subclass so callers can
branch on the kind. There are no retries here; analyzers fall back to their
rule-based path instead.
"""

import json
import logging
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel

from survey_analytics.config import settings
from survey_analytics.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderNotFoundError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

GROQ_CHAT_PATH = "/openai/v1/chat/completions"
OPENAI_CHAT_PATH = "/v1/chat/completions"
OLLAMA_CHAT_PATH = "/api/chat"


class AIClientConfig(BaseModel):
    """Configuration for the completion endpoint. Resolved once at startup."""

    base_url: str
    model: str
    timeout: float = 60.0
    api_key: Optional[str] = None
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 1000

    @property
    def is_groq(self) -> bool:
        return "groq.com" in self.base_url

    @property
    def uses_openai_format(self) -> bool:
        """Groq URL or any API key selects the OpenAI-compatible wire format."""
        return self.is_groq or bool(self.api_key)

    @property
    def provider_name(self) -> str:
        if self.is_groq:
            return "Groq"
        return "OpenAI-compatible API" if self.api_key else "Ollama"

    @classmethod
    def from_settings(cls) -> "AIClientConfig":
        return cls(
            base_url=settings.AI_BASE_URL,
            model=settings.AI_MODEL,
            timeout=float(settings.AI_TIMEOUT),
            api_key=settings.AI_API_KEY,
        )


class AICompletionClient:
    """Chat-completion client with typed error classification."""

    def __init__(
        self,
        config: Optional[AIClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or AIClientConfig.from_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with auth headers."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Single-turn completion with an optional system prompt."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages)

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """Send a message list and return the assistant text."""
        path, payload = self._build_request(messages)
        client = await self.get_client()

        try:
            response = await client.post(path, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"Request timed out after {self.config.timeout:g} seconds"
            ) from e
        except httpx.ConnectError as e:
            raise ProviderConnectionError(
                f"Cannot connect to {self.config.provider_name} at {self.config.base_url}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"HTTP transport error: {e}") from e

        return self._handle_response(response)

    def _build_request(self, messages: List[Dict[str, str]]):
        if self.config.uses_openai_format:
            payload = {
                "model": self.config.model,
                "messages": messages,
                "stream": False,
                "temperature": self.config.temperature,
                "top_p": self.config.top_p,
                "max_tokens": self.config.max_tokens,
            }
            path = GROQ_CHAT_PATH if self.config.is_groq else OPENAI_CHAT_PATH
            return path, payload

        payload = {
            "model": self.config.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "top_p": self.config.top_p,
                "num_predict": self.config.max_tokens,
            },
        }
        return OLLAMA_CHAT_PATH, payload

    def _handle_response(self, response: httpx.Response) -> str:
        status = response.status_code
        model = self.config.model

        if status == 401:
            raise ProviderAuthError("Unauthorized: check your API key")
        if status == 404:
            if self.config.uses_openai_format:
                raise ProviderNotFoundError(f"Model '{model}' not found on {self.config.provider_name}")
            raise ProviderNotFoundError(f"Model '{model}' not found. Install with: ollama pull {model}")
        if status == 429:
            raise ProviderRateLimitedError("Rate limit exceeded. Please try again later.")
        if not 200 <= status < 300:
            raise ProviderError(f"HTTP {status}: {response.text[:500]}")

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderError(f"Invalid JSON response: {e}") from e

        if not isinstance(body, dict):
            raise ProviderError("Malformed response: expected a JSON object")

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ProviderError(f"API error: {message}")

        content = self._extract_content(body)
        if not isinstance(content, str):
            raise ProviderError("Malformed response: assistant message content missing")
        return content

    def _extract_content(self, body: dict):
        if self.config.uses_openai_format:
            choices = body.get("choices") or []
            if not choices or not isinstance(choices[0], dict):
                return None
            return (choices[0].get("message") or {}).get("content")

        message = body.get("message")
        if isinstance(message, dict) and message.get("content") is not None:
            return message.get("content")
        return body.get("response")


_ai_client: Optional[AICompletionClient] = None


def get_ai_client() -> AICompletionClient:
    """Get or create the process-wide AI client."""
    global _ai_client
    if _ai_client is None:
        _ai_client = AICompletionClient()
        logger.info(
            f"AI client configured: provider={_ai_client.config.provider_name}, "
            f"model={_ai_client.config.model}, timeout={_ai_client.config.timeout:g}s"
        )
    return _ai_client
