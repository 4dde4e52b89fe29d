"""
Async clients for the external check-in classifier.

The classifier is strictly best-effort: every failure (no key, HTTP error,
timeout, odd response shape) surfaces as ClassifierUnavailableError and the
caller falls back to the rule-based analysis.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from mindwell.core.config import settings
from mindwell.core.errors import ClassifierUnavailableError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 1024


class ClassifierClient(ABC):
    """Abstract base class for classifier backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the raw text of the reply.

        Raises ClassifierUnavailableError on any failure.
        """
        ...


class AnthropicClassifierClient(ClassifierClient):
    """Messages API client using plain httpx."""

    def __init__(
        self,
        api_key: str,
        endpoint: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint or settings.LLM_API_URL
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS

    @property
    def name(self) -> str:
        return "anthropic"

    async def complete(self, prompt: str) -> str:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        body = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint, headers=headers, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise ClassifierUnavailableError("Timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise ClassifierUnavailableError(
                f"HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ClassifierUnavailableError(str(exc)) from exc

        content = data.get("content") if isinstance(data, dict) else None
        if not content or not isinstance(content, list):
            raise ClassifierUnavailableError("Empty response")
        text = content[0].get("text") if isinstance(content[0], dict) else None
        if not isinstance(text, str):
            raise ClassifierUnavailableError("Response has no text block")
        return text


def get_default_client() -> Optional[ClassifierClient]:
    """The configured client, or None when no API key is set."""
    if not settings.llm_enabled:
        return None
    return AnthropicClassifierClient(api_key=settings.LLM_API_KEY.strip())
