"""Chat completion client for the external language model.

``complete`` never raises: every failure comes back as a ``Completion`` whose
``failure`` names the kind of problem, and callers build their own fallback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import anthropic

from ..config import settings

logger = logging.getLogger(__name__)

FAILURE_UNAVAILABLE = "ai_unavailable"
FAILURE_SERVICE_ERROR = "ai_service_error"


@dataclass
class Completion:
    text: str | None = None
    failure: str | None = None
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.text)


class ChatClient(Protocol):
    @property
    def configured(self) -> bool: ...

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
    ) -> Completion: ...


class AnthropicChatClient:
    """ChatClient backed by the Anthropic Messages API."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = settings.anthropic_api_key if api_key is None else api_key
        self.model = model or settings.ai_model

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
    ) -> Completion:
        if not self.configured:
            return Completion(failure=FAILURE_UNAVAILABLE, error="AI service not configured")

        client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=timeout, max_retries=0)
        try:
            message = await asyncio.wait_for(
                client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=timeout,
            )
        except anthropic.APIStatusError as exc:
            logger.error("AI completion returned HTTP %s: %s", exc.status_code, exc.message)
            return Completion(
                failure=FAILURE_SERVICE_ERROR, status_code=exc.status_code, error=exc.message
            )
        except (anthropic.APIConnectionError, asyncio.TimeoutError) as exc:
            logger.error("AI completion transport error: %s", exc)
            return Completion(failure=FAILURE_UNAVAILABLE, error=str(exc) or "timeout")
        except Exception as exc:
            logger.exception("AI completion failed")
            return Completion(failure=FAILURE_UNAVAILABLE, error=str(exc))
        finally:
            await client.close()

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            return Completion(failure=FAILURE_SERVICE_ERROR, error="AI service returned empty response")
        return Completion(text=text)
