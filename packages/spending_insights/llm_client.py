"""Thin async client for the chat-completions endpoint.

The provider (Groq by default) exposes an OpenAI-compatible API, so the
``openai`` SDK is used with the provider's base URL. The client returns the
raw completion text; parsing happens in :mod:`spending_insights.parsing`.

Every provider failure is re-raised as one of the
:class:`~spending_insights.errors.ModelClientError` subclasses via
:func:`~spending_insights.errors.classify_provider_error`.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI

from .config import InsightSettings
from .errors import TransportFailure, classify_provider_error
from .logging_setup import get_logger

_logger = get_logger("spending_insights.llm_client")


def create_openai_client(settings: InsightSettings) -> AsyncOpenAI:
    """Build the SDK client for the configured provider.

    The SDK's own retries are disabled; retry policy belongs to
    :func:`spending_insights.retry.retry_async`.
    """

    kwargs: dict[str, Any] = {
        "api_key": settings.api_key(),
        "base_url": settings.base_url,
        "max_retries": 0,
    }
    if settings.request_timeout is not None:
        kwargs["timeout"] = settings.request_timeout
    return AsyncOpenAI(**kwargs)


class ModelClient:
    """Call the language model with a fixed model id and per-call options.

    Parameters
    ----------
    settings:
        Supplies the model id and default temperature/token ceiling.
    client:
        An ``AsyncOpenAI``-shaped object. Created lazily from ``settings`` when
        omitted so constructing a ``ModelClient`` never reads credentials.
    """

    def __init__(self, settings: InsightSettings | None = None, client: Any | None = None) -> None:
        self.settings = settings or InsightSettings()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_openai_client(self.settings)
        return self._client

    def connect(self) -> Any:
        """Create the SDK client now; a missing API key raises ``InvalidCredentials``."""

        return self.client

    async def complete(
        self,
        messages: Sequence[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        operation: str = "completion",
    ) -> str:
        """Return the model's text completion for ``messages``.

        Raises one of ``RateLimited``, ``InvalidCredentials``,
        ``QuotaExceeded``, ``ModelUnavailable`` or ``TransportFailure``.
        """

        temp = self.settings.temperature_spending if temperature is None else temperature
        ceiling = self.settings.max_tokens if max_tokens is None else max_tokens

        client = self.connect()
        t0 = time.perf_counter()
        try:
            resp = await client.chat.completions.create(
                model=self.settings.model,
                messages=list(messages),
                temperature=temp,
                max_tokens=ceiling,
            )
        except Exception as e:  # noqa: BLE001 - every provider failure is classified
            classified = classify_provider_error(e)
            _logger.error(
                "llm_client:call_failed operation=%s latency_ms=%.2f error=%s kind=%s",
                operation,
                (time.perf_counter() - t0) * 1000.0,
                e.__class__.__name__,
                classified.__class__.__name__,
            )
            raise classified from e

        text = _extract_text(resp)
        _logger.debug(
            "llm_client:call_done operation=%s latency_ms=%.2f chars=%d",
            operation,
            (time.perf_counter() - t0) * 1000.0,
            len(text),
        )
        return text


def _extract_text(resp: Any) -> str:
    """Return ``choices[0].message.content`` or fail when it is empty."""

    choices = getattr(resp, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None)
    if not isinstance(content, str) or not content.strip():
        raise TransportFailure("TransportFailure: model returned an empty completion")
    return content


__all__ = ["ModelClient", "create_openai_client"]
