"""Runtime settings for the insight pipeline.

Defaults live on :class:`InsightSettings`; :meth:`InsightSettings.from_env`
applies ``SPENDING_INSIGHTS_*`` overrides. No environment is read at import
time. Entrypoints load ``.env`` (python-dotenv) before calling ``from_env``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import timedelta

from .errors import InvalidCredentials

_ENV_PREFIX = "SPENDING_INSIGHTS_"


@dataclass(frozen=True, slots=True)
class InsightSettings:
    """Model, retry and cache tunables.

    Attributes
    ----------
    model:
        Chat-completions model identifier.
    base_url:
        OpenAI-compatible endpoint of the provider.
    api_key_env:
        Name of the environment variable holding the provider API key.
    temperature_spending / temperature_budget / temperature_savings:
        Sampling temperature per prompt flow.
    max_tokens:
        Completion token ceiling for every flow.
    max_retries:
        Retries after the first attempt (``max_retries + 1`` calls at most).
    retry_base_delay:
        Seconds; the n-th retry waits ``retry_base_delay * 2**n``.
    request_timeout:
        Per-request timeout in seconds; ``None`` leaves the HTTP client's own
        default in place.
    cache_window_hours:
        Insights younger than this are reused as-is.
    new_transaction_threshold:
        Cached insights are also reused while fewer than this many
        transactions arrived after the last generation.
    transaction_window_days:
        Trailing window of transactions loaded for a generation.
    """

    model: str = "llama-3.1-8b-instant"
    base_url: str = "https://api.groq.com/openai/v1"
    api_key_env: str = "GROQ_API_KEY"
    temperature_spending: float = 0.3
    temperature_budget: float = 0.3
    temperature_savings: float = 0.4
    max_tokens: int = 1000
    max_retries: int = 3
    retry_base_delay: float = 1.0
    request_timeout: float | None = None
    cache_window_hours: float = 24.0
    new_transaction_threshold: int = 10
    transaction_window_days: int = 90

    @property
    def cache_window(self) -> timedelta:
        return timedelta(hours=self.cache_window_hours)

    def api_key(self) -> str:
        key = os.getenv(self.api_key_env)
        if not key:
            raise InvalidCredentials(
                f"{self.api_key_env} environment variable is required for model access"
            )
        return key

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> InsightSettings:
        """Build settings from ``SPENDING_INSIGHTS_<FIELD>`` variables.

        Unset or blank variables keep the default; unparsable numbers raise
        ``ValueError``. ``REQUEST_TIMEOUT`` accepts ``none`` to clear a timeout.
        """

        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            overrides[f.name] = _coerce(f.name, raw.strip())
        return cls(**overrides)  # type: ignore[arg-type]


_FLOAT_FIELDS = {
    "temperature_spending",
    "temperature_budget",
    "temperature_savings",
    "retry_base_delay",
    "cache_window_hours",
}
_INT_FIELDS = {"max_tokens", "max_retries", "new_transaction_threshold", "transaction_window_days"}


def _coerce(name: str, raw: str) -> object:
    try:
        if name in _FLOAT_FIELDS:
            return float(raw)
        if name in _INT_FIELDS:
            return int(raw)
        if name == "request_timeout":
            return None if raw.lower() == "none" else float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {_ENV_PREFIX}{name.upper()}: {raw!r}") from e
    return raw


__all__ = ["InsightSettings"]
