"""Error taxonomy for the insight pipeline.

Every error carries a ``user_message`` suitable for showing to an end user;
the exception text itself may hold more detail and is meant for logs.

Provider failures are classified once, through :data:`PROVIDER_ERROR_PATTERNS`
(an ordered list of ``(substring, error class)`` pairs), instead of ad-hoc
substring checks at each call site.
"""

from __future__ import annotations


class InsightsError(Exception):
    """Base class for all pipeline errors."""

    kind: str = "generic"
    user_message: str = "Failed to generate AI insights. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


# ---------------------------------------------------------------------------
# Model client failures
# ---------------------------------------------------------------------------


class ModelClientError(InsightsError):
    """A language-model call failed."""


class RateLimited(ModelClientError):
    kind = "service_busy"
    user_message = "AI service is temporarily busy. Please try again in a moment."


class InvalidCredentials(ModelClientError):
    kind = "configuration_error"
    user_message = "AI service configuration error. Please contact support."


# The user-facing category for bad credentials is "configuration error".
ConfigurationError = InvalidCredentials


class QuotaExceeded(ModelClientError):
    kind = "quota_exceeded"
    user_message = "AI service quota exceeded. Please try again later."


class ModelUnavailable(ModelClientError):
    kind = "model_unavailable"
    user_message = "AI model is no longer available. Please contact support to update the model."


class TransportFailure(ModelClientError):
    user_message = "Failed to generate AI insights. Please try again."


# Evaluated top to bottom; the first substring found in the provider's error
# message wins. Anything unmatched is a TransportFailure.
PROVIDER_ERROR_PATTERNS: tuple[tuple[str, type[ModelClientError]], ...] = (
    ("rate_limit", RateLimited),
    ("invalid_api_key", InvalidCredentials),
    ("quota", QuotaExceeded),
    ("decommissioned", ModelUnavailable),
)


def classify_provider_error(exc: BaseException) -> ModelClientError:
    """Map a provider exception to the pipeline's error taxonomy.

    The returned error is not raised here; callers raise it ``from exc`` so the
    provider's original exception stays attached as ``__cause__``.
    """

    if isinstance(exc, ModelClientError):
        return exc
    text = str(exc)
    for pattern, err_cls in PROVIDER_ERROR_PATTERNS:
        if pattern in text:
            return err_cls(f"{err_cls.__name__}: {text}")
    return TransportFailure(f"TransportFailure: {text}")


# ---------------------------------------------------------------------------
# Parsing and generation
# ---------------------------------------------------------------------------


class ResponseParseError(InsightsError):
    """The model's output was not valid JSON or lacked the expected list."""


class InsightGenerationError(InsightsError):
    """One of the concurrent prompt flows failed; nothing was generated.

    ``user_message`` follows the underlying model error when there is one so
    callers can still tell "service busy" from "quota exceeded".
    """

    def __init__(self, message: str, *, flow: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.flow = flow
        if isinstance(cause, InsightsError):
            self.user_message = cause.user_message
            self.kind = cause.kind


# ---------------------------------------------------------------------------
# Preconditions and lookups
# ---------------------------------------------------------------------------


class PreconditionError(InsightsError):
    """Checked before generation starts; no model call has been made."""


class NoAccountsConnected(PreconditionError):
    kind = "no_accounts"
    user_message = "Please connect a bank account first"


class NoTransactionsAvailable(PreconditionError):
    kind = "no_transactions"
    user_message = "No transactions found. Please wait for transactions to sync."


class InsightNotFound(InsightsError):
    kind = "not_found"
    user_message = "Insight not found or you do not have permission to delete it"


def user_message(exc: BaseException) -> str:
    """Return the end-user message for ``exc`` (generic for unknown errors)."""

    if isinstance(exc, InsightsError):
        return exc.user_message
    return InsightsError.user_message


__all__ = [
    "ConfigurationError",
    "InsightGenerationError",
    "InsightNotFound",
    "InsightsError",
    "InvalidCredentials",
    "ModelClientError",
    "ModelUnavailable",
    "NoAccountsConnected",
    "NoTransactionsAvailable",
    "PROVIDER_ERROR_PATTERNS",
    "PreconditionError",
    "QuotaExceeded",
    "RateLimited",
    "ResponseParseError",
    "TransportFailure",
    "classify_provider_error",
    "user_message",
]
