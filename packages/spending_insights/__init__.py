"""Public interface for the ``spending_insights`` package.

Re-exports the pipeline's entry points, models and error types as the stable
import surface. There is no runtime logic here.
"""

from .caching import generate_insights_with_caching, should_use_cache
from .config import InsightSettings
from .errors import (
    ConfigurationError,
    InsightGenerationError,
    InsightNotFound,
    InsightsError,
    InvalidCredentials,
    ModelUnavailable,
    NoAccountsConnected,
    NoTransactionsAvailable,
    QuotaExceeded,
    RateLimited,
    ResponseParseError,
    TransportFailure,
)
from .formatting import format_transactions_for_model, summarize_income
from .generation import InsightGenerator, sort_insights
from .llm_client import ModelClient
from .models import (
    AllInsights,
    BudgetRecommendation,
    GenerationResult,
    Insight,
    SavingsOpportunity,
    StoredInsight,
    Transaction,
)
from .parsing import parse_spending_insights, strip_code_fence
from .retry import retry_async
from .service import InsightService, group_by_category

__all__ = [
    # Pipeline
    "InsightGenerator",
    "InsightService",
    "InsightSettings",
    "ModelClient",
    "format_transactions_for_model",
    "generate_insights_with_caching",
    "group_by_category",
    "parse_spending_insights",
    "retry_async",
    "should_use_cache",
    "sort_insights",
    "strip_code_fence",
    "summarize_income",
    # Models
    "AllInsights",
    "BudgetRecommendation",
    "GenerationResult",
    "Insight",
    "SavingsOpportunity",
    "StoredInsight",
    "Transaction",
    # Errors
    "ConfigurationError",
    "InsightGenerationError",
    "InsightNotFound",
    "InsightsError",
    "InvalidCredentials",
    "ModelUnavailable",
    "NoAccountsConnected",
    "NoTransactionsAvailable",
    "QuotaExceeded",
    "RateLimited",
    "ResponseParseError",
    "TransportFailure",
]
