"""Context formatting, generation and request guardrails."""

from .chain import CustomerAssistant
from .context import format_context, format_customer
from .generator import ResponseGenerator
from .guardrails import APOLOGY_MESSAGE, RateLimitedError, RateLimiter, validate_query

__all__ = [
    "APOLOGY_MESSAGE",
    "CustomerAssistant",
    "format_context",
    "format_customer",
    "RateLimitedError",
    "RateLimiter",
    "ResponseGenerator",
    "validate_query",
]
