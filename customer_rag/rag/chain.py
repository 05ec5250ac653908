"""Assistant chain: validate, throttle, retrieve, format context, generate."""

import time
from typing import Optional

from customer_rag.models import ChatResponse
from customer_rag.retrieval.classifier import DEFAULT_LIMIT
from customer_rag.retrieval.retriever import CustomerRetriever, RetrievalResult
from customer_rag.utils.logging import get_logger
from customer_rag.utils.metrics import get_metrics

from .context import format_context
from .generator import ResponseGenerator
from .guardrails import DEFAULT_CALLER, RateLimiter, RateLimitedError, validate_query

logger = get_logger(__name__)
metrics = get_metrics()


class CustomerAssistant:
    """Answers questions about customers from retrieved profile data."""

    def __init__(
        self,
        retriever: CustomerRetriever,
        generator: ResponseGenerator,
        rate_limiter: Optional[RateLimiter] = None,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.retriever = retriever
        self.generator = generator
        self.rate_limiter = rate_limiter
        self.default_limit = default_limit

    def answer(self, query: str, caller_id: str = DEFAULT_CALLER) -> ChatResponse:
        """Answer one question.

        Raises:
            ValueError: If the query fails validation (e.g. too long).
            RateLimitedError: If caller_id has exhausted its request budget.
        """
        t_total = time.perf_counter()

        validation = validate_query(query)
        if not validation["valid"]:
            raise ValueError(validation["reason"])

        if self.rate_limiter is not None and not self.rate_limiter.allow(caller_id):
            metrics.record_rate_limited()
            raise RateLimitedError(caller_id, self.rate_limiter.retry_after(caller_id))

        query_to_use = validation["sanitized_query"]

        t_ret = time.perf_counter()
        try:
            result = self.retriever.retrieve_detailed(query_to_use, default_limit=self.default_limit)
        except Exception as e:
            logger.exception("Retrieval failed, answering without customer data: {}", e)
            metrics.record_error("retrieval_error")
            result = RetrievalResult(limit=self.default_limit)
        elapsed_ret = time.perf_counter() - t_ret

        context = format_context(result.records, comprehensive=result.comprehensive)

        t_gen = time.perf_counter()
        answer = self.generator.generate(query_to_use, context, comprehensive=result.comprehensive)
        elapsed_gen = time.perf_counter() - t_gen

        processing_time = time.perf_counter() - t_total
        logger.info(
            "answer: path={}, customers={}, retrieval={:.3f}s, generation={:.3f}s, total={:.3f}s",
            result.path,
            len(result.records),
            elapsed_ret,
            elapsed_gen,
            processing_time,
        )
        return ChatResponse(
            content=answer,
            processing_time=processing_time,
            customer_ids=result.customer_ids,
            retrieval_path=result.path,
            comprehensive=result.comprehensive,
        )
