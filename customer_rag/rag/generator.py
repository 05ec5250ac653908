"""Answer generation with Claude via langchain-anthropic."""

import time
from typing import Any, Optional

from langchain_anthropic import ChatAnthropic

from customer_rag.config import settings
from customer_rag.utils.logging import get_logger
from customer_rag.utils.metrics import get_metrics

from .guardrails import APOLOGY_MESSAGE
from .prompts import build_messages

logger = get_logger(__name__)
metrics = get_metrics()


class ResponseGenerator:
    """Turns (query, context) into an answer. Never raises: failures yield APOLOGY_MESSAGE."""

    def __init__(
        self,
        llm_model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        llm: Any = None,
    ) -> None:
        """Initialize the generator.

        Args:
            llm_model: Override LLM model name. Defaults to settings.llm_model_name.
            api_key: Override Anthropic API key. Defaults to settings.anthropic_api_key.
            temperature: Override temperature. Defaults to settings.llm_temperature.
            max_tokens: Override response length cap. Defaults to settings.llm_max_tokens.
            llm: Pre-built chat model (anything with invoke(messages)).
        """
        self.llm_model = llm_model or settings.llm_model_name
        self.api_key = api_key or settings.anthropic_api_key
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self._llm = llm
        logger.info(
            "ResponseGenerator initialized: model={}, temperature={}",
            self.llm_model,
            self.temperature,
        )

    def _get_llm(self) -> Any:
        if self._llm is None:
            self._llm = ChatAnthropic(
                model=self.llm_model,
                anthropic_api_key=self.api_key,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        return self._llm

    def generate(self, query: str, context: str, comprehensive: bool = False) -> str:
        """Generate an answer grounded in context.

        Returns:
            The model's answer, or APOLOGY_MESSAGE if the call fails.
        """
        messages = build_messages(query, context, comprehensive)
        t0 = time.perf_counter()
        try:
            response = self._get_llm().invoke(messages)
            content = response.content if hasattr(response, "content") else str(response)
        except Exception as e:
            elapsed = time.perf_counter() - t0
            metrics.record_generator_call(elapsed, success=False)
            metrics.record_error("generator_error")
            logger.error("Answer generation failed after {:.3f}s: {}", elapsed, e)
            return APOLOGY_MESSAGE
        elapsed = time.perf_counter() - t0
        metrics.record_generator_call(elapsed, success=True)

        if hasattr(response, "response_metadata") and response.response_metadata:
            usage = response.response_metadata.get("usage", {})
            if usage:
                logger.info(
                    "LLM usage: input_tokens={}, output_tokens={}",
                    usage.get("input_tokens"),
                    usage.get("output_tokens"),
                )

        if not isinstance(content, str):
            # Content blocks: keep the text parts
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block) for block in content
            )
        if not content.strip():
            logger.warning("Generator returned an empty answer")
            return APOLOGY_MESSAGE
        logger.info("Generated answer in {:.3f}s ({} chars)", elapsed, len(content))
        return content.strip()
