"""Process-wide service context: everything a request needs, built once at startup."""

import threading
from dataclasses import dataclass, field
from typing import Optional

from customer_rag.config import Settings
from customer_rag.ingestion.loader import CustomerCollection, load_customers
from customer_rag.rag.chain import CustomerAssistant
from customer_rag.rag.generator import ResponseGenerator
from customer_rag.rag.guardrails import RateLimiter
from customer_rag.retrieval.classifier import QueryClassifier
from customer_rag.retrieval.embeddings import EmbeddingService
from customer_rag.retrieval.lexical import LexicalRanker
from customer_rag.retrieval.retriever import CustomerRetriever
from customer_rag.retrieval.vector_store import EmbeddingStore, EmbeddingStoreError, PopulationReport
from customer_rag.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceContext:
    """Collection, store, retriever, throttle and assistant shared by all requests."""

    settings: Settings
    collection: CustomerCollection
    embedding_service: EmbeddingService
    store: Optional[EmbeddingStore]
    retriever: CustomerRetriever
    rate_limiter: RateLimiter
    generator: ResponseGenerator
    assistant: CustomerAssistant
    population: Optional[PopulationReport] = None
    _population_thread: Optional[threading.Thread] = field(default=None, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        collection: Optional[CustomerCollection] = None,
        embedding_service: Optional[EmbeddingService] = None,
        generator: Optional[ResponseGenerator] = None,
    ) -> "ServiceContext":
        """Wire every component from configuration.

        collection, embedding_service and generator may be supplied
        pre-built (tests); otherwise they are created from settings. If the
        embedding store cannot be opened the service runs on lexical search.
        """
        if collection is None:
            collection = load_customers(settings.customers_path)
        if embedding_service is None:
            embedding_service = EmbeddingService(
                model_name=settings.embedding_model_name,
                provider=settings.embedding_provider,
                base_url=settings.ollama_base_url,
                api_key=settings.openai_api_key,
                timeout=settings.embedding_timeout,
            )

        try:
            store: Optional[EmbeddingStore] = EmbeddingStore(
                settings.vector_db_path,
                embedding_service,
                batch_size=settings.embedding_batch_size,
            )
        except EmbeddingStoreError as e:
            logger.error("Embedding store unavailable, vector search disabled: {}", e)
            store = None

        retriever = CustomerRetriever(
            collection,
            store=store,
            embedding_service=embedding_service,
            classifier=QueryClassifier(collection, id_prefix=settings.customer_id_prefix),
            lexical=LexicalRanker(collection),
        )
        rate_limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            max_tracked_callers=settings.rate_limit_max_callers,
        )
        if generator is None:
            generator = ResponseGenerator(
                llm_model=settings.llm_model_name,
                api_key=settings.anthropic_api_key,
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
            )
        assistant = CustomerAssistant(
            retriever,
            generator,
            rate_limiter=rate_limiter,
            default_limit=settings.default_top_k,
        )
        logger.info(
            "Service context ready: customers={}, store={}",
            len(collection),
            settings.vector_db_path if store is not None else "disabled",
        )
        return cls(
            settings=settings,
            collection=collection,
            embedding_service=embedding_service,
            store=store,
            retriever=retriever,
            rate_limiter=rate_limiter,
            generator=generator,
            assistant=assistant,
        )

    def populate_store(self) -> Optional[PopulationReport]:
        """Embed the collection into the store (no-op when already populated)."""
        if self.store is None:
            logger.warning("No embedding store configured; skipping population")
            return None
        try:
            self.population = self.store.populate(self.collection)
        except EmbeddingStoreError as e:
            logger.error("Embedding store population failed: {}", e)
            return None
        return self.population

    def start_background_population(self) -> threading.Thread:
        """Populate the store on a daemon thread. Searches use lexical ranking until it finishes."""
        thread = threading.Thread(target=self.populate_store, name="populate-embeddings", daemon=True)
        thread.start()
        self._population_thread = thread
        return thread

    @property
    def population_running(self) -> bool:
        return self._population_thread is not None and self._population_thread.is_alive()

    def close(self) -> None:
        """Release the store connection and the embedding HTTP client."""
        if self._population_thread is not None:
            self._population_thread.join(timeout=5.0)
        if self.store is not None:
            self.store.close()
        self.embedding_service.close()
        logger.info("Service context closed")
