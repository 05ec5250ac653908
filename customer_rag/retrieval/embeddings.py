"""Embedding generation for vector search.

Supports a local Ollama server (nomic-embed-text by default) over HTTP and
OpenAI text-embedding models through the openai SDK.
"""

import hashlib
import threading
import time
from numbers import Real
from typing import Any, List, Optional

import httpx

from customer_rag.utils.logging import get_logger

logger = get_logger(__name__)

OLLAMA_PROVIDER = "ollama"
OPENAI_PROVIDER = "openai"
OLLAMA_MODEL = "nomic-embed-text"
OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_TIMEOUT = 30.0


class ProviderError(Exception):
    """Embedding generation failed (transport, service, or malformed response)."""


def _validate_vector(raw: Any) -> List[float]:
    """Return raw as a list of floats or raise ProviderError."""
    if not isinstance(raw, list) or not raw:
        raise ProviderError("Invalid embedding response: vector field missing or not an array")
    if not all(isinstance(x, Real) and not isinstance(x, bool) for x in raw):
        raise ProviderError("Invalid embedding response: vector contains non-numeric values")
    return [float(x) for x in raw]


class EmbeddingService:
    """Generate text embeddings via Ollama or OpenAI."""

    def __init__(
        self,
        model_name: str = OLLAMA_MODEL,
        provider: str = OLLAMA_PROVIDER,
        base_url: str = DEFAULT_OLLAMA_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize the embedding service.

        Args:
            model_name: Embedding model, e.g. "nomic-embed-text" or "text-embedding-3-small".
            provider: "ollama" or "openai".
            base_url: Ollama server root URL. Ignored for OpenAI.
            api_key: OpenAI API key. Ignored for Ollama.
            timeout: Per-request timeout in seconds.
            client: Optional pre-built httpx.Client (tests inject a MockTransport).
        """
        provider = provider.lower()
        if provider not in (OLLAMA_PROVIDER, OPENAI_PROVIDER):
            raise ValueError(f"Unsupported embedding provider: {provider}")
        self.model_name = model_name
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._openai_client = None
        self._cache: dict[str, List[float]] = {}
        self._cache_lock = threading.Lock()
        logger.info("EmbeddingService initialized: model={}, provider={}", model_name, provider)

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _cache_key(self, text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def _embed_ollama(self, text: str) -> List[float]:
        """POST /api/embeddings and validate the 'embedding' field."""
        url = f"{self.base_url}/api/embeddings"
        try:
            resp = self._http().post(url, json={"model": self.model_name, "prompt": text})
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama embedding request failed: {e}") from e
        if resp.status_code != 200:
            raise ProviderError(f"Ollama embedding API error: {resp.status_code} - {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError("Invalid embedding response: body is not JSON") from e
        if not isinstance(data, dict):
            raise ProviderError("Invalid embedding response: expected a JSON object")
        return _validate_vector(data.get("embedding"))

    def _embed_openai(self, text: str) -> List[float]:
        """Generate one embedding via the OpenAI API."""
        from openai import OpenAI

        if self._openai_client is None:
            self._openai_client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        try:
            resp = self._openai_client.embeddings.create(
                model=self.model_name,
                input=[text],
                encoding_format="float",
            )
        except Exception as e:
            raise ProviderError(f"OpenAI embedding request failed: {e}") from e
        if not resp.data:
            raise ProviderError("Invalid embedding response: no data returned")
        return _validate_vector(list(resp.data[0].embedding))

    def embed_text(self, text: str, use_cache: bool = True) -> List[float]:
        """Generate the embedding for a single text.

        Args:
            text: Input text to embed.
            use_cache: If True, return a cached embedding when available.

        Returns:
            Embedding vector.

        Raises:
            ProviderError: On transport/service failure or a malformed response.
        """
        if not text or not text.strip():
            text = " "  # minimal non-empty to avoid API issues
        key = self._cache_key(text)
        if use_cache:
            with self._cache_lock:
                cached = self._cache.get(key)
            if cached is not None:
                return cached

        t0 = time.perf_counter()
        if self.provider == OPENAI_PROVIDER:
            vec = self._embed_openai(text)
        else:
            vec = self._embed_ollama(text)
        logger.debug("Single embed latency: {:.3f}s, dim={}", time.perf_counter() - t0, len(vec))

        if use_cache:
            with self._cache_lock:
                self._cache[key] = vec
        return vec

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def close(self) -> None:
        """Release the HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
