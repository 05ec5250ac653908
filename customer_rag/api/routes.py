"""FastAPI endpoints for the Customer Retrieval Assistant."""

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from customer_rag.api.dependencies import (
    get_assistant,
    get_caller_id,
    get_collection,
    get_retriever,
    get_services,
)
from customer_rag.ingestion.documents import build_descriptive_text
from customer_rag.ingestion.loader import CustomerCollection
from customer_rag.models import (
    ChatRequest,
    ChatResponse,
    CustomerRecord,
    CustomerSummary,
    SearchRequest,
    SearchResponse,
)
from customer_rag.rag.chain import CustomerAssistant
from customer_rag.rag.guardrails import RateLimitedError
from customer_rag.retrieval.embeddings import ProviderError
from customer_rag.retrieval.retriever import CustomerRetriever, RetrievalResult
from customer_rag.retrieval.similarity import DimensionMismatch
from customer_rag.retrieval.vector_store import EmbeddingStoreError
from customer_rag.services import ServiceContext
from customer_rag.utils.logging import get_logger
from customer_rag.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()

router = APIRouter(prefix="/api", tags=["customer-retrieval"])


def _summary(record: CustomerRecord, score=None) -> CustomerSummary:
    return CustomerSummary(
        customer_id=record.customer_id,
        full_name=record.full_name,
        email=record.email,
        product_count=record.product_count,
        product_types=record.product_types,
        score=score,
    )


def _rate_limited_response(error: RateLimitedError) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": str(error)},
        headers={"Retry-After": str(int(error.retry_after) + 1)},
    )


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: dict = Body(...),
    caller_id: str = Depends(get_caller_id),
    assistant: CustomerAssistant = Depends(get_assistant),
):
    """Answer a question about customers.

    Accepts either {"messages": [{"role": ..., "content": ...}, ...]} (the
    last message is the question) or {"query": "..."}.
    """
    try:
        request = ChatRequest.model_validate(payload)
        query = request.extract_query()
    except (ValidationError, ValueError) as e:
        logger.info("Rejected chat payload: {}", e)
        raise HTTPException(
            status_code=400,
            detail="Invalid request format. Expected either 'messages' array or 'query' string.",
        ) from e

    try:
        return assistant.answer(query, caller_id=caller_id)
    except RateLimitedError as e:
        return _rate_limited_response(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    caller_id: str = Depends(get_caller_id),
    retriever: CustomerRetriever = Depends(get_retriever),
    services: ServiceContext = Depends(get_services),
):
    """Run retrieval only and return customer summaries in rank order.

    Shares the per-caller request budget with /chat.
    """
    limiter = services.rate_limiter
    if not limiter.allow(caller_id):
        metrics.record_rate_limited()
        return _rate_limited_response(RateLimitedError(caller_id, limiter.retry_after(caller_id)))

    limit = request.limit or services.settings.default_top_k
    try:
        result = retriever.retrieve_detailed(request.query, default_limit=limit)
    except Exception as e:
        logger.exception("Search retrieval failed, returning no customers: {}", e)
        metrics.record_error("retrieval_error")
        result = RetrievalResult(limit=limit)
    return SearchResponse(
        query=request.query,
        path=result.path,
        comprehensive=result.comprehensive,
        total=len(result.records),
        customers=[_summary(r, s) for r, s in zip(result.records, result.scores)],
    )


@router.get("/customers/{customer_id}", response_model=CustomerRecord)
def get_customer(
    customer_id: str,
    collection: CustomerCollection = Depends(get_collection),
) -> CustomerRecord:
    """Return one customer profile by identifier (case-insensitive)."""
    record = collection.get(customer_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
    return record


@router.post("/customers/{customer_id}/reindex")
def reindex_customer(
    customer_id: str,
    services: ServiceContext = Depends(get_services),
) -> dict:
    """Re-embed one customer and replace its entry in the embedding store."""
    record = services.collection.get(customer_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
    if services.store is None:
        raise HTTPException(status_code=503, detail="Embedding store is not available")

    try:
        entry = services.store.upsert(record)
    except ProviderError as e:
        logger.warning("Reindex of {} failed: {}", record.customer_id, e)
        raise HTTPException(status_code=503, detail=f"Embedding provider unavailable: {e}") from e
    except DimensionMismatch as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except EmbeddingStoreError as e:
        logger.error("Reindex of {} could not be stored: {}", record.customer_id, e)
        raise HTTPException(status_code=500, detail="Embedding store write failed") from e

    return {
        "success": True,
        "customer_id": entry.customer_id,
        "dimension": entry.dimension,
        "text": build_descriptive_text(record),
    }


@router.get("/health")
def health_check(services: ServiceContext = Depends(get_services)) -> dict:
    """Health check with component status."""
    components: dict = {"customers": {"status": "ok", "count": len(services.collection)}}
    status = "ok"
    if services.store is None:
        components["embedding_store"] = {"status": "disabled"}
        status = "degraded"
    else:
        stats = services.store.get_stats()
        if "error" in stats:
            components["embedding_store"] = {"status": "error", "error": stats["error"]}
            status = "degraded"
        else:
            store_status = "ok" if stats["count"] > 0 else "empty"
            if services.population_running:
                store_status = "populating"
            components["embedding_store"] = {"status": store_status, "count": stats["count"]}
    return {"status": status, "components": components}


@router.get("/stats")
def get_stats(services: ServiceContext = Depends(get_services)) -> dict:
    """Return collection, embedding store and population statistics."""
    collection = services.collection
    store_stats = services.store.get_stats() if services.store is not None else None
    report = services.population
    return {
        "total_customers": len(collection),
        "customers_by_product_count": {
            "none": sum(1 for r in collection if r.product_count == 0),
            "one_to_three": sum(1 for r in collection if 0 < r.product_count <= 3),
            "four_or_more": sum(1 for r in collection if r.product_count > 3),
        },
        "embedding_store": store_stats,
        "embedding_provider": {
            "provider": services.embedding_service.provider,
            "model": services.embedding_service.model_name,
        },
        "last_population": (
            {
                "total": report.total,
                "stored": report.stored,
                "failed_ids": report.failed_ids,
                "skipped": report.skipped,
                "duration_seconds": round(report.duration, 3),
            }
            if report is not None
            else None
        ),
    }
