"""Dependency injection for the service context and its components.

The context is built once in the application lifespan and stored on
app.state.services; tests install their own context there before startup.
"""

from fastapi import Depends, HTTPException, Request

from customer_rag.ingestion.loader import CustomerCollection
from customer_rag.rag.chain import CustomerAssistant
from customer_rag.retrieval.retriever import CustomerRetriever
from customer_rag.services import ServiceContext


def get_services(request: Request) -> ServiceContext:
    """Return the process-wide ServiceContext.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def get_assistant(services: ServiceContext = Depends(get_services)) -> CustomerAssistant:
    return services.assistant


def get_retriever(services: ServiceContext = Depends(get_services)) -> CustomerRetriever:
    return services.retriever


def get_collection(services: ServiceContext = Depends(get_services)) -> CustomerCollection:
    return services.collection


def get_caller_id(request: Request) -> str:
    """Identify the caller for throttling: first X-Forwarded-For hop, else client host."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return request.client.host if request.client else "unknown"
