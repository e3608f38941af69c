"""
Knowledge Controllers (API Routes)
===================================

FastAPI routes for the knowledge corpus.

Controllers delegate to application services.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from knowledge.application import (
    KnowledgeService,
    CreateKnowledgeRequest,
    SearchKnowledgeRequest,
    KnowledgeEntryResponse,
    RankedEntryResponse,
    SearchKnowledgeResponse,
    BackfillResponse
)
from config import settings
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/knowledge", tags=["Knowledge Base"])


# ========== Dependencies ==========

def get_knowledge_service(request: Request) -> KnowledgeService:
    """Get knowledge service from app state."""
    service = getattr(request.app.state, "knowledge_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Knowledge service not available"
        )
    return service


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=List[KnowledgeEntryResponse],
    summary="List knowledge entries (newest first)"
)
async def list_knowledge(service: KnowledgeService = Depends(get_knowledge_service)):
    entries = await service.list_entries()
    return [KnowledgeEntryResponse.from_domain(entry) for entry in entries]


@router.post(
    "",
    response_model=KnowledgeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Teach the assistant a new subject",
    description="""
    Store a subject and its information. The embedding is generated from
    `"{subject} {information}"`; if the embedding provider is unavailable
    the entry is stored without one and can be filled by `/knowledge/backfill`.
    """
)
async def create_knowledge(
    request: Request,
    payload: CreateKnowledgeRequest,
    service: KnowledgeService = Depends(get_knowledge_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    entry = await service.create_entry(payload.subject, payload.information)
    logger.info(
        "Knowledge entry added via dashboard",
        extra={"correlation_id": correlation_id, "entry_id": entry.id}
    )
    return KnowledgeEntryResponse.from_domain(entry)


@router.delete("/{entry_id}", summary="Delete a knowledge entry")
async def delete_knowledge(
    entry_id: str,
    service: KnowledgeService = Depends(get_knowledge_service)
):
    await service.delete_entry(entry_id)
    return {"success": True}


@router.post(
    "/search",
    response_model=SearchKnowledgeResponse,
    summary="Semantic search over the knowledge corpus"
)
async def search_knowledge(
    payload: SearchKnowledgeRequest,
    service: KnowledgeService = Depends(get_knowledge_service)
):
    threshold = (
        payload.threshold
        if payload.threshold is not None
        else settings.search_similarity_threshold
    )
    results = await service.search(payload.query, threshold)
    return SearchKnowledgeResponse(
        query=payload.query,
        threshold=threshold,
        results=[RankedEntryResponse.from_domain(r) for r in results]
    )


@router.post(
    "/backfill",
    response_model=BackfillResponse,
    summary="Generate embeddings for entries stored without one"
)
async def backfill_embeddings(service: KnowledgeService = Depends(get_knowledge_service)):
    return BackfillResponse(**await service.backfill_embeddings())


knowledge_router = router
