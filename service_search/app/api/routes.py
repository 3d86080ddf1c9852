"""API routes for the search service."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
import structlog

from libs.common.errors import SearchServiceError
from libs.common.models import Document
from ..hybrid.search_manager import IndexingResult, SearchManager
from ..ranking.fusion import MAX_WEIGHT

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class CamelModel(BaseModel):
    """Wire models use camelCase names and accept snake_case too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(CamelModel):
    """Request model for hybrid search."""
    query: str = Field(..., description="Search query")
    max_results: int = Field(10, ge=1, le=100, description="Maximum number of results per source")
    lexical_weight: float = Field(
        0.5, ge=0, le=MAX_WEIGHT, allow_inf_nan=False, description="Weight of lexical results"
    )
    semantic_weight: float = Field(
        0.5, ge=0, le=MAX_WEIGHT, allow_inf_nan=False, description="Weight of semantic results"
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Query cannot be blank")
        return value


class SearchResult(CamelModel):
    """One fused search result."""
    document: Document = Field(..., description="Matched document")
    score: float = Field(..., description="Fused relevance score")
    source: str = Field(..., description="lexical, semantic or hybrid")


class SearchResponse(CamelModel):
    """Response model for hybrid search."""
    original_query: str = Field(..., description="Query as sent by the client")
    rewritten_query: str = Field(..., description="Query sent to both providers")
    results: List[SearchResult] = Field(..., description="Fused results, best first")
    total_results: int = Field(..., description="Number of fused results")
    lexical_results_count: int = Field(..., description="Results returned by the lexical provider")
    semantic_results_count: int = Field(..., description="Results returned by the semantic provider")
    degraded_sources: List[str] = Field(
        default_factory=list,
        description="Sources that failed or timed out and contributed no results"
    )


class IndexResponse(CamelModel):
    """Response model for indexing endpoints."""
    status: str = Field(..., description="success, partial or failed")
    message: str = Field(..., description="Status message")
    indexed: List[str] = Field(..., description="Ids stored in both backends")
    lexical_failures: Dict[str, str] = Field(..., description="Lexical backend errors by id")
    semantic_failures: Dict[str, str] = Field(..., description="Vector index errors by id")


def get_search_manager(request: Request) -> SearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


def _index_response(result: IndexingResult, requested: int) -> IndexResponse:
    if result.ok:
        status, message = "success", "Documents indexed successfully"
    elif result.indexed:
        status, message = "partial", "Some documents could not be indexed"
    else:
        status, message = "failed", "No document could be indexed"

    return IndexResponse(
        status=status,
        message=f"{message} ({len(result.indexed)}/{requested})",
        indexed=result.indexed,
        lexical_failures=result.lexical_failures,
        semantic_failures=result.semantic_failures
    )


@router.post("/search/hybrid", response_model=SearchResponse)
async def hybrid_search(
    request: SearchRequest,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Hybrid search combining lexical and semantic results."""
    logger.info("Received hybrid search request", query=request.query)

    try:
        result = await search_manager.search(
            query=request.query,
            max_results=request.max_results,
            lexical_weight=request.lexical_weight,
            semantic_weight=request.semantic_weight
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SearchResponse(
        original_query=result.original_query,
        rewritten_query=result.rewritten_query,
        results=[
            SearchResult(document=item.document, score=item.score, source=item.provenance.value)
            for item in result.results
        ],
        total_results=result.total_results,
        lexical_results_count=result.lexical_results_count,
        semantic_results_count=result.semantic_results_count,
        degraded_sources=result.degraded_sources
    )


@router.get("/search/lexical", response_model=List[Document])
async def lexical_search(
    query: str = Query(..., min_length=1, description="Search query"),
    max_results: int = Query(10, ge=1, le=100, alias="maxResults"),
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Lexical-only search."""
    logger.info("Received lexical search request", query=query)
    return await search_manager.lexical_search(query, max_results)


@router.get("/search/semantic", response_model=List[Document])
async def semantic_search(
    query: str = Query(..., min_length=1, description="Search query"),
    max_results: int = Query(10, ge=1, le=100, alias="maxResults"),
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Semantic-only search."""
    logger.info("Received semantic search request", query=query)
    return await search_manager.semantic_search(query, max_results)


@router.post("/documents", response_model=IndexResponse)
async def index_document(
    document: Document,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Index a single document in both backends."""
    logger.info("Indexing document", document_id=document.id)
    try:
        result = await search_manager.index_documents([document])
    except Exception as e:
        logger.error("Indexing failed", document_id=document.id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Indexing failed: {str(e)}")

    return _index_response(result, 1)


@router.post("/documents/batch", response_model=IndexResponse)
async def index_documents(
    documents: List[Document],
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Index multiple documents in both backends."""
    logger.info("Indexing documents", count=len(documents))
    try:
        result = await search_manager.index_documents(documents)
    except Exception as e:
        logger.error("Batch indexing failed", count=len(documents), error=str(e))
        raise HTTPException(status_code=500, detail=f"Batch indexing failed: {str(e)}")

    return _index_response(result, len(documents))


@router.get("/documents/stats")
async def get_index_stats(
    search_manager: SearchManager = Depends(get_search_manager)
) -> Dict[str, Any]:
    """Get vector index statistics."""
    return await search_manager.get_index_stats()


@router.delete("/documents/{document_id}")
async def remove_document(
    document_id: str,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Remove a document from both backends."""
    try:
        removed = await search_manager.remove_documents([document_id])
    except SearchServiceError as e:
        logger.error("Failed to remove document", document_id=document_id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to remove document: {str(e)}")

    return {"status": "success", "message": "Document removed from index", "removed": removed}
