"""
api/pokemon.py

Direct access to the knowledge aggregation layer, bypassing the chat pipeline.

Endpoints:
  - GET /pokemon: Paginated Pokemon listing merged from every source that supports listing.
  - GET /pokemon/{kind}/{id_or_name}: One aggregated lookup (kind is pokemon, species, ability,
    move or type), returning every contributing record with its source and weight.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from core.bootstrap import ChatComponents
from knowledge_sources import KnowledgeSourceUnreachableError
from shared.models import AggregatedResult, EndpointKind, SearchResult
from .sessions import get_components

router = APIRouter()


@router.get("/pokemon", response_model=SearchResult)
async def search_pokemon(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    components: ChatComponents = Depends(get_components),
) -> SearchResult:
    return await components.aggregator.search(limit=limit, offset=offset)


@router.get("/pokemon/{kind}/{id_or_name}", response_model=AggregatedResult)
async def lookup(
    kind: str,
    id_or_name: str,
    components: ChatComponents = Depends(get_components),
) -> AggregatedResult:
    """
    Raises:
        HTTPException: 400 for an unknown kind, 503 when no knowledge source can be reached.
    """
    endpoint_kind = EndpointKind.parse(kind)
    if endpoint_kind is None:
        valid = ", ".join(k.value for k in EndpointKind)
        raise HTTPException(status_code=400, detail=f"Unknown kind '{kind}'. Use one of: {valid}")
    parameter = int(id_or_name) if id_or_name.isdigit() else id_or_name
    try:
        return await components.aggregator.lookup(endpoint_kind, parameter)
    except KnowledgeSourceUnreachableError as e:
        raise HTTPException(status_code=503, detail=str(e))
