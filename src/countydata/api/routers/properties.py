"""
Properties Router

Endpoints for property search and detail.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.countydata.api.dependencies import get_orchestrator
from src.countydata.models.property import EnrichedProperty
from src.countydata.models.results import SearchFilters, SearchResponse
from src.countydata.orchestrator.integration import IntegrationOrchestrator

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])


def search_filters(
    search_text: Optional[str] = Query(None, description="Matches address, owner, county, state or ZIP"),
    state: Optional[str] = Query(None, description="State name or postal abbreviation"),
    county: Optional[str] = None,
    zip_code: Optional[str] = None,
    owner_name: Optional[str] = None,
    min_value: Optional[float] = Query(None, ge=0),
    max_value: Optional[float] = Query(None, ge=0),
    min_confidence: Optional[int] = Query(None, ge=0, le=100),
    valid_only: bool = True,
    limit: Optional[int] = Query(None, ge=1, le=10000),
) -> SearchFilters:
    return SearchFilters(
        search_text=search_text,
        state=state,
        county=county,
        zip_code=zip_code,
        owner_name=owner_name,
        min_value=min_value,
        max_value=max_value,
        min_confidence=min_confidence,
        valid_only=valid_only,
        limit=limit,
    )


@router.get("/search", response_model=SearchResponse)
async def search_properties(
    filters: SearchFilters = Depends(search_filters),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """
    Search properties from the last completed integration.

    Returns:
        Matching properties plus state/county coverage of the matches
    """
    return await orchestrator.search_properties(filters)


@router.get("/{property_id}", response_model=EnrichedProperty)
async def get_property_detail(
    property_id: str,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """
    Get a single property with its federal enrichment.

    Raises:
        HTTPException: 404 if property not found
    """
    response = await orchestrator.get_property_details(property_id)
    if not response.success:
        raise HTTPException(status_code=404, detail=f"Property not found: {property_id}")
    return response.property
