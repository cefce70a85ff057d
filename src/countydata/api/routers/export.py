"""
Export Router

Download filtered properties as CSV, JSON or GeoJSON.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from src.countydata.api.dependencies import get_orchestrator
from src.countydata.api.routers.properties import search_filters
from src.countydata.models.results import SearchFilters
from src.countydata.orchestrator.integration import IntegrationOrchestrator

router = APIRouter(prefix="/api/v1/export", tags=["export"])

MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "geojson": "application/geo+json",
}


@router.get("")
async def export_properties(
    format: str = Query("csv", description="csv, json or geojson"),
    filters: SearchFilters = Depends(search_filters),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """
    Export properties matching the search filters.

    Raises:
        HTTPException: 400 for an unsupported format
    """
    response = await orchestrator.export_data(filters, format)
    if not response.success:
        raise HTTPException(status_code=400, detail=response.errors)

    return Response(
        content=response.content,
        media_type=MEDIA_TYPES.get(format.lower(), "text/plain"),
        headers={
            "Content-Disposition": f'attachment; filename="properties.{format.lower()}"',
            "X-Record-Count": str(response.record_count),
        },
    )
