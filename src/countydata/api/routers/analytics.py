"""
Analytics Router

Area statistics and coverage.
"""
from fastapi import APIRouter, Depends, HTTPException

from src.countydata.api.dependencies import get_orchestrator
from src.countydata.models.results import AreaAnalyticsResponse, AreaQuery, CoverageStats
from src.countydata.orchestrator.integration import IntegrationOrchestrator

router = APIRouter(prefix="/api/v1", tags=["analytics"])


@router.post("/analytics/area", response_model=AreaAnalyticsResponse)
async def get_area_analytics(
    area: AreaQuery,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """
    Value, confidence and flood-risk statistics for a circle or polygon.

    Raises:
        HTTPException: 400 if the area geometry is malformed
    """
    response = await orchestrator.get_area_analytics(area)
    if not response.success:
        raise HTTPException(status_code=400, detail=response.errors)
    return response


@router.get("/coverage", response_model=CoverageStats)
async def get_coverage(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
    """Discovery and property coverage counts."""
    return await orchestrator.get_coverage_stats()
