"""
Integration Router

Start, stop and monitor integration runs.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from src.countydata.api.dependencies import get_orchestrator
from src.countydata.api.schemas import IntegrationAccepted, IntegrationStopped
from src.countydata.errors import IntegrationAlreadyRunning
from src.countydata.models.results import IntegrationStatus
from src.countydata.orchestrator.integration import IntegrationOrchestrator
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/integration", tags=["integration"])


async def run_integration(orchestrator: IntegrationOrchestrator) -> None:
    try:
        result = await orchestrator.start_integration()
    except IntegrationAlreadyRunning:
        # Lost a race with another start request
        logger.warning("background_integration_rejected")
        return
    logger.info("background_integration_finished", success=result.success)


@router.get("/status", response_model=IntegrationStatus)
async def get_status(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
    """Current (or last) run status."""
    return await orchestrator.get_status()


@router.post("/start", response_model=IntegrationAccepted, status_code=202)
async def start_integration(
    background_tasks: BackgroundTasks,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """
    Schedule a full integration run.

    Raises:
        HTTPException: 409 if a run is already in progress
    """
    # Reserve before scheduling so a second request arriving before the task starts sees a run
    if not orchestrator.reserve_start():
        raise HTTPException(status_code=409, detail=str(IntegrationAlreadyRunning()))

    background_tasks.add_task(run_integration, orchestrator)
    return IntegrationAccepted()


@router.post("/stop", response_model=IntegrationStopped)
async def stop_integration(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
    """Request the active run to stop at its next checkpoint."""
    stopped = orchestrator.stop_integration()
    message = "Stop requested" if stopped else "No integration is running"
    return IntegrationStopped(stopped=stopped, message=message)
