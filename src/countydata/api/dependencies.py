"""
FastAPI Dependencies

Provides the shared orchestrator to route handlers.
"""
from fastapi import Request

from src.countydata.orchestrator.integration import IntegrationOrchestrator


def get_orchestrator(request: Request) -> IntegrationOrchestrator:
    """
    Orchestrator dependency.

    Returns:
        The orchestrator attached to the application at creation time
    """
    return request.app.state.orchestrator
