"""
FastAPI Main Application

County property data REST API over the integration orchestrator.
"""
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI

from src.countydata import __version__
from src.countydata.api.dependencies import get_orchestrator
from src.countydata.api.routers import analytics, export, integration, properties
from src.countydata.api.schemas import HealthCheck
from src.countydata.orchestrator.integration import IntegrationOrchestrator


def create_app(orchestrator: Optional[IntegrationOrchestrator] = None) -> FastAPI:
    """
    Build the application around an orchestrator.

    Args:
        orchestrator: Shared orchestrator (a default one is built if omitted)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="County Property Data API",
        description="Search, analytics and export over county property records",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.orchestrator = orchestrator or IntegrationOrchestrator()

    app.include_router(properties.router)
    app.include_router(analytics.router)
    app.include_router(export.router)
    app.include_router(integration.router)

    @app.get("/health", response_model=HealthCheck, tags=["health"])
    def health_check(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
        """
        Health check endpoint.

        Returns:
            Health status with integration activity
        """
        return HealthCheck(
            version=__version__,
            integration_running=orchestrator.is_running,
            timestamp=datetime.utcnow(),
        )

    @app.on_event("shutdown")
    async def close_sessions():
        await app.state.orchestrator.cleanup()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.countydata.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
