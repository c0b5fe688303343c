"""FastAPI application factory."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from outbox_service import __version__
from outbox_service.app.lifespan import lifespan
from outbox_service.core.dependencies.database import get_db_session
from outbox_service.core.dependencies.events import OutboxRuntimeDep
from outbox_service.core.settings import get_app_settings
from outbox_service.infra.events.outbox import OutboxRepository
from outbox_service.tasks.scheduler import get_job_status

router = APIRouter(prefix="/outbox", tags=["outbox"])


@router.get("/status")
async def outbox_status(
    runtime: OutboxRuntimeDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> dict[str, Any]:
    """Outbox record counts per state and scheduled job status."""
    counts = await OutboxRepository().count_by_state(session)
    return {
        "records": {state.value: count for state, count in counts.items()},
        "jobs": get_job_status(runtime.scheduler),
        "relay_enabled": runtime.relay is not None,
    }


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()
    app = FastAPI(
        title=app_settings.service_name,
        version=__version__,
        debug=app_settings.debug,
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


__all__ = ["create_app"]
