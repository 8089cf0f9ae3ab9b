"""Service dependencies shared by the route modules."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ..core import SessionDep, get_settings
from ..services import (
    ApprovalCoordinator,
    Collaborators,
    WorkOrderSynthesizer,
    WorkshopError,
    build_collaborators,
)


def get_collaborators(request: Request) -> Collaborators:
    """Collaborators built at startup, or on first use if lifespan did not run."""
    collaborators = getattr(request.app.state, "collaborators", None)
    if collaborators is None:
        collaborators = build_collaborators(get_settings())
        request.app.state.collaborators = collaborators
    return collaborators


CollaboratorsDep = Annotated[Collaborators, Depends(get_collaborators)]


def get_coordinator(session: SessionDep, collaborators: CollaboratorsDep) -> ApprovalCoordinator:
    return ApprovalCoordinator(session, notifier=collaborators.notifier)


def get_synthesizer(session: SessionDep, collaborators: CollaboratorsDep) -> WorkOrderSynthesizer:
    return WorkOrderSynthesizer(
        session,
        catalog=collaborators.catalog,
        parts_checker=collaborators.parts_checker,
        default_labor_rate=get_settings().default_labor_rate,
    )


CoordinatorDep = Annotated[ApprovalCoordinator, Depends(get_coordinator)]
SynthesizerDep = Annotated[WorkOrderSynthesizer, Depends(get_synthesizer)]


def http_error(status_code: int, exc: WorkshopError) -> HTTPException:
    """HTTPException carrying the error code and message of a domain error."""
    return HTTPException(
        status_code=status_code,
        detail={"error": exc.code, "message": str(exc)},
    )
