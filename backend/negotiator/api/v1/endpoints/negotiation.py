"""
Negotiation endpoints.

WHAT: Start, advance, inspect, cancel and branch negotiations
WHY: HTTP access to the negotiation engine
HOW: FastAPI router delegating to the NegotiationService on app.state
"""

from fastapi import APIRouter, Depends, Request, status

from ....models.api_schemas import (
    CreateBranchRequest,
    SessionView,
    StartNegotiationRequest,
    SubmitTurnRequest,
)
from ....services.negotiation_service import NegotiationService
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_service(request: Request) -> NegotiationService:
    return request.app.state.service


@router.post("/negotiations", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_negotiation(
    payload: StartNegotiationRequest,
    service: NegotiationService = Depends(get_service),
):
    """
    Open a negotiation.

    The opening message is stored and the AI's first reply is generated
    before returning, so the view already holds round 1.
    """
    logger.info(f"Starting negotiation for '{payload.product.title}'")
    return await service.start_negotiation(
        payload.product,
        payload.message,
        participants=payload.participants(),
        initial_offer=payload.initial_offer,
        ai_context=payload.ai_context,
        max_rounds=payload.max_rounds,
    )


@router.post("/negotiations/{session_id}/turns", response_model=SessionView)
async def submit_turn(
    session_id: str,
    payload: SubmitTurnRequest,
    service: NegotiationService = Depends(get_service),
):
    """Submit a human turn and get the AI's reply."""
    return await service.submit_turn(session_id, payload.actor_role, payload.message, payload.offer)


@router.get("/negotiations/{session_id}", response_model=SessionView)
async def get_session(session_id: str, service: NegotiationService = Depends(get_service)):
    return await service.get_session(session_id)


@router.post("/negotiations/{session_id}/cancel", response_model=SessionView)
async def cancel_negotiation(session_id: str, service: NegotiationService = Depends(get_service)):
    """Cancel a negotiation. Cancelling a finished negotiation is a no-op."""
    return await service.cancel_negotiation(session_id)


@router.post(
    "/negotiations/{session_id}/branches",
    response_model=SessionView,
    status_code=status.HTTP_201_CREATED,
)
async def create_branch(
    session_id: str,
    payload: CreateBranchRequest,
    service: NegotiationService = Depends(get_service),
):
    """Fork a what-if branch. The active branch does not change."""
    return await service.create_branch(
        session_id, payload.name, payload.parent, payload.fork_point, branch_type=payload.branch_type
    )


@router.post("/negotiations/{session_id}/branches/{name}/switch", response_model=SessionView)
async def switch_branch(session_id: str, name: str, service: NegotiationService = Depends(get_service)):
    return await service.switch_branch(session_id, name)
