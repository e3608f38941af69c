"""
Support Controllers (API Routes)
=================================

FastAPI routes for the operator dashboard.

Controllers delegate to application services; domain exceptions are
mapped to HTTP status codes by the shared exception handlers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from support.application import (
    TicketLifecycle,
    FeedbackAggregator,
    UpdateConfigRequest,
    PauseChannelRequest,
    TicketInfo,
    BotResponseInfo,
    ApprovalResult,
    FeedbackInfo,
    BotConfigInfo,
    PausedChannelInfo,
    StatsResponse,
)
from config import ResponseStatus
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Support"])


# ========== Dependencies ==========

def get_ticket_lifecycle(request: Request) -> TicketLifecycle:
    """Get ticket lifecycle service from app state."""
    service = getattr(request.app.state, "ticket_lifecycle", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ticket lifecycle service not available"
        )
    return service


def get_feedback_aggregator(request: Request) -> FeedbackAggregator:
    """Get feedback aggregator from app state."""
    service = getattr(request.app.state, "feedback_aggregator", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Feedback service not available"
        )
    return service


# ========== Tickets ==========

@router.get("/tickets", response_model=List[TicketInfo], summary="List tickets (newest first)")
async def list_tickets(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    tickets = await lifecycle.list_tickets(limit)
    return [TicketInfo.from_domain(ticket) for ticket in tickets]


@router.get("/tickets/{ticket_id}", response_model=TicketInfo, summary="Get a ticket")
async def get_ticket(
    ticket_id: str,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    return TicketInfo.from_domain(await lifecycle.get_ticket(ticket_id))


# ========== Responses ==========

@router.get("/responses", response_model=List[BotResponseInfo], summary="List bot responses")
async def list_responses(
    ticket_id: Optional[str] = Query(None),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    responses = await lifecycle.list_responses(ticket_id)
    return [BotResponseInfo.from_domain(response) for response in responses]


@router.get(
    "/responses/pending",
    response_model=List[BotResponseInfo],
    summary="Responses awaiting approval (oldest first)"
)
async def list_pending_responses(lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)):
    responses = await lifecycle.list_pending_responses()
    return [BotResponseInfo.from_domain(response) for response in responses]


@router.get(
    "/responses/stuck",
    response_model=List[BotResponseInfo],
    summary="Approved responses that were never delivered"
)
async def list_stuck_responses(lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)):
    responses = await lifecycle.list_stuck_responses()
    return [BotResponseInfo.from_domain(response) for response in responses]


@router.post(
    "/responses/{response_id}/approve",
    response_model=ApprovalResult,
    summary="Approve and deliver a response",
    description="""
    Moves the response to approved and attempts delivery. When delivery
    fails the response stays approved with `delivered=false`; approving
    it again retries delivery.
    """
)
async def approve_response(
    request: Request,
    response_id: str,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    response = await lifecycle.approve(response_id)
    delivered = response.status == ResponseStatus.SENT
    logger.info(
        "Response approved via dashboard",
        extra={"correlation_id": correlation_id, "response_id": response_id, "delivered": delivered}
    )
    return ApprovalResult(response=BotResponseInfo.from_domain(response), delivered=delivered)


@router.post(
    "/responses/{response_id}/reject",
    response_model=BotResponseInfo,
    summary="Reject a response"
)
async def reject_response(
    response_id: str,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    return BotResponseInfo.from_domain(await lifecycle.reject(response_id))


# ========== Config ==========

@router.get("/config", response_model=BotConfigInfo, summary="Get bot configuration")
async def get_config(lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)):
    return BotConfigInfo.from_domain(await lifecycle.get_config())


@router.patch("/config", response_model=BotConfigInfo, summary="Update bot configuration")
async def update_config(
    payload: UpdateConfigRequest,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    config = await lifecycle.update_config(payload.changes())
    return BotConfigInfo.from_domain(config)


# ========== Paused channels ==========

@router.get(
    "/channels/paused",
    response_model=List[PausedChannelInfo],
    summary="List channels where the assistant is paused"
)
async def list_paused_channels(lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)):
    channels = await lifecycle.list_paused_channels()
    return [PausedChannelInfo.from_domain(channel) for channel in channels]


@router.post(
    "/channels/paused",
    response_model=PausedChannelInfo,
    summary="Pause the assistant in a channel"
)
async def pause_channel(
    payload: PauseChannelRequest,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    paused = await lifecycle.pause(payload.channel_id, payload.guild_id, payload.channel_name)
    return PausedChannelInfo.from_domain(paused)


@router.delete("/channels/paused/{channel_id}", summary="Resume the assistant in a channel")
async def resume_channel(
    channel_id: str,
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle)
):
    was_paused = await lifecycle.resume(channel_id)
    return {"success": True, "was_paused": was_paused}


# ========== Feedback & stats ==========

@router.get("/stats", response_model=StatsResponse, summary="Support statistics")
async def get_stats(aggregator: FeedbackAggregator = Depends(get_feedback_aggregator)):
    return StatsResponse.from_domain(await aggregator.summarize())


@router.get("/feedback", response_model=List[FeedbackInfo], summary="List feedback")
async def list_feedback(
    response_id: Optional[str] = Query(None),
    aggregator: FeedbackAggregator = Depends(get_feedback_aggregator)
):
    feedbacks = await aggregator.list_feedback(response_id)
    return [FeedbackInfo.from_domain(feedback) for feedback in feedbacks]


support_router = router
