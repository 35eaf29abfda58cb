"""Event intake endpoint for the processing workflow.

Trusted producers post events here; each accepted event is dispatched on a
background thread and the request returns immediately.
"""

import hmac
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request

from src.web.models import EventAcceptedResponse, EventRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


def _check_event_key(request: Request, x_event_key: Optional[str]) -> None:
    expected = request.app.state.config.EVENT_API_KEY
    if not expected:
        raise HTTPException(status_code=503, detail="Event intake is not configured")
    if not x_event_key or not hmac.compare_digest(x_event_key, expected):
        raise HTTPException(status_code=401, detail="Invalid event key")


@router.post("", response_model=EventAcceptedResponse, status_code=202)
async def receive_event(
    request: Request,
    body: EventRequest,
    x_event_key: Optional[str] = Header(default=None),
):
    """
    Accept an event for asynchronous processing.

    Returns 404 for event names without a registered workflow.
    """
    _check_event_key(request, x_event_key)

    sender = request.app.state.event_sender
    if body.name not in sender.dispatcher.event_names:
        raise HTTPException(status_code=404, detail=f"Unknown event: {body.name}")

    event_id = body.id or str(uuid.uuid4())
    sender.send(body.name, body.data, event_id=event_id)
    return EventAcceptedResponse(id=event_id, name=body.name)
