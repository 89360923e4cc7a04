from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..core.conversation import EventKind, OutboundMessage, UserEvent
from ..services.runtime import Runtime, get_runtime

router = APIRouter()


class EventRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Platform user id")
    kind: EventKind = Field(..., description="Event type")
    value: Optional[str] = Field(default=None, description="Selected option or typed text")


class MessagePayload(BaseModel):
    text: str
    kind: str
    options: List[str] = Field(default_factory=list)

    @classmethod
    def from_message(cls, message: OutboundMessage) -> "MessagePayload":
        return cls(text=message.text, kind=message.kind.value, options=list(message.options))


class EventResponse(BaseModel):
    reply: Optional[MessagePayload] = None
    state: Dict[str, Any]


@router.post("/events", response_model=EventResponse)
async def post_event(request: EventRequest, runtime: Runtime = Depends(get_runtime)) -> EventResponse:
    """Apply one user event; the reply (if any) is returned in the same turn."""
    engine = runtime.engine
    reply = await engine.handle_event(request.user_id, UserEvent(kind=request.kind, value=request.value))
    return EventResponse(
        reply=MessagePayload.from_message(reply) if reply else None,
        state=engine.get_state(request.user_id).to_dict(),
    )


@router.get("/sessions/{user_id}")
async def get_session(user_id: str, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    return runtime.engine.get_state(user_id).to_dict()


@router.get("/sessions/{user_id}/messages", response_model=List[MessagePayload])
async def get_messages(
    user_id: str,
    wait: float = Query(default=0, ge=0, le=60, description="Seconds to wait for a message"),
    runtime: Runtime = Depends(get_runtime),
) -> List[MessagePayload]:
    """Drain transfer outcomes delivered after the turn that started them."""
    if wait > 0:
        pending = await runtime.outbox.wait(user_id, wait)
    else:
        pending = runtime.outbox.drain(user_id)
    return [MessagePayload.from_message(m) for m in pending]
