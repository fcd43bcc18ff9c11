"""Cook session API router.

Endpoints:
- POST /session/start - Start a session for a structured recipe
- GET /session/{id} - Session snapshot
- POST /session/{id}/step|next|previous - On-screen navigation
- POST /session/{id}/steps/{index}/toggle-complete - Completion toggle
- POST/DELETE /session/{id}/timers... - Timer controls
- POST /session/{id}/tools/{name} - Run an agent tool directly
- GET /session/{id}/events - Server-Sent Events
- WS /session/{id}/agent - Conversational agent relay

Handlers are ``async def`` so that every session mutation happens on the
event loop, alongside the timer tasks.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, WebSocket
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from wokai.realtime.agent_channel import WebSocketAgentChannel
from wokai.realtime.cook_bus import subscribe_session

from ..deps import get_cook_session, get_sessions
from ..schemas import (
    ClientToolCall,
    PingFrame,
    SessionSnapshot,
    SessionStartRequest,
    StepSetRequest,
    TimerCreateRequest,
    TimerView,
    ToolDefinition,
    ToolResultResponse,
)
from ..services.cook_session import CookSession, SessionManager, SessionNotFound
from ..services.timer_registry import InvalidTimerDuration
from ..settings import settings

router = APIRouter(prefix="/cook", tags=["cook"])
logger = logging.getLogger("wokai.cook")

WS_CLOSE_SESSION_NOT_FOUND = 4404
WS_CLOSE_SESSION_ENDED = 4410
NOT_JSON_TEXT = {"type": "error", "message": "Frames must be JSON text"}


# --- Session lifecycle ---

@router.post("/session/start", response_model=SessionSnapshot)
async def start_session(
    body: SessionStartRequest,
    sessions: SessionManager = Depends(get_sessions),
):
    """Start a cooking session for a structured recipe."""
    session = sessions.start(body.recipe)
    return session.snapshot()


@router.get("/session/{session_id}", response_model=SessionSnapshot)
async def get_session(session: CookSession = Depends(get_cook_session)):
    return session.snapshot()


@router.delete("/session/{session_id}", status_code=204)
async def end_session(session_id: str, sessions: SessionManager = Depends(get_sessions)):
    try:
        sessions.end(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")


# --- On-screen navigation ---

def _out_of_range(session: CookSession, index: int) -> str:
    return f"Step index {index} is outside 0..{session.store.total_steps - 1}"


@router.post("/session/{session_id}/step", response_model=SessionSnapshot)
async def set_step(body: StepSetRequest, session: CookSession = Depends(get_cook_session)):
    if session.go_to_step(body.step_index) is None:
        raise HTTPException(status_code=400, detail=_out_of_range(session, body.step_index))
    return session.snapshot()


@router.post("/session/{session_id}/next", response_model=SessionSnapshot)
async def next_step(session: CookSession = Depends(get_cook_session)):
    session.next_step()
    return session.snapshot()


@router.post("/session/{session_id}/previous", response_model=SessionSnapshot)
async def previous_step(session: CookSession = Depends(get_cook_session)):
    session.previous_step()
    return session.snapshot()


@router.post("/session/{session_id}/steps/{step_index}/toggle-complete", response_model=SessionSnapshot)
async def toggle_step_complete(step_index: int, session: CookSession = Depends(get_cook_session)):
    if session.toggle_completed(step_index) is None:
        raise HTTPException(status_code=400, detail=_out_of_range(session, step_index))
    return session.snapshot()


# --- Timers ---

@router.post("/session/{session_id}/timers", response_model=TimerView)
async def create_timer(body: TimerCreateRequest, session: CookSession = Depends(get_cook_session)):
    try:
        timer_id = session.timers.create(body.label, body.minutes)
    except InvalidTimerDuration as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session.timers.get(timer_id)


def _require_timer(session: CookSession, timer_id: str) -> None:
    if timer_id not in session.timers:
        raise HTTPException(status_code=404, detail="Timer not found")


@router.post("/session/{session_id}/timers/{timer_id}/pause", response_model=TimerView)
async def pause_timer(timer_id: str, session: CookSession = Depends(get_cook_session)):
    _require_timer(session, timer_id)
    session.timers.pause(timer_id)
    return session.timers.get(timer_id)


@router.post("/session/{session_id}/timers/{timer_id}/resume", response_model=TimerView)
async def resume_timer(timer_id: str, session: CookSession = Depends(get_cook_session)):
    _require_timer(session, timer_id)
    session.timers.resume(timer_id)
    return session.timers.get(timer_id)


@router.delete("/session/{session_id}/timers/{timer_id}", status_code=204)
async def cancel_timer(timer_id: str, session: CookSession = Depends(get_cook_session)):
    _require_timer(session, timer_id)
    session.timers.cancel(timer_id)


# --- Agent tools ---

@router.get("/session/{session_id}/tools", response_model=list[ToolDefinition])
async def list_tools(session: CookSession = Depends(get_cook_session)):
    return session.tool_definitions()


@router.post("/session/{session_id}/tools/{tool_name}", response_model=ToolResultResponse)
async def invoke_tool(
    tool_name: str,
    arguments: Any = Body(None),
    session: CookSession = Depends(get_cook_session),
):
    """Run an agent tool over HTTP. Always answers 200 with the spoken result."""
    return ToolResultResponse(result=session.invoke_tool(tool_name, arguments))


# --- SSE ---

SSE_ENDED = "event: ended\ndata: {}\n\n"


def format_bus_event(sessions: SessionManager, session_id: str, raw: str) -> Optional[str]:
    """Turn one cook bus message into an SSE event.

    ``timer_complete`` is forwarded as its own event carrying the finished
    timer. Any other message is only a ping, answered with the current
    snapshot (or ``ended`` once the session is gone).
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed cook bus message for {session_id}")
        return None

    if isinstance(payload, dict) and payload.get("type") == "timer_complete":
        return f"event: timer_complete\ndata: {json.dumps(payload['timer'])}\n\n"

    try:
        snapshot = sessions.get(session_id).snapshot()
    except SessionNotFound:
        return SSE_ENDED
    return f"event: session\ndata: {snapshot.model_dump_json()}\n\n"


@router.get("/session/{session_id}/events")
async def session_events(
    request: Request,
    session_id: str,
    sessions: SessionManager = Depends(get_sessions),
):
    """Server-Sent Events for session updates via Redis Pub/Sub."""
    try:
        sessions.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")

    async def event_generator():
        pubsub = await subscribe_session(session_id)
        last_ping = asyncio.get_running_loop().time()

        try:
            while True:
                if await request.is_disconnected():
                    break

                try:
                    msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if msg:
                        event = format_bus_event(sessions, session_id, msg["data"])
                        if event:
                            yield event
                        if event == SSE_ENDED:
                            break
                except Exception as e:
                    logger.error(f"Redis PubSub Error: {e}")
                    await asyncio.sleep(1)

                now = asyncio.get_running_loop().time()
                if now - last_ping > settings.sse_keepalive_seconds:
                    yield "event: ping\ndata: {}\n\n"
                    last_ping = now
        finally:
            await pubsub.unsubscribe()
            await pubsub.close()

    return StreamingResponse(event_generator(), media_type="text/event-stream")


# --- Agent relay WebSocket ---

def handle_agent_frame(session: CookSession, frame: Any) -> Optional[dict]:
    """Process one inbound frame from the agent relay; returns the reply frame."""
    kind = frame.get("type") if isinstance(frame, dict) else None

    if kind == "client_tool_call":
        try:
            call = ClientToolCall.model_validate(frame)
        except ValidationError:
            return {"type": "error", "message": "client_tool_call needs tool_call_id and tool_name"}
        result = session.invoke_tool(call.tool_name, call.parameters)
        return {"type": "client_tool_result", "tool_call_id": call.tool_call_id, "result": result}

    if kind == "ping":
        try:
            ping = PingFrame.model_validate(frame)
        except ValidationError:
            return {"type": "error", "message": "Malformed ping"}
        return {"type": "pong", "event_id": ping.event_id}

    if kind in ("user_transcript", "agent_response"):
        logger.debug(f"Session {session.id} {kind}: {frame.get('text', '')}")
        return None

    return {"type": "error", "message": f"Unsupported frame type: {kind!r}"}


@router.websocket("/session/{session_id}/agent")
async def agent_socket(websocket: WebSocket, session_id: str):
    sessions: SessionManager = websocket.app.state.sessions
    try:
        session = sessions.get(session_id)
    except SessionNotFound:
        await websocket.close(code=WS_CLOSE_SESSION_NOT_FOUND)
        return

    await websocket.accept()
    channel = WebSocketAgentChannel(websocket)
    channel.start()
    channel.send_json(session.attach_agent(channel))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if session.closed:
                await channel.close()
                await websocket.close(code=WS_CLOSE_SESSION_ENDED)
                return
            raw = message.get("text")
            if raw is None:
                channel.send_json(NOT_JSON_TEXT)
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                channel.send_json(NOT_JSON_TEXT)
                continue
            reply = handle_agent_frame(session, frame)
            if reply is not None:
                channel.send_json(reply)
    finally:
        session.detach_agent(channel)
        await channel.close()
