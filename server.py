"""HTTP server: health, stats, RPC (queries and mutations). WebSocket: ping, subscribe, unsubscribe."""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from msgboard import __version__
from msgboard.config import BoardConfig
from msgboard.exceptions import BoardError
from msgboard.observability import get_logger
from msgboard.protocol import (
    HealthResponse,
    rpc_error,
    rpc_result,
    stats_response,
    ws_ack,
    ws_error,
    ws_info,
    ws_pong,
    ws_ts,
    ERROR_BAD_REQUEST,
    ERROR_NOT_FOUND,
    ERROR_INTERNAL,
)
from msgboard.rpc import MessageBoard
from msgboard.subscriptions import SubscriptionManager

logger = get_logger("msgboard.server")

SendFunc = Callable[[Dict[str, Any]], Awaitable[None]]


async def _heartbeat_loop(app: FastAPI, interval: float) -> None:
    """Periodically send info heartbeat (msg: ping) to all connected WebSocket clients."""
    while True:
        await asyncio.sleep(interval)
        payload = ws_info("ping", ws_ts())
        for ws, send in list(app.state.ws_connections.items()):
            try:
                await send(payload)
            except Exception:
                app.state.ws_connections.pop(ws, None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.start_time = time.time()
    interval = app.state.board.config.heartbeat_interval_sec
    heartbeat_task: Optional[asyncio.Task] = None
    if interval > 0:
        heartbeat_task = asyncio.create_task(_heartbeat_loop(app, interval))
    logger.info("server_started", extra={"version": __version__})
    yield
    if heartbeat_task is not None:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
    logger.info("server_stopped")


class RpcBody(BaseModel):
    kind: str
    call: str
    args: Dict[str, Any] = Field(default_factory=dict)


router = APIRouter(prefix="/api/v1")


def _board(request: Request) -> MessageBoard:
    return request.app.state.board


# ---- Health ----

@router.get("/health")
def health(request: Request) -> JSONResponse:
    """GET /health → { uptime_sec, messages, subscribers }."""
    board = _board(request)
    uptime = time.time() - request.app.state.start_time
    body = HealthResponse(
        uptime_sec=uptime,
        messages=len(board.store),
        subscribers=board.bus.listener_count(),
    ).to_dict()
    return JSONResponse(content=body, status_code=200)


# ---- Stats ----

@router.get("/stats")
def stats(request: Request) -> JSONResponse:
    """GET /stats → { topics: { name: { events, subscribers } }, metrics }."""
    board = _board(request)
    body = stats_response(board.bus.topic_stats(), board.metrics.snapshot())
    return JSONResponse(content=body, status_code=200)


# ---- RPC (queries and mutations) ----

@router.post("/rpc")
def rpc(body: RpcBody, request: Request) -> JSONResponse:
    """POST /rpc { kind, call, args } → 200 { data } or 4xx { error: { code, message } }."""
    try:
        data = _board(request).dispatch(body.kind, body.call, body.args)
    except BoardError as e:
        logger.info("rpc_failed", extra={"call": body.call, "code": e.code, "error": e.message})
        return JSONResponse(content=rpc_error(e.code, e.message), status_code=e.status)
    return JSONResponse(content=rpc_result(data), status_code=200)


# ---- WebSocket (ping, subscribe, unsubscribe) ----

def _make_sender(websocket: WebSocket) -> SendFunc:
    """Serialize sends on one socket so frames from concurrent subscriptions never interleave."""
    lock = asyncio.Lock()

    async def send(payload: Dict[str, Any]) -> None:
        async with lock:
            await websocket.send_json(payload)

    return send


async def _handle_frame(msg: Dict[str, Any], manager: SubscriptionManager, send: SendFunc) -> None:
    msg_type = msg.get("type")
    request_id = msg.get("request_id")
    if request_id is not None and not isinstance(request_id, str):
        await send(ws_error(None, ERROR_BAD_REQUEST, "request_id must be a string", ws_ts()))
        return
    sid = msg.get("subscription_id")
    if sid is not None and not isinstance(sid, str):
        await send(ws_error(request_id, ERROR_BAD_REQUEST, "subscription_id must be a string", ws_ts()))
        return

    if msg_type == "ping":
        await send(ws_pong(request_id or "", ws_ts()))
        return

    if msg_type == "subscribe":
        topic = msg.get("topic")
        if not topic or not isinstance(topic, str):
            await send(ws_error(request_id, ERROR_BAD_REQUEST, "subscribe requires topic", ws_ts()))
            return
        try:
            sid = manager.subscribe(topic, sid)
        except BoardError as e:
            await send(ws_error(request_id, e.code, e.message, ws_ts()))
            return
        await send(ws_ack(request_id, topic, ws_ts(), subscription_id=sid))
        return

    if msg_type == "unsubscribe":
        if not sid:
            await send(ws_error(request_id, ERROR_BAD_REQUEST, "unsubscribe requires subscription_id", ws_ts()))
            return
        topic = manager.active.get(sid)
        if not await manager.unsubscribe(sid):
            await send(ws_error(
                request_id, ERROR_NOT_FOUND,
                f"Subscription {sid!r} not found on this connection",
                ws_ts(),
            ))
            return
        await send(ws_ack(request_id, topic, ws_ts(), subscription_id=sid))
        return

    await send(ws_error(request_id, ERROR_BAD_REQUEST, f"Unknown type: {msg_type!r}", ws_ts()))


@router.websocket("/ws")
async def websocket_handler(websocket: WebSocket) -> None:
    """
    WebSocket endpoint multiplexing subscriptions. Messages: ping, subscribe, unsubscribe.
    Server replies: pong, ack, event, error, info.
    """
    await websocket.accept()
    board: MessageBoard = websocket.app.state.board
    send = _make_sender(websocket)
    manager = SubscriptionManager(board, send)
    websocket.app.state.ws_connections[websocket] = send
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await send(ws_error(None, ERROR_BAD_REQUEST, "Invalid JSON", ws_ts()))
                continue
            if not isinstance(msg, dict):
                await send(ws_error(None, ERROR_BAD_REQUEST, "Frame must be a JSON object", ws_ts()))
                continue
            await _handle_frame(msg, manager, send)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("ws_error", extra={"connection_id": manager.connection_id})
        try:
            await send(ws_error(None, ERROR_INTERNAL, f"Unexpected server error: {e!s}", ws_ts()))
        except Exception:
            pass
    finally:
        await manager.close()
        websocket.app.state.ws_connections.pop(websocket, None)


def create_app(config: Optional[BoardConfig] = None) -> FastAPI:
    """Build the app around one explicitly owned MessageBoard."""
    config = config or BoardConfig.from_env()
    app = FastAPI(title="Message Board API", version=__version__, lifespan=lifespan)
    app.state.board = MessageBoard.from_config(config)
    app.state.ws_connections = {}
    app.state.start_time = time.time()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    config = app.state.board.config
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
