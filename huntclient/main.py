"""FastAPI entry-point for the hunt client's local UI surface."""
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .client import GameClient
from .config import Settings, get_settings
from .errors import (
    CooldownActive,
    HuntClientError,
    MalformedPayload,
    NetworkFailure,
    PermissionDenied,
    Unauthenticated,
    ValidationRejected,
)
from .logging_config import configure_logging
from .minigame import Choice
from .state import Coordinate

_STATUS_CODES = (
    (CooldownActive, 429),
    (PermissionDenied, 403),
    (Unauthenticated, 401),
    (ValidationRejected, 409),
    (MalformedPayload, 400),
    (NetworkFailure, 502),
)


class LocationBody(BaseModel):
    latitude: float
    longitude: float


class HeadingBody(BaseModel):
    degrees: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None


class ScanBody(BaseModel):
    raw: str


class MoveBody(BaseModel):
    choice: Choice


def _status_code(exc: HuntClientError) -> int:
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 500


def create_app(client: Optional[GameClient] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or (client.settings if client else get_settings())
    manager = client or GameClient(settings=settings)
    app = FastAPI(title="huntclient", version="0.1.0")
    app.state.client = manager

    @app.on_event("startup")
    async def on_startup() -> None:
        await manager.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await manager.stop()

    @app.exception_handler(HuntClientError)
    async def client_error(_request: Request, exc: HuntClientError) -> JSONResponse:
        payload = {"status": "error", "error": exc.kind, "message": str(exc)}
        if isinstance(exc, CooldownActive):
            payload["remaining_seconds"] = exc.remaining_seconds
        return JSONResponse(payload, status_code=_status_code(exc))

    @app.get("/healthz")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok", "phase": manager.phase, "channel": manager.channel.state.value})

    @app.get("/player")
    async def player_profile() -> JSONResponse:
        return JSONResponse(await manager.http.get_player())

    @app.post("/location")
    async def push_location(body: LocationBody) -> JSONResponse:
        manager.location.update(Coordinate(body.latitude, body.longitude))
        return JSONResponse({"status": "ok"})

    @app.post("/location/denied")
    async def location_denied() -> JSONResponse:
        manager.location.deny()
        return JSONResponse({"status": "ok"})

    @app.post("/heading")
    async def push_heading(body: HeadingBody) -> JSONResponse:
        if body.degrees is not None:
            manager.heading.update_degrees(body.degrees)
        elif body.x is not None and body.y is not None:
            manager.heading.update_magnetometer(body.x, body.y)
        else:
            return JSONResponse({"status": "error", "message": "degrees or x/y required"}, status_code=422)
        return JSONResponse({"status": "ok"})

    @app.post("/scan")
    async def scan(body: ScanBody) -> JSONResponse:
        result = await manager.scan(body.raw)
        return JSONResponse(result.as_dict())

    @app.post("/pairing/code")
    async def issue_pairing_code() -> JSONResponse:
        await manager.request_pairing_code()
        return JSONResponse(manager.pairing.status().as_dict())

    @app.get("/pairing/code")
    async def pairing_status() -> JSONResponse:
        return JSONResponse(manager.pairing.status().as_dict())

    @app.post("/hunts/{hunt_id}/start")
    async def start_hunt(hunt_id: str) -> JSONResponse:
        tracker = await manager.start_hunt(hunt_id)
        return JSONResponse(tracker.as_dict())

    @app.get("/hunts/current")
    async def current_hunt() -> JSONResponse:
        if manager.hunt is None:
            return JSONResponse({"hunt_id": None})
        return JSONResponse(manager.hunt.as_dict())

    @app.post("/hunts/scan")
    async def hunt_scan(body: ScanBody) -> JSONResponse:
        outcome = await manager.hunt_scan(body.raw)
        return JSONResponse({"status": outcome.status, "message": outcome.message, "reward": outcome.reward})

    @app.post("/hunts/abandon")
    async def abandon_hunt() -> JSONResponse:
        await manager.abandon_hunt()
        return JSONResponse({"status": "ok"})

    @app.get("/hunts/active")
    async def active_hunts(reset: bool = False) -> JSONResponse:
        await manager.active_hunts.fetch(reset=reset)
        return JSONResponse(manager.active_hunts.as_dict())

    @app.get("/history")
    async def history(reset: bool = False) -> JSONResponse:
        await manager.history.fetch(reset=reset)
        return JSONResponse(manager.history.as_dict())

    @app.post("/minigame/move")
    async def minigame_move(body: MoveBody) -> JSONResponse:
        accepted = await manager.minigame_move(body.choice)
        return JSONResponse({"accepted": accepted})

    @app.post("/minigame/leave")
    async def minigame_leave() -> JSONResponse:
        await manager.leave_minigame()
        return JSONResponse({"status": "ok"})

    @app.websocket("/ws/ui")
    async def ui_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = manager.register_ui()
        try:
            while True:
                event = await queue.get()
                payload = {
                    "type": event.type,
                    "phase": event.phase,
                    "data": event.data,
                }
                if event.error:
                    payload["error"] = event.error
                await ws.send_json(payload)
        except WebSocketDisconnect:
            pass
        finally:
            manager.unregister_ui(queue)

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings=settings), host=settings.ui_host, port=settings.ui_port)


if __name__ == "__main__":
    run()
