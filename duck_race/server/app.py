"""
HTTP + WebSocket surface for the race.

REST endpoints carry controller commands and status queries; ``/ws`` streams
every broadcast event to one observer, starting with a ``raceStatus``
snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, List, Optional, Sequence

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from duck_race.broadcast import Subscription
from duck_race.control import RaceController
from duck_race.errors import RaceControlError

from .auth import configured_admin_token, controller_guard

log = logging.getLogger(__name__)

_UNSET = object()


class StartRaceRequest(BaseModel):
    entrantNames: List[str] = Field(default_factory=list)
    durationMs: Optional[int] = None


async def _pump_events(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.to_message())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Observers never send commands; we only listen so a closed socket is noticed while idle.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


def _rejection(exc: RaceControlError, duration_ms: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "accepted": False,
            "message": exc.message,
            "effectiveDurationMs": duration_ms,
            "error": exc.code,
        },
    )


def create_app(
    controller: Optional[RaceController] = None,
    admin_token=_UNSET,
    background: Sequence[Callable[[], Awaitable[None]]] = (),
) -> FastAPI:
    controller = controller or RaceController()
    token = configured_admin_token() if admin_token is _UNSET else admin_token
    require_controller = controller_guard(token)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        tasks = [asyncio.create_task(factory()) for factory in background]
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await controller.close()

    app = FastAPI(title="Duck Race Server", lifespan=lifespan)
    app.state.controller = controller
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(RaceControlError)
    async def race_control_error_handler(_request, exc: RaceControlError):
        return _rejection(exc)

    @app.get("/")
    async def root():
        return {
            "message": "Duck Race Server",
            "websocket_endpoint": "/ws",
            "status_endpoint": "/api/race-status",
        }

    @app.post("/api/start-race", dependencies=[Depends(require_controller)])
    async def start_race(request: StartRaceRequest):
        try:
            result = await controller.start(request.entrantNames, request.durationMs)
        except RaceControlError as err:
            return _rejection(err, request.durationMs)
        return result.to_payload()

    @app.post("/api/reset-race", dependencies=[Depends(require_controller)])
    async def reset_race():
        return await controller.reset()

    @app.get("/api/race-status")
    async def race_status():
        return {"raceSnapshot": controller.current_snapshot()}

    @app.websocket("/ws")
    async def observe(websocket: WebSocket):
        await websocket.accept()
        subscription = controller.connect_observer()
        pump = asyncio.create_task(_pump_events(websocket, subscription))
        listener = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            done, _ = await asyncio.wait({pump, listener}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                err = task.exception()
                if err is not None and not isinstance(err, WebSocketDisconnect):
                    log.warning("[Observer] Connection %d closed with error: %s", subscription.subscriber_id, err)
        finally:
            subscription.close()
            for task in (pump, listener):
                task.cancel()
            await asyncio.gather(pump, listener, return_exceptions=True)

    return app
