from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from backend import RedisBackend
from constants import CORS_ORIGINS
from logging_config import get_logger
from relay import RoomRelay
from routers.meetings import meetings_router

logger = get_logger(__name__)


def origin_allowed(origin: Optional[str], allowed_origins: list) -> bool:
    # Non-browser clients send no Origin header
    if origin is None or "*" in allowed_origins:
        return True
    return origin in allowed_origins


def create_app(backend=None, cors_origins: Optional[list] = None) -> FastAPI:
    """Build the API and realtime relay around one meeting store.

    The relay state lives on app.state and is torn down on shutdown.
    """
    backend = backend if backend is not None else RedisBackend()
    cors_origins = list(cors_origins) if cors_origins is not None else CORS_ORIGINS

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend.ping()
        logger.info(f"Realtime relay ready, allowed origins: {cors_origins}")
        yield
        await app.state.relay.close()

    app = FastAPI(lifespan=lifespan)
    app.state.backend = backend
    app.state.relay = RoomRelay(store=backend)
    app.state.cors_origins = cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(meetings_router)

    @app.get("/")
    async def root():
        return {"message": "API is running"}

    @app.websocket("/realtime")
    async def realtime_endpoint(websocket: WebSocket):
        """Room relay endpoint. Frames are JSON {"event": ..., "data": {...}}."""
        origin = websocket.headers.get("origin")
        if not origin_allowed(origin, websocket.app.state.cors_origins):
            logger.warning(f"WebSocket connection rejected: origin {origin} not allowed")
            await websocket.close(code=1008, reason="Origin not allowed")
            return

        await websocket.accept()
        relay: RoomRelay = websocket.app.state.relay
        connection_id = relay.connect(websocket)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(f"WebSocket disconnected for connection {connection_id}")
                    break
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes")
                await relay.dispatch(connection_id, frame)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for connection {connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            await relay.disconnect(connection_id)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
