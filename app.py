from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from connection import Connection
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, OUTBOX_MAX_SIZE, PRUNE_EMPTY_ROOMS, WS_PATH
from errors import MalformedEnvelope, NotInRoom
from logging_config import get_logger, setup_logging
from message_router import MessageRouter
from registry import ConnectionRegistry
from routers.health import health_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(registry: Optional[ConnectionRegistry] = None) -> FastAPI:
    """Build the relay application around one registry and one message router."""
    app = FastAPI(title="Room Relay")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry or ConnectionRegistry(prune_empty_rooms=PRUNE_EMPTY_ROOMS)
    app.state.message_router = MessageRouter(app.state.registry)

    app.include_router(health_router)

    @app.websocket(WS_PATH)
    async def websocket_endpoint(websocket: WebSocket):
        """Relay endpoint: one envelope per text frame, handled in arrival order."""
        message_router: MessageRouter = app.state.message_router

        await websocket.accept()
        connection = Connection(websocket, max_pending=OUTBOX_MAX_SIZE, on_lost=message_router.disconnect)
        connection.start()
        logger.info(f"Client connected: {connection.connection_id} from {websocket.client}")

        message_count = 0
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                if not connection.is_open:
                    logger.info(f"Connection {connection.connection_id} was closed after a failed send, ending receive loop")
                    break
                # Binary frames go through the same parser as text frames
                data = message.get("text")
                if data is None:
                    data = message.get("bytes") or b""
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection.connection_id}")

                try:
                    await message_router.handle_envelope(connection, data)
                except MalformedEnvelope as e:
                    logger.warning(f"Dropped malformed envelope from connection {connection.connection_id}: {e}")
                except NotInRoom as e:
                    logger.debug(f"Dropped message: {e}")
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection.connection_id}")
        except Exception as e:
            logger.error(f"Error handling connection {connection.connection_id}: {e}", exc_info=True)
        finally:
            await message_router.disconnect(connection)
            logger.info(f"Client disconnected: {connection.connection_id} after {message_count} messages")

    logger.info(f"Relay application initialized, WebSocket endpoint at {WS_PATH}")
    return app


app = create_app()
