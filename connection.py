import asyncio
import uuid
from typing import Awaitable, Callable, Optional

from errors import ChannelClosed
from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """One client's channel, wrapping an accepted WebSocket.

    Sends are fire-and-forget: frames go onto a bounded outbox that a writer
    task drains to the socket in FIFO order. A socket that errors on write,
    or falls a full outbox behind, is closed and reported through `on_lost`
    so the owner can release it.
    """

    def __init__(
        self,
        websocket,
        connection_id: Optional[str] = None,
        max_pending: int = 256,
        on_lost: Optional[Callable[["Connection"], Awaitable[None]]] = None,
    ):
        self.websocket = websocket
        self.connection_id = connection_id or str(uuid.uuid4())
        self.user: Optional[str] = None
        self.on_lost = on_lost
        # Set once the owner has released this connection from the registry
        self.released = False
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._writer_task: Optional[asyncio.Task] = None
        self._loss_task: Optional[asyncio.Task] = None
        self._closed = False
        self._socket_closed = False

    def __repr__(self):
        return f"Connection(id={self.connection_id}, user={self.user!r}, open={self.is_open})"

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def default_display_name(self) -> str:
        return f"User_{self.connection_id[:8]}"

    def start(self):
        """Launch the writer task. Must be called from within the event loop."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._drain_outbox())
            logger.debug(f"Started writer for connection {self.connection_id}")

    def send(self, text: str):
        """Queue one frame for delivery without waiting on the socket."""
        if self._closed:
            raise ChannelClosed(self.connection_id)
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.connection_id}, dropping slow connection")
            self._closed = True
            self._discard_pending()
            self._loss_task = asyncio.create_task(self._handle_loss())
            raise ChannelClosed(self.connection_id, reason="outbox full")

    async def flush(self):
        """Wait until every queued frame has been written or discarded."""
        await self._outbox.join()

    async def close(self):
        if self._closed and self._writer_task is None and self._socket_closed:
            return
        self._closed = True
        self._discard_pending()

        if self._writer_task is not None:
            task, self._writer_task = self._writer_task, None
            if task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await self._close_socket()

    async def _close_socket(self):
        if self._socket_closed:
            return
        self._socket_closed = True
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket for connection {self.connection_id}: {e}")

    async def _handle_loss(self):
        # Closing the socket also ends the endpoint's receive loop
        await self._close_socket()
        if self.on_lost is not None:
            await self.on_lost(self)

    async def _drain_outbox(self):
        while True:
            text = await self._outbox.get()
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                logger.warning(f"Error sending to connection {self.connection_id}, closing it: {e}")
                self._closed = True
                self._discard_pending()
                await self._handle_loss()
                return
            finally:
                self._outbox.task_done()

    def _discard_pending(self):
        dropped = 0
        while True:
            try:
                self._outbox.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._outbox.task_done()
            dropped += 1
        if dropped:
            logger.debug(f"Discarded {dropped} pending frames for connection {self.connection_id}")
