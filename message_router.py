from typing import Iterable, Union

from pydantic import BaseModel

from connection import Connection
from errors import ChannelClosed, NotInRoom
from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.envelopes import ChatEnvelope, ChatOutboundEnvelope, JoinEnvelope, SystemEnvelope, parse_envelope

logger = get_logger(__name__)


class MessageRouter:
    """Applies inbound envelopes to the registry and fans chat out to rooms."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def handle_envelope(self, connection: Connection, raw: Union[str, bytes]):
        """Process one inbound frame from `connection`.

        Raises MalformedEnvelope if the frame cannot be parsed and NotInRoom
        for a chat sent before any join. Neither should close the channel.
        """
        envelope = parse_envelope(raw)

        if isinstance(envelope, JoinEnvelope):
            await self._handle_join(connection, envelope)
        elif isinstance(envelope, ChatOutboundEnvelope):
            await self._handle_chat(connection, envelope)

    async def _handle_join(self, connection: Connection, envelope: JoinEnvelope):
        await self.registry.join(connection, envelope.room)

        # Blank names count as absent, the same as a missing field
        if envelope.user and envelope.user.strip():
            connection.user = envelope.user.strip()
        elif connection.user is None:
            connection.user = connection.default_display_name
        logger.debug(f"Connection {connection.connection_id} is now known as {connection.user!r}")

        confirmation = SystemEnvelope(message=f"Joined room {envelope.room}")
        try:
            connection.send(confirmation.model_dump_json())
        except ChannelClosed as e:
            logger.warning(f"Could not confirm join: {e}")

    async def _handle_chat(self, connection: Connection, envelope: ChatOutboundEnvelope):
        room, members = await self.registry.peers_of(connection)
        if room is None:
            raise NotInRoom(connection.connection_id)

        chat = ChatEnvelope(
            user=connection.user or connection.default_display_name,
            message=envelope.message,
            room=room,
        )
        delivered = self.broadcast(members, chat)
        logger.debug(f"Broadcasted message from {connection.connection_id} to {delivered}/{len(members)} connections in room {room}")

    def broadcast(self, members: Iterable[Connection], envelope: BaseModel) -> int:
        """Queue `envelope` on every open member. Returns how many accepted it."""
        payload = envelope.model_dump_json()
        delivered = 0
        for member in members:
            if not member.is_open:
                continue
            try:
                member.send(payload)
                delivered += 1
            except ChannelClosed as e:
                logger.warning(f"Skipping recipient: {e}")
        return delivered

    async def disconnect(self, connection: Connection):
        """Tear down a connection whose channel has ended. Runs once per connection."""
        if connection.released:
            return
        connection.released = True
        await self.registry.leave(connection)
        await connection.close()
