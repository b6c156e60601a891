import asyncio
from typing import Dict, FrozenSet, Optional, Set, Tuple

from connection import Connection
from errors import RegistryInconsistency
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """Single source of truth for which connection is in which room.

    Every read and write goes through one asyncio.Lock, so a join or leave
    never interleaves with another, and readers only ever see snapshots.
    """

    def __init__(self, prune_empty_rooms: bool = False):
        # Format: {room_name: {connection, ...}}
        self._rooms: Dict[str, Set[Connection]] = {}
        # Format: {connection_id: room_name}
        self._memberships: Dict[str, str] = {}
        self._prune_empty_rooms = prune_empty_rooms
        self._lock = asyncio.Lock()

    async def join(self, connection: Connection, room: str) -> Optional[str]:
        """Move a connection into `room`, leaving its previous room. Returns the previous room."""
        async with self._lock:
            previous = self._memberships.get(connection.connection_id)
            if previous is not None and previous != room:
                self._detach(connection, previous)

            if room not in self._rooms:
                self._rooms[room] = set()
                logger.info(f"Created room {room}")
            self._rooms[room].add(connection)
            self._memberships[connection.connection_id] = room

        if previous != room:
            logger.info(f"Connection {connection.connection_id} joined room {room} (previous: {previous})")
        return previous

    async def leave(self, connection: Connection) -> Optional[str]:
        """Remove a connection from its room, if any. Returns the room it left."""
        async with self._lock:
            room = self._memberships.get(connection.connection_id)
            if room is None:
                return None
            self._detach(connection, room)

        logger.info(f"Connection {connection.connection_id} left room {room}")
        return room

    async def members_of(self, room: str) -> FrozenSet[Connection]:
        async with self._lock:
            return frozenset(self._rooms.get(room, ()))

    async def room_of(self, connection: Connection) -> Optional[str]:
        async with self._lock:
            return self._memberships.get(connection.connection_id)

    async def peers_of(self, connection: Connection) -> Tuple[Optional[str], FrozenSet[Connection]]:
        """The connection's room and a snapshot of its members, read under one lock."""
        async with self._lock:
            room = self._memberships.get(connection.connection_id)
            if room is None:
                return None, frozenset()
            return room, frozenset(self._rooms.get(room, ()))

    async def stats(self) -> Dict[str, int]:
        async with self._lock:
            return {"rooms": len(self._rooms), "connections": len(self._memberships)}

    def _detach(self, connection: Connection, room: str):
        # Caller must hold self._lock
        del self._memberships[connection.connection_id]
        members = self._rooms.get(room)
        if members is None or connection not in members:
            error = RegistryInconsistency(connection.connection_id, room)
            logger.error(f"{error}; dropping stale membership")
            return

        members.discard(connection)
        if not members and self._prune_empty_rooms:
            del self._rooms[room]
            logger.info(f"Room {room} is empty, removed")
