"""Error taxonomy for the relay core.

None of these ever terminate the server; each is handled at the point
where the affected connection or recipient can be dropped or skipped.
"""


class RelayError(Exception):
    pass


class MalformedEnvelope(RelayError):
    """Inbound payload could not be parsed as a client envelope."""


class NotInRoom(RelayError):
    """A chat envelope arrived from a connection that has not joined a room."""

    def __init__(self, connection_id: str):
        super().__init__(f"Connection {connection_id} sent a message before joining a room")
        self.connection_id = connection_id


class ChannelClosed(RelayError):
    """A recipient's channel is closed or cannot accept more frames."""

    def __init__(self, connection_id: str, reason: str = "closed"):
        super().__init__(f"Channel for connection {connection_id} unavailable: {reason}")
        self.connection_id = connection_id
        self.reason = reason


class RegistryInconsistency(RelayError):
    """A membership record points at a room that does not hold the connection."""

    def __init__(self, connection_id: str, room: str):
        super().__init__(f"Connection {connection_id} recorded in room {room} but missing from its member set")
        self.connection_id = connection_id
        self.room = room
