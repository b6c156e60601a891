from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from errors import MalformedEnvelope


# Client -> server

class JoinEnvelope(BaseModel):
    type: Literal["join"]
    room: str = Field(min_length=1)
    user: Optional[str] = None

class ChatOutboundEnvelope(BaseModel):
    type: Literal["message"]
    message: str
    # Accepted for compatibility; the server uses the connection's own room and name
    room: Optional[str] = None
    user: Optional[str] = None


ClientEnvelope = Annotated[Union[JoinEnvelope, ChatOutboundEnvelope], Field(discriminator="type")]

_client_envelope_adapter = TypeAdapter(ClientEnvelope)


# Server -> client

class SystemEnvelope(BaseModel):
    type: Literal["system"] = "system"
    message: str

class ChatEnvelope(BaseModel):
    type: Literal["chat"] = "chat"
    user: str
    message: str
    room: str


def parse_envelope(raw: Union[str, bytes]) -> Union[JoinEnvelope, ChatOutboundEnvelope]:
    """Parse one inbound frame, raising MalformedEnvelope on anything unusable."""
    try:
        return _client_envelope_adapter.validate_json(raw)
    except ValidationError as e:
        raise MalformedEnvelope(f"Invalid envelope: {e.error_count()} error(s), first: {e.errors()[0]['msg']}") from e
