import asyncio
import json


class FakeWebSocket:
    """Records frames written by a Connection; can be told to fail on send."""

    def __init__(self, fail_on_send: bool = False):
        self.sent = []
        self.closed = False
        self.fail_on_send = fail_on_send

    async def send_text(self, data: str):
        if self.fail_on_send:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000):
        self.closed = True


def join(room, user=None):
    envelope = {"type": "join", "room": room}
    if user is not None:
        envelope["user"] = user
    return json.dumps(envelope)


def chat(message, room="", user=""):
    return json.dumps({"type": "message", "room": room, "user": user, "message": message})


class BlockingWebSocket(FakeWebSocket):
    """A socket whose writes stall until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def send_text(self, data: str):
        await self.release.wait()
        await super().send_text(data)
