from __future__ import annotations

import enum
import json
from dataclasses import dataclass

from .constants import ID_SPACE, ID_WIDTH


class DecodeError(ValueError):
    pass


class MessageType(str, enum.Enum):
    HELLO = "Hello"
    WELCOME = "Welcome"
    REQUEST_DATA = "RequestData"
    DATA = "Data"
    ACK = "Ack"
    END = "End"
    ERROR = "Error"


_FIELDS = frozenset({"Type", "Content"})


@dataclass(frozen=True, slots=True)
class Message:
    type: MessageType
    content: str | None = ""

    def to_bytes(self) -> bytes:
        doc = {"Type": self.type.value, "Content": self.content}
        return json.dumps(doc, separators=(",", ":")).encode("ascii")

    @staticmethod
    def from_bytes(raw: bytes) -> "Message":
        try:
            doc = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"not a JSON message: {e}") from e

        if not isinstance(doc, dict):
            raise DecodeError("message is not a JSON object")
        extra = set(doc) - _FIELDS
        if extra:
            raise DecodeError(f"unexpected fields: {sorted(extra)}")

        kind = doc.get("Type")
        try:
            mtype = MessageType(kind)
        except (TypeError, ValueError):
            raise DecodeError(f"unknown message type: {kind!r}") from None

        content = doc.get("Content")
        if content is not None and not isinstance(content, str):
            raise DecodeError("content must be text")
        return Message(type=mtype, content=content)

    @staticmethod
    def hello(threshold: int | str) -> "Message":
        return Message(MessageType.HELLO, str(threshold))

    @staticmethod
    def welcome() -> "Message":
        return Message(MessageType.WELCOME, "")

    @staticmethod
    def request(resource: str) -> "Message":
        return Message(MessageType.REQUEST_DATA, resource)

    @staticmethod
    def data(chunk_id: str, payload: str) -> "Message":
        return Message(MessageType.DATA, chunk_id + payload)

    @staticmethod
    def ack(chunk_id: str) -> "Message":
        return Message(MessageType.ACK, chunk_id)

    @staticmethod
    def end() -> "Message":
        return Message(MessageType.END, "")

    @staticmethod
    def error(reason: str) -> "Message":
        return Message(MessageType.ERROR, reason)


def encode(message: Message) -> bytes:
    return message.to_bytes()


def decode(raw: bytes) -> Message:
    return Message.from_bytes(raw)


def format_chunk_id(n: int) -> str:
    """Render a transfer counter as a chunk id ("0000".."9999", wrapping)."""
    return f"{n % ID_SPACE:0{ID_WIDTH}d}"


def split_chunk(content: str) -> tuple[str, str]:
    if len(content) < ID_WIDTH:
        raise ValueError(f"chunk content shorter than {ID_WIDTH} characters")
    return content[:ID_WIDTH], content[ID_WIDTH:]
