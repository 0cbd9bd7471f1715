"""STOMP 1.2 text frame encoding and decoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

NULL: Final[str] = "\x00"

CONNECT: Final[str] = "CONNECT"
STOMP: Final[str] = "STOMP"
CONNECTED: Final[str] = "CONNECTED"
SEND: Final[str] = "SEND"
SUBSCRIBE: Final[str] = "SUBSCRIBE"
UNSUBSCRIBE: Final[str] = "UNSUBSCRIBE"
ACK: Final[str] = "ACK"
NACK: Final[str] = "NACK"
BEGIN: Final[str] = "BEGIN"
COMMIT: Final[str] = "COMMIT"
ABORT: Final[str] = "ABORT"
DISCONNECT: Final[str] = "DISCONNECT"
MESSAGE: Final[str] = "MESSAGE"
RECEIPT: Final[str] = "RECEIPT"
ERROR: Final[str] = "ERROR"

CLIENT_COMMANDS: Final[frozenset[str]] = frozenset(
    {CONNECT, STOMP, SEND, SUBSCRIBE, UNSUBSCRIBE, ACK, NACK, BEGIN, COMMIT, ABORT, DISCONNECT}
)
SERVER_COMMANDS: Final[frozenset[str]] = frozenset({CONNECTED, MESSAGE, RECEIPT, ERROR})

SUPPORTED_VERSIONS: Final[tuple[str, ...]] = ("1.2", "1.1", "1.0")
SUPPORTED_SUBPROTOCOLS: Final[tuple[str, ...]] = ("v12.stomp", "v11.stomp", "v10.stomp")

# CONNECT and CONNECTED headers are sent verbatim for 1.0 compatibility.
_UNESCAPED_COMMANDS: Final[frozenset[str]] = frozenset({CONNECT, CONNECTED})

_ESCAPES: Final[dict[str, str]] = {"\\": "\\\\", "\n": "\\n", ":": "\\c", "\r": "\\r"}
_UNESCAPES: Final[dict[str, str]] = {"\\": "\\", "n": "\n", "c": ":", "r": "\r"}


class StompProtocolError(ValueError):
    """Raised when inbound data is not a well-formed STOMP frame."""


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in value)


def _unescape(value: str) -> str:
    result: list[str] = []
    chars = iter(value)
    for char in chars:
        if char != "\\":
            result.append(char)
            continue
        following = next(chars, None)
        if following is None or following not in _UNESCAPES:
            raise StompProtocolError(f"Undefined escape sequence in header: {value!r}")
        result.append(_UNESCAPES[following])
    return "".join(result)


@dataclass
class StompFrame:
    """A single STOMP frame with text body."""

    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name, default)

    @property
    def destination(self) -> str | None:
        return self.headers.get("destination")

    @property
    def receipt(self) -> str | None:
        return self.headers.get("receipt")

    def serialize(self) -> str:
        escape = self.command not in _UNESCAPED_COMMANDS
        lines = [self.command]
        for name, value in self.headers.items():
            if escape:
                lines.append(f"{_escape(name)}:{_escape(str(value))}")
            else:
                lines.append(f"{name}:{value}")
        return "\n".join(lines) + "\n\n" + self.body + NULL

    @classmethod
    def parse(cls, raw: str) -> "StompFrame":
        """Decode one frame; a trailing NUL is optional."""

        text = raw.lstrip("\r\n")
        if not text:
            raise StompProtocolError("Empty frame")
        if text.endswith(NULL):
            text = text[:-1]

        command_line, _, rest = text.partition("\n")
        command = command_line.rstrip("\r")
        if command not in CLIENT_COMMANDS and command not in SERVER_COMMANDS:
            raise StompProtocolError(f"Unknown STOMP command: {command!r}")

        escaped = command not in _UNESCAPED_COMMANDS
        headers: dict[str, str] = {}
        while rest:
            line, newline, rest = rest.partition("\n")
            line = line.rstrip("\r")
            if not line:
                break
            if not newline:
                raise StompProtocolError("Frame headers are not terminated")
            name, colon, value = line.partition(":")
            if not colon:
                raise StompProtocolError(f"Malformed header line: {line!r}")
            if escaped:
                name, value = _unescape(name), _unescape(value)
            # Repeated headers: the first occurrence wins.
            headers.setdefault(name, value)

        body = rest
        content_length = headers.get("content-length")
        if content_length is not None:
            try:
                length = int(content_length)
            except ValueError as exc:
                raise StompProtocolError("Invalid content-length header") from exc
            body = body.encode("utf-8")[:length].decode("utf-8", errors="replace")
        return cls(command=command, headers=headers, body=body)


def parse_frames(data: str) -> list[StompFrame]:
    """Split a WebSocket text message into frames, skipping heart-beats."""

    frames: list[StompFrame] = []
    for chunk in data.split(NULL):
        if not chunk.strip("\r\n"):
            continue
        frames.append(StompFrame.parse(chunk))
    return frames


def negotiate_version(accept_version: str | None) -> str | None:
    """Return the highest mutually supported protocol version."""

    if not accept_version:
        return "1.0"
    offered = {version.strip() for version in accept_version.split(",")}
    for version in SUPPORTED_VERSIONS:
        if version in offered:
            return version
    return None


def negotiate_subprotocol(offered: list[str]) -> str | None:
    for subprotocol in offered:
        if subprotocol in SUPPORTED_SUBPROTOCOLS:
            return subprotocol
    return None


def connected_frame(version: str, *, user_name: str | None = None) -> StompFrame:
    headers = {"version": version, "heart-beat": "0,0"}
    if user_name:
        headers["user-name"] = user_name
    return StompFrame(CONNECTED, headers)


def receipt_frame(receipt_id: str) -> StompFrame:
    return StompFrame(RECEIPT, {"receipt-id": receipt_id})


def error_frame(message: str, *, detail: str = "", receipt_id: str | None = None) -> StompFrame:
    headers = {"message": message, "content-type": "text/plain"}
    if receipt_id:
        headers["receipt-id"] = receipt_id
    return StompFrame(ERROR, headers, detail)


def message_frame(
    destination: str, subscription_id: str, message_id: str, body: str
) -> StompFrame:
    return StompFrame(
        MESSAGE,
        {
            "destination": destination,
            "subscription": subscription_id,
            "message-id": message_id,
            "content-type": "application/json",
        },
        body,
    )
