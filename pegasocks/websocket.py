"""The client side of the websocket handshake and frame format."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import cycle

WS_UPGRADE = "HTTP/1.1 101"
WS_KEY = "dGhlIHNhbXBsZSBub25jZQ=="
WS_ACCEPT = "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


@dataclass(frozen=True)
class WsFrame:
    """A parsed frame; ``payload`` is already unmasked."""

    fin: bool
    opcode: int
    mask: bool
    payload_len: int
    header_len: int
    payload: bytes

    @property
    def frame_len(self) -> int:
        return self.header_len + self.payload_len


def build_request(hostname: str, server_address: str, server_port: int, path: str) -> bytes:
    """Return the HTTP upgrade request that opens the websocket."""
    lines = [
        f"GET {path} HTTP/1.1",
        f"Host:{hostname}:{server_port}",
        "Upgrade:websocket",
        "Connection:upgrade",
        f"Sec-WebSocket-Key:{WS_KEY}",
        "Sec-WebSocket-Version:13",
        # Servers answer 403 without an Origin header.
        f"Origin:https://{server_address}:{server_port}",
        "",
        "",
    ]
    return "\r\n".join(lines).encode()


def upgrade_failed(data) -> bool:
    """True if ``data`` is not a successful upgrade response."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        data = bytes(data).decode("latin-1")
    return not data.startswith(WS_UPGRADE) or WS_ACCEPT not in data


def write_head(length: int, opcode: int) -> bytes:
    """Return a final, masked frame header with an all-zero mask key."""
    if length < 0 or length >= 1 << 64:
        raise ValueError(f"payload length out of range: {length}")
    first = 0x80 | (opcode & 0x0F)
    if length < 126:
        head = bytes([first, 0x80 | length])
    elif length < 1 << 16:
        head = bytes([first, 0x80 | 126]) + length.to_bytes(2, "big")
    else:
        head = bytes([first, 0x80 | 127]) + length.to_bytes(8, "big")
    # The link is under TLS, so a zero mask key leaves the payload as is.
    return head + bytes(4)


def write_frame(message, opcode: int) -> bytes:
    """Return a whole frame carrying ``message``."""
    message = bytes(message)
    return write_head(len(message), opcode) + message


def parse_head(data) -> WsFrame | None:
    """Parse one frame from the start of ``data``; None if it is incomplete."""
    data = bytes(data)
    if len(data) < 2:
        return None
    fin = bool(data[0] & 0x80)
    opcode = data[0] & 0x0F
    mask = bool(data[1] & 0x80)
    payload_len = data[1] & 0x7F
    header_len = 2 + (4 if mask else 0)

    if payload_len == 126:
        header_len += 2
        if header_len > len(data):
            return None
        payload_len = int.from_bytes(data[2:4], "big")
    elif payload_len == 127:
        header_len += 8
        if header_len > len(data):
            return None
        payload_len = int.from_bytes(data[2:10], "big")
    elif header_len > len(data):
        return None

    end = header_len + payload_len
    if end > len(data):
        return None
    payload = data[header_len:end]
    if mask:
        key = data[header_len - 4:header_len]
        payload = bytes(b ^ k for b, k in zip(payload, cycle(key)))
    return WsFrame(fin, opcode, mask, payload_len, header_len, payload)