"""The trojan framing: a request head before the first data, and UDP packets."""

from __future__ import annotations

_ATYPE_IPV4 = 0x01
_ATYPE_DOMAIN = 0x03
_ATYPE_IPV6 = 0x04


class TrojanError(Exception):
    """Raised when trojan data is malformed."""


def address_length(data) -> int:
    """Length of the socks5 address that follows the address type in ``data[0]``."""
    data = bytes(data)
    if not data:
        raise TrojanError("missing address type")
    atype = data[0]
    if atype == _ATYPE_IPV4:
        return 4
    if atype == _ATYPE_IPV6:
        return 16
    if atype == _ATYPE_DOMAIN:
        if len(data) < 2:
            raise TrojanError("missing domain length")
        return 1 + data[1]
    raise TrojanError(f"unknown address type {atype:#04x}")


def decode_udp_packet(data) -> bytes:
    """Turn a trojan UDP packet into a socks5 UDP reply.

    Trojan: ``[atype][addr][port][length(2)][CRLF][payload]``.
    Socks5: ``[0x00 0x00][frag 0x00][atype][addr][port][payload]``.
    """
    data = bytes(data)
    addr_len = 1 + 2 + address_length(data)
    if len(data) < addr_len + 4:
        raise TrojanError("payload too large or invalid response")
    payload_len = int.from_bytes(data[addr_len:addr_len + 2], "big")
    if (
        len(data) < addr_len + 4 + payload_len
        or data[addr_len + 2:addr_len + 4] != b"\r\n"
    ):
        raise TrojanError("payload too large or invalid response")
    start = addr_len + 4
    return b"\x00\x00\x00" + data[:addr_len] + data[start:start + payload_len]


class TrojanCodec:
    """Prepends the request head to the first outgoing data.

    Set ``udp`` once the session relays UDP; ``decode`` then unpacks
    trojan UDP packets instead of passing the stream through.
    """

    def __init__(self, head):
        self.head = bytes(head)
        self.udp = False

    def encode(self, data) -> bytes:
        """Return the bytes to send to the server for ``data``."""
        out = self.head + bytes(data)
        self.head = b""
        return out

    def decode(self, data) -> bytes:
        """Return what to hand to the local client for ``data``."""
        if self.udp:
            return decode_udp_packet(data)
        return bytes(data)