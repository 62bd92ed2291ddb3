"""Ciphers, ACLs, a logging queue and protocol codecs for a proxy client."""

__version__ = "0.1.0"

__all__ = [
    "acl",
    "crypto",
    "log",
    "mpsc",
    "shadowsocks",
    "trojan",
    "vmess",
    "websocket",
]