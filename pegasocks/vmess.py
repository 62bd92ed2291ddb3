"""The vmess request header and the framing of the data that follows it."""

from __future__ import annotations

import time
import uuid as uuidlib

from .crypto import (
    CipherType,
    CryptoError,
    Cryptor,
    Direction,
    aes_128_cfb_decrypt,
    aes_128_cfb_encrypt,
    fnv1a,
    hmac_md5,
    md5,
    rand_bytes,
)
from .trojan import TrojanError, address_length

VMESS_KEY_SUFFIX = b"c48619fe-8f02-49e0-b9e9-edf763e17e21"
FRAME_SIZE = 16 * 1024

_SUPPORTED = (
    CipherType.AES_128_CFB,
    CipherType.AEAD_AES_128_GCM,
    CipherType.AEAD_CHACHA20_POLY1305,
)
_CFB_OVERHEAD = 6  # length(2) + fnv1a(4)
_TAG_LEN = 16
_AEAD_OVERHEAD = 2 + _TAG_LEN
_CMD_HEAD = 3  # socks5 ver, cmd, rsv (or udp rsv(2), frag)


class VmessError(Exception):
    """Raised when a vmess request cannot be built or a response is malformed."""


def _parse_uuid(value) -> bytes:
    if isinstance(value, str):
        try:
            return uuidlib.UUID(value).bytes
        except ValueError as exc:
            raise VmessError(f"invalid uuid {value!r}") from exc
    raw = bytes(value)
    if len(raw) != 16:
        raise VmessError(f"uuid must be 16 bytes, got {len(raw)}")
    return raw


def _parse_target(cmd: bytes) -> bytes:
    """Return ``[atype][addr][port]`` from a socks5 request or UDP header."""
    if len(cmd) <= _CMD_HEAD:
        raise VmessError("socks5 command is too short")
    try:
        addr_len = address_length(cmd[_CMD_HEAD:])
    except TrojanError as exc:
        raise VmessError(str(exc)) from exc
    end = _CMD_HEAD + 1 + addr_len + 2
    if len(cmd) < end:
        raise VmessError("socks5 command is too short")
    return cmd[_CMD_HEAD:end]


def _data_key(cipher: CipherType, key: bytes) -> bytes:
    if cipher is CipherType.AEAD_CHACHA20_POLY1305:
        first = md5(key)
        return first + md5(first)
    return key


def _nonce(counter: int, iv: bytes) -> bytes:
    return counter.to_bytes(2, "big") + iv[2:12]


class VmessCodec:
    """Encodes client data for a vmess server and decodes its replies.

    ``cmd`` is the socks5 request (or, once ``udp`` is set, the header of a
    socks5 UDP packet) naming the target. The request header is sent in
    front of the first data.
    """

    def __init__(self, uuid, cipher, cmd):
        self.uuid = _parse_uuid(uuid)
        try:
            self.cipher = CipherType(cipher)
        except ValueError as exc:
            raise VmessError(f"unknown cipher {cipher!r}") from exc
        if self.cipher not in _SUPPORTED:
            raise VmessError(f"{self.cipher.name} is not supported by vmess")
        self.target = _parse_target(bytes(cmd))
        self.udp = False
        self.header_sent = False
        self.finished = False
        self.key = b""
        self.iv = b""
        self.v = 0
        self._rkey = b""
        self._riv = b""
        self._encryptor: Cryptor | None = None
        self._decryptor: Cryptor | None = None
        self._enc_key = b""
        self._dec_key = b""
        self._enc_counter = 0
        self._dec_counter = 0
        self._rbuf = bytearray()
        self._header_recved = False
        self._resp_len: int | None = None
        self._hash_pending = False

    @property
    def _cfb(self) -> bool:
        return self.cipher is CipherType.AES_128_CFB

    # ------------------------------------------------------------- request
    def build_head(self, now) -> bytes:
        """Return the request header for time ``now`` and set up fresh data keys."""
        ts = int(now).to_bytes(8, "big")
        auth = hmac_md5(self.uuid, ts)

        self.iv = rand_bytes(16)
        self.key = rand_bytes(16)
        self.v = rand_bytes(1)[0]
        self._init_cryptors()

        atype = self.target[0]
        wire_atype = 0x01 if atype == 0x01 else atype - 1
        addr = self.target[1:-2]
        port = self.target[-2:]
        command = 0x02 if self.udp else 0x01
        raw = (
            b"\x01"
            + self.iv
            + self.key
            + bytes([self.v, 0x01, int(self.cipher), 0x00, command])
            + port
            + bytes([wire_atype])
            + addr
        )
        raw += fnv1a(raw).to_bytes(4, "big")

        cmd_key = md5(self.uuid + VMESS_KEY_SUFFIX)
        cmd_iv = md5(ts * 4)
        return auth + aes_128_cfb_encrypt(raw, cmd_key, cmd_iv)

    def _init_cryptors(self) -> None:
        self._riv = md5(self.iv)
        self._rkey = md5(self.key)
        self._enc_counter = 0
        self._dec_counter = 0
        if self._cfb:
            self._encryptor = Cryptor(self.cipher, Direction.ENCRYPT, self.key, self.iv)
            self._decryptor = Cryptor(self.cipher, Direction.DECRYPT, self._rkey, self._riv)
            return
        self._enc_key = _data_key(self.cipher, self.key)
        self._dec_key = _data_key(self.cipher, self._rkey)
        self._encryptor = Cryptor(
            self.cipher, Direction.ENCRYPT, self._enc_key, _nonce(0, self.iv)
        )
        self._decryptor = Cryptor(
            self.cipher, Direction.DECRYPT, self._dec_key, _nonce(0, self._riv)
        )

    # -------------------------------------------------------------- encode
    def encode(self, data) -> bytes:
        """Return the bytes to send to the server for ``data``."""
        data = bytes(data)
        if not data:
            return b""
        head = b""
        if not self.header_sent:
            head = self.build_head(time.time())
            self.header_sent = True
        out = bytearray(head)
        overhead = _CFB_OVERHEAD if self._cfb else _AEAD_OVERHEAD
        head_len = len(head)
        offset = 0
        while offset < len(data):
            room = FRAME_SIZE - head_len - overhead
            chunk = data[offset:offset + room]
            out += self._seal_frame(chunk)
            offset += len(chunk)
            head_len = 0
        return bytes(out)

    def _seal_frame(self, chunk: bytes) -> bytes:
        if self._cfb:
            plain = (
                (len(chunk) + 4).to_bytes(2, "big")
                + fnv1a(chunk).to_bytes(4, "big")
                + chunk
            )
            ciphertext, _ = self._encryptor.encrypt(plain)
            return ciphertext
        ciphertext, tag = self._encryptor.encrypt(chunk)
        self._enc_counter = (self._enc_counter + 1) & 0xFFFF
        self._encryptor.reset_iv(_nonce(self._enc_counter, self.iv))
        return (len(chunk) + _TAG_LEN).to_bytes(2, "big") + ciphertext + tag

    # -------------------------------------------------------------- decode
    def decode(self, data) -> bytes:
        """Return the plaintext carried by ``data`` received from the server.

        Incomplete parts are kept until more data arrives. In UDP mode the
        plaintext is wrapped in a socks5 UDP reply.
        """
        if self._decryptor is None:
            raise VmessError("no request has been sent")
        if self.finished:
            return b""
        self._rbuf += bytes(data)
        out = bytearray()
        if self._cfb:
            self._decode_cfb(out)
        else:
            self._decode_aead(out)
        payload = bytes(out)
        if self.udp and payload:
            return b"\x00\x00\x00" + self.target + payload
        return payload

    def _take(self, size: int) -> bytes:
        chunk = bytes(self._rbuf[:size])
        del self._rbuf[:size]
        return chunk

    def _finish(self) -> None:
        self.finished = True
        self._rbuf.clear()

    def _check_meta(self, meta: bytes) -> None:
        if meta[0] != self.v:
            raise VmessError("response does not match the request")
        if meta[3] != 0:
            raise VmessError("response commands are not supported")
        self._header_recved = True
        self._resp_len = None

    def _decode_cfb(self, out: bytearray) -> None:
        dec = self._decryptor
        while True:
            if not self._header_recved:
                if len(self._rbuf) < 4:
                    return
                self._check_meta(dec.decrypt(self._take(4)))
            elif self._resp_len is None:
                if len(self._rbuf) < 2:
                    return
                length = int.from_bytes(dec.decrypt(self._take(2)), "big")
                if length in (0, 4):
                    self._finish()
                    return
                if length < 4:
                    raise VmessError(f"invalid frame length {length}")
                self._resp_len = length - 4
                self._hash_pending = True
            elif self._hash_pending:
                if len(self._rbuf) < 4:
                    return
                dec.decrypt(self._take(4))
                self._hash_pending = False
            else:
                if not self._rbuf:
                    return
                size = min(self._resp_len, len(self._rbuf))
                out += dec.decrypt(self._take(size))
                self._resp_len -= size
                if self._resp_len == 0:
                    self._resp_len = None

    def _decode_aead(self, out: bytearray) -> None:
        while True:
            if not self._header_recved:
                if len(self._rbuf) < 4:
                    return
                meta = aes_128_cfb_decrypt(self._take(4), self._rkey, self._riv)
                self._check_meta(meta)
            elif self._resp_len is None:
                if len(self._rbuf) < 2:
                    return
                length = int.from_bytes(self._take(2), "big")
                if length in (0, _TAG_LEN):
                    self._finish()
                    return
                if length < _TAG_LEN:
                    raise VmessError(f"invalid frame length {length}")
                self._resp_len = length - _TAG_LEN
            else:
                if len(self._rbuf) < self._resp_len + _TAG_LEN:
                    return
                ciphertext = self._take(self._resp_len)
                tag = self._take(_TAG_LEN)
                try:
                    out += self._decryptor.decrypt(ciphertext, tag)
                except CryptoError as exc:
                    raise VmessError(f"frame failed to decrypt: {exc}") from exc
                finally:
                    self._dec_counter = (self._dec_counter + 1) & 0xFFFF
                    self._decryptor.reset_iv(_nonce(self._dec_counter, self._riv))
                self._resp_len = None