"""The shadowsocks stream and AEAD framing between the client and the server."""

from __future__ import annotations

from .crypto import (
    SS_INFO,
    CipherType,
    CryptoError,
    Cryptor,
    Direction,
    cipher_info,
    hkdf_sha1,
    increase_nonce,
    is_aead,
    rand_bytes,
)

MAX_PAYLOAD = 0x3FFF
_CMD_HEAD = 3  # socks5 ver, cmd, rsv


class ShadowsocksError(Exception):
    """Raised when a shadowsocks stream cannot be encoded or decoded."""


class ShadowsocksCodec:
    """Encodes client data for the server and decodes the server's replies.

    ``cmd`` is the socks5 request; its address part (from the address type
    onward) is sent in front of the first payload. ``salt`` holds the bytes
    that open the outgoing stream: the salt of an AEAD cipher or the iv of
    the stream cipher.
    """

    def __init__(self, cipher, ikm, cmd):
        self.cipher = CipherType(cipher)
        self.key_len, self.iv_len, self.tag_len = cipher_info(self.cipher)
        ikm = bytes(ikm)
        if len(ikm) != self.key_len:
            raise ShadowsocksError(
                f"{self.cipher.name} needs {self.key_len} bytes of key material, got {len(ikm)}"
            )
        cmd = bytes(cmd)
        if len(cmd) < _CMD_HEAD:
            raise ShadowsocksError("socks5 command is too short")
        self.ikm = ikm
        self.address = cmd[_CMD_HEAD:]
        self.aead = is_aead(self.cipher)
        self._prefix_sent = False
        self._decryptor: Cryptor | None = None
        self._dec_nonce = bytes(self.iv_len)
        self._rbuf = bytearray()
        self._plen: int | None = None

        if self.aead:
            self.salt = rand_bytes(self.key_len)
            key = hkdf_sha1(self.salt, ikm, SS_INFO, self.key_len)
            self._enc_nonce = bytes(self.iv_len)
            self._encryptor = Cryptor(self.cipher, Direction.ENCRYPT, key, self._enc_nonce)
        else:
            self.salt = rand_bytes(self.iv_len)
            self._encryptor = Cryptor(self.cipher, Direction.ENCRYPT, ikm, self.salt)

    # ---------------------------------------------------------------- encode
    def encode(self, data) -> bytes:
        """Return the bytes to send to the server for ``data``."""
        data = bytes(data)
        if self.aead:
            return self._encode_aead(data)
        return self._encode_stream(data)

    def _encode_stream(self, data: bytes) -> bytes:
        if self._prefix_sent:
            ciphertext, _ = self._encryptor.encrypt(data)
            return ciphertext
        ciphertext, _ = self._encryptor.encrypt(self.address + data)
        self._prefix_sent = True
        return self.salt + ciphertext

    def _seal(self, plaintext: bytes) -> bytes:
        ciphertext, tag = self._encryptor.encrypt(plaintext)
        self._enc_nonce = increase_nonce(self._enc_nonce)
        self._encryptor.reset_iv(self._enc_nonce)
        return ciphertext + tag

    def _encode_aead(self, data: bytes) -> bytes:
        payload = data if self._prefix_sent else self.address + data
        if len(payload) > MAX_PAYLOAD:
            raise ShadowsocksError(
                f"payload of {len(payload)} bytes exceeds {MAX_PAYLOAD}"
            )
        head = b"" if self._prefix_sent else self.salt
        chunk = self._seal(len(payload).to_bytes(2, "big")) + self._seal(payload)
        self._prefix_sent = True
        return head + chunk

    # ---------------------------------------------------------------- decode
    def decode(self, data) -> bytes:
        """Return the plaintext carried by ``data`` received from the server.

        AEAD chunks that are not complete yet are kept until more data comes.
        """
        data = bytes(data)
        if self.aead:
            return self._decode_aead(data)
        return self._decode_stream(data)

    def _decode_stream(self, data: bytes) -> bytes:
        if self._decryptor is None:
            if len(data) < self.iv_len:
                raise ShadowsocksError("need data for iv")
            self._decryptor = Cryptor(
                self.cipher, Direction.DECRYPT, self.ikm, data[: self.iv_len]
            )
            data = data[self.iv_len:]
        return self._decryptor.decrypt(data)

    def _open(self, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return self._decryptor.decrypt(ciphertext, tag)
        except CryptoError as exc:
            raise ShadowsocksError(f"chunk failed to decrypt: {exc}") from exc
        finally:
            self._dec_nonce = increase_nonce(self._dec_nonce)
            self._decryptor.reset_iv(self._dec_nonce)

    def _decode_aead(self, data: bytes) -> bytes:
        self._rbuf += data
        if self._decryptor is None:
            if len(self._rbuf) < self.key_len:
                raise ShadowsocksError(
                    f"need at least {self.key_len} bytes for salt"
                )
            salt = bytes(self._rbuf[: self.key_len])
            del self._rbuf[: self.key_len]
            key = hkdf_sha1(salt, self.ikm, SS_INFO, self.key_len)
            self._decryptor = Cryptor(self.cipher, Direction.DECRYPT, key, self._dec_nonce)

        out = bytearray()
        tag_len = self.tag_len
        while True:
            if self._plen is None:
                need = 2 + tag_len
                if len(self._rbuf) < need:
                    break
                length = self._open(bytes(self._rbuf[:2]), bytes(self._rbuf[2:need]))
                del self._rbuf[:need]
                self._plen = int.from_bytes(length, "big")
            else:
                plen = self._plen
                need = plen + tag_len
                if len(self._rbuf) < need:
                    break
                out += self._open(bytes(self._rbuf[:plen]), bytes(self._rbuf[plen:need]))
                del self._rbuf[:need]
                self._plen = None
        return bytes(out)