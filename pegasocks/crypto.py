"""Ciphers, digests and key derivation used by the proxy protocols."""

from __future__ import annotations

import hashlib
import hmac
import os
from enum import Enum, IntEnum
from typing import NamedTuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

MD5_LEN = 16
SS_INFO = b"ss-subkey"

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


class CryptoError(Exception):
    """Raised when a cipher cannot be set up or an operation fails."""


class CipherType(IntEnum):
    """Supported ciphers; the value is the security byte used on the wire."""

    AES_128_CFB = 0x01
    AEAD_AES_128_GCM = 0x03
    AEAD_CHACHA20_POLY1305 = 0x04
    AEAD_AES_256_GCM = 0x06


class Direction(Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class CipherInfo(NamedTuple):
    key_len: int
    iv_len: int
    tag_len: int


_CIPHER_INFO = {
    CipherType.AES_128_CFB: CipherInfo(16, 16, 0),
    CipherType.AEAD_AES_128_GCM: CipherInfo(16, 12, 16),
    CipherType.AEAD_AES_256_GCM: CipherInfo(32, 12, 16),
    CipherType.AEAD_CHACHA20_POLY1305: CipherInfo(32, 12, 16),
}


def cipher_info(cipher: CipherType) -> CipherInfo:
    """Return key, iv and tag lengths of a cipher."""
    try:
        return _CIPHER_INFO[CipherType(cipher)]
    except (KeyError, ValueError) as exc:
        raise CryptoError(f"unsupported cipher: {cipher!r}") from exc


def is_aead(cipher: CipherType) -> bool:
    """True for authenticated ciphers."""
    return CipherType(cipher) is not CipherType.AES_128_CFB


class Cryptor:
    """A cipher bound to one key and one direction.

    AES-128-CFB is a stream: successive calls continue the keystream.
    AEAD ciphers seal each message separately with the current iv.
    """

    def __init__(self, cipher, direction, key, iv):
        self.cipher = CipherType(cipher)
        self.direction = Direction(direction)
        self.key_len, self.iv_len, self.tag_len = cipher_info(self.cipher)
        key = bytes(key)
        if len(key) != self.key_len:
            raise CryptoError(
                f"{self.cipher.name} needs a {self.key_len}-byte key, got {len(key)}"
            )
        self.key = key
        self._aead = None
        if self.cipher is CipherType.AEAD_CHACHA20_POLY1305:
            self._aead = ChaCha20Poly1305(key)
        elif self.cipher in (CipherType.AEAD_AES_128_GCM, CipherType.AEAD_AES_256_GCM):
            self._aead = AESGCM(key)
        self._stream = None
        self.iv = b""
        self.reset_iv(iv)

    def reset_iv(self, iv) -> None:
        """Install a new iv; a stream cipher restarts its keystream."""
        iv = bytes(iv)
        if len(iv) != self.iv_len:
            raise CryptoError(
                f"{self.cipher.name} needs a {self.iv_len}-byte iv, got {len(iv)}"
            )
        self.iv = iv
        if self._aead is None:
            ctx = Cipher(algorithms.AES(self.key), modes.CFB(iv))
            self._stream = (
                ctx.encryptor()
                if self.direction is Direction.ENCRYPT
                else ctx.decryptor()
            )

    def _require(self, direction: Direction) -> None:
        if self.direction is not direction:
            raise CryptoError(f"cryptor was created for {self.direction.value}")

    def encrypt(self, plaintext) -> tuple[bytes, bytes]:
        """Encrypt and return ``(ciphertext, tag)``; the tag is empty for CFB."""
        self._require(Direction.ENCRYPT)
        plaintext = bytes(plaintext)
        if self._aead is None:
            return self._stream.update(plaintext), b""
        sealed = self._aead.encrypt(self.iv, plaintext, None)
        return sealed[: -self.tag_len], sealed[-self.tag_len:]

    def decrypt(self, ciphertext, tag=None) -> bytes:
        """Decrypt; AEAD ciphers check ``tag`` and raise CryptoError on mismatch."""
        self._require(Direction.DECRYPT)
        ciphertext = bytes(ciphertext)
        if self._aead is None:
            return self._stream.update(ciphertext)
        if tag is None or len(tag) != self.tag_len:
            raise CryptoError(f"{self.cipher.name} needs a {self.tag_len}-byte tag")
        try:
            return self._aead.decrypt(self.iv, ciphertext + bytes(tag), None)
        except InvalidTag as exc:
            raise CryptoError("authentication failed") from exc


def rand_bytes(num: int) -> bytes:
    """Return ``num`` cryptographically random bytes."""
    return os.urandom(num)


def sha224(data) -> bytes:
    return hashlib.sha224(bytes(data)).digest()


def md5(data) -> bytes:
    return hashlib.md5(bytes(data)).digest()


def sha1(data) -> bytes:
    return hashlib.sha1(bytes(data)).digest()


def hmac_md5(key, data) -> bytes:
    return hmac.new(bytes(key), bytes(data), hashlib.md5).digest()


def _cfb(key, iv, encrypt: bool):
    try:
        ctx = Cipher(algorithms.AES(bytes(key)), modes.CFB(bytes(iv)))
    except ValueError as exc:
        raise CryptoError(str(exc)) from exc
    key_len, iv_len, _ = _CIPHER_INFO[CipherType.AES_128_CFB]
    if len(key) != key_len or len(iv) != iv_len:
        raise CryptoError("AES-128-CFB needs a 16-byte key and a 16-byte iv")
    return ctx.encryptor() if encrypt else ctx.decryptor()


def aes_128_cfb_encrypt(plaintext, key, iv) -> bytes:
    """One-shot AES-128-CFB encryption."""
    ctx = _cfb(key, iv, True)
    return ctx.update(bytes(plaintext)) + ctx.finalize()


def aes_128_cfb_decrypt(ciphertext, key, iv) -> bytes:
    """One-shot AES-128-CFB decryption."""
    ctx = _cfb(key, iv, False)
    return ctx.update(bytes(ciphertext)) + ctx.finalize()


def hkdf_sha1(salt, ikm, info, length: int) -> bytes:
    """HKDF extract-and-expand with SHA-1."""
    try:
        return HKDF(
            algorithm=hashes.SHA1(), length=length, salt=bytes(salt), info=bytes(info)
        ).derive(bytes(ikm))
    except ValueError as exc:
        raise CryptoError(str(exc)) from exc


def fnv1a(data) -> int:
    """32-bit FNV-1a hash."""
    h = _FNV_OFFSET
    for byte in bytes(data):
        h = ((h ^ byte) * _FNV_PRIME) & 0xFFFFFFFF
    return h


def increase_nonce(nonce) -> bytes:
    """Add one to a little-endian nonce, wrapping on overflow."""
    size = len(nonce)
    value = (int.from_bytes(bytes(nonce), "little") + 1) % (1 << (8 * size))
    return value.to_bytes(size, "little")