import pytest

from pegasocks.crypto import (
    SS_INFO,
    CipherType,
    Cryptor,
    Direction,
    aes_128_cfb_decrypt,
    cipher_info,
    hkdf_sha1,
)
from pegasocks.shadowsocks import MAX_PAYLOAD, ShadowsocksCodec, ShadowsocksError

CMD = b"\x05\x01\x00\x01\x7f\x00\x00\x01\x00\x50"
ADDRESS = CMD[3:]

ALL = [
    CipherType.AES_128_CFB,
    CipherType.AEAD_AES_128_GCM,
    CipherType.AEAD_AES_256_GCM,
    CipherType.AEAD_CHACHA20_POLY1305,
]
AEAD = ALL[1:]


def _ikm(cipher):
    return bytes(range(cipher_info(cipher).key_len))


def _pair(cipher):
    ikm = _ikm(cipher)
    return ShadowsocksCodec(cipher, ikm, CMD), ShadowsocksCodec(cipher, ikm, CMD)


@pytest.mark.parametrize("cipher", ALL)
def test_round_trip_carries_address_first(cipher):
    sender, receiver = _pair(cipher)
    assert receiver.decode(sender.encode(b"hello")) == ADDRESS + b"hello"
    assert receiver.decode(sender.encode(b"world")) == b"world"


@pytest.mark.parametrize("cipher", ALL)
def test_stream_starts_with_salt(cipher):
    sender, _ = _pair(cipher)
    out = sender.encode(b"data")
    assert out.startswith(sender.salt)
    assert not sender.encode(b"more").startswith(sender.salt)


@pytest.mark.parametrize("cipher", AEAD)
def test_aead_chunk_length(cipher):
    sender, _ = _pair(cipher)
    key_len, _, tag_len = cipher_info(cipher)
    first = sender.encode(b"hello")
    assert len(first) == key_len + 2 + tag_len + len(ADDRESS) + 5 + tag_len
    second = sender.encode(b"hello")
    assert len(second) == 2 + tag_len + 5 + tag_len


def test_aead_length_prefix_uses_hkdf_subkey():
    cipher = CipherType.AEAD_CHACHA20_POLY1305
    ikm = _ikm(cipher)
    out = ShadowsocksCodec(cipher, ikm, CMD).encode(b"hello")
    key = hkdf_sha1(out[:32], ikm, SS_INFO, 32)
    opener = Cryptor(cipher, Direction.DECRYPT, key, bytes(12))
    length = opener.decrypt(out[32:34], out[34:50])
    assert int.from_bytes(length, "big") == len(ADDRESS) + 5


def test_stream_cipher_matches_one_shot_cfb():
    cipher = CipherType.AES_128_CFB
    ikm = _ikm(cipher)
    codec = ShadowsocksCodec(cipher, ikm, CMD)
    out = codec.encode(b"hello")
    assert len(out) == 16 + len(ADDRESS) + 5
    assert aes_128_cfb_decrypt(out[16:], ikm, codec.salt) == ADDRESS + b"hello"


@pytest.mark.parametrize("cipher", AEAD)
def test_decode_byte_by_byte(cipher):
    sender, receiver = _pair(cipher)
    wire = sender.encode(b"abc") + sender.encode(b"defg")
    key_len = cipher_info(cipher).key_len
    received = receiver.decode(wire[:key_len])
    for byte in wire[key_len:]:
        received += receiver.decode(bytes([byte]))
    assert received == ADDRESS + b"abcdefg"


@pytest.mark.parametrize("cipher", AEAD)
def test_empty_payload_chunk_round_trips(cipher):
    sender, receiver = _pair(cipher)
    wire = sender.encode(b"x") + sender.encode(b"") + sender.encode(b"y")
    assert receiver.decode(wire) == ADDRESS + b"xy"


@pytest.mark.parametrize("cipher", AEAD)
def test_tampered_chunk_is_rejected(cipher):
    sender, receiver = _pair(cipher)
    wire = bytearray(sender.encode(b"hello"))
    wire[-1] ^= 0x01
    with pytest.raises(ShadowsocksError):
        receiver.decode(bytes(wire))


@pytest.mark.parametrize("cipher", AEAD)
def test_short_salt_is_rejected(cipher):
    _, receiver = _pair(cipher)
    with pytest.raises(ShadowsocksError):
        receiver.decode(b"\x00" * 4)


def test_short_iv_is_rejected():
    _, receiver = _pair(CipherType.AES_128_CFB)
    with pytest.raises(ShadowsocksError):
        receiver.decode(b"\x00" * 8)


@pytest.mark.parametrize("cipher", AEAD)
def test_oversized_payload_is_rejected(cipher):
    sender, receiver = _pair(cipher)
    with pytest.raises(ShadowsocksError):
        sender.encode(b"\x00" * (MAX_PAYLOAD + 1))
    # a refused payload leaves the salt still to be sent
    assert receiver.decode(sender.encode(b"ok")) == ADDRESS + b"ok"


def test_wrong_key_material_length():
    with pytest.raises(ShadowsocksError):
        ShadowsocksCodec(CipherType.AEAD_AES_128_GCM, b"\x00" * 5, CMD)


def test_short_command_is_rejected():
    with pytest.raises(ShadowsocksError):
        ShadowsocksCodec(CipherType.AES_128_CFB, bytes(16), b"\x05")