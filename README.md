# pegasocks

The pieces that a proxy client needs to talk to upstream servers, as a plain
Python library. Every codec works on `bytes` in and `bytes` out. Sockets are
left to the caller.

- `pegasocks.crypto` provides `Cryptor`, which covers AES-128-CFB, AES-128-GCM,
  AES-256-GCM and ChaCha20-Poly1305 through `CipherType` and `Direction`. It
  also has the helpers the protocols use: `md5`, `sha1`, `sha224`,
  `hmac_md5`, `hkdf_sha1`, `fnv1a`, `aes_128_cfb_encrypt`,
  `aes_128_cfb_decrypt`, `increase_nonce`, `rand_bytes`, `cipher_info` and
  `is_aead`. Failures raise `CryptoError`.
- `pegasocks.mpsc` provides `Mpsc`, a bounded queue that never blocks. `send`
  returns `False` when the queue is full, and `recv` returns `None` when it is
  empty.
- `pegasocks.log` provides `Logger`. It formats records and pushes them onto an
  `Mpsc`, and `try_recv` writes them all out from one thread. `main_log`
  writes a record straight to a stream. Both add colour codes when the output
  is a terminal.
- `pegasocks.acl` provides `Acl`, built with `Acl.parse(text)` or
  `Acl.load(path)` from an ACL file in the shadowsocks format. An ACL holds
  IPv4 and IPv6 addresses, CIDR networks, and regular expressions for host
  names, in a bypass list and a proxy list. `match_host_bypass` and
  `match_host_proxy` check a host against each list.
- `pegasocks.websocket` provides `build_request` for the upgrade request,
  `upgrade_failed` to check the server's answer, `write_head` and
  `write_frame` for masked client frames, and `parse_head`. `parse_head`
  returns a `WsFrame` with its payload already unmasked, or `None` while the
  frame is incomplete.
- `pegasocks.shadowsocks` provides `ShadowsocksCodec`, which handles both the
  stream cipher and the AEAD chunked framing.
- `pegasocks.trojan` provides `TrojanCodec`, `decode_udp_packet` and
  `address_length`.
- `pegasocks.vmess` provides `VmessCodec`, which supports AES-128-CFB,
  AES-128-GCM and ChaCha20-Poly1305.

## Install

```
pip install .
```

Install with the `test` extra to also get the test runner, then run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Encrypting and decrypting with an AEAD cryptor:

```python
from pegasocks.crypto import CipherType, Cryptor, Direction

key = bytes(range(16))
iv = bytes(12)
enc = Cryptor(CipherType.AEAD_AES_128_GCM, Direction.ENCRYPT, key, iv)
ciphertext, tag = enc.encrypt(b"hello")

dec = Cryptor(CipherType.AEAD_AES_128_GCM, Direction.DECRYPT, key, iv)
assert dec.decrypt(ciphertext, tag) == b"hello"
```

Matching hosts against an ACL:

```python
from pegasocks.acl import Acl

acl = Acl.parse("""
[bypass_list]
10.0.0.0/8
(^|\\.)example\\.com$
""")
assert acl.match_host_bypass("10.1.2.3")
assert acl.match_host_bypass("www.example.com")
assert not acl.match_host_proxy("www.example.com")
```

Logging through the queue:

```python
import sys
from pegasocks.log import Logger, LogLevel
from pegasocks.mpsc import Mpsc

logger = Logger(Mpsc(64), LogLevel.INFO, isatty=False)
logger.info("listening")
logger.try_recv(sys.stdout)
```

Framing data for a websocket:

```python
from pegasocks.websocket import parse_head, write_frame

frame = parse_head(write_frame(b"payload", 0x2))
assert frame.payload == b"payload"
```

Each codec's `encode(data)` returns the bytes to send to the server, and its
`decode(data)` returns what to hand back to the local client. They take these
arguments:

- `ShadowsocksCodec(cipher, ikm, cmd)`
- `TrojanCodec(head)`
- `VmessCodec(uuid, cipher, cmd)`

Here `cmd` is the socks5 request that names the target. For `TrojanCodec` and
`VmessCodec`, set the `udp` attribute to relay UDP packets.

## What it does not do

This package is a library only. It has no command-line program and no
listening SOCKS5 server. It does not load configuration files and does not
manage a list of upstream servers. It opens no connections and no TLS
sessions. Wiring the codecs to sockets is up to the application that uses
them.