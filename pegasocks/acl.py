"""Access-control lists deciding which hosts are proxied and which bypass."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

_MAX_LINE = 255
_WHITESPACE = " \t\n\v\f\r"

_SECTIONS = {
    "[black_list]": "bypass",
    "[bypass_list]": "bypass",
    "[accept_all]": "bypass",
    "[proxy_all]": "bypass",
    "[white_list]": "proxy",
    "[proxy_list]": "proxy",
    "[reject_all]": "proxy",
    "[bypass_all]": "proxy",
}


class AclMode(Enum):
    PROXY_ALL_BYPASS_LIST = "proxy_all_bypass_list"
    BYPASS_ALL_PROXY_LIST = "bypass_all_proxy_list"


def _atoi(text: str) -> int:
    found = re.match(r"\s*([+-]?\d+)", text)
    return int(found.group(1)) if found else 0


def _split_cidr(line: str) -> tuple[str, int | None]:
    slash = line.rfind("/")
    if slash < 0:
        return line, None
    return line[:slash], _atoi(line[slash + 1:])


@dataclass
class _RuleSet:
    mode: AclMode
    v4: list[ipaddress.IPv4Network] = field(default_factory=list)
    v6: list[ipaddress.IPv6Network] = field(default_factory=list)
    rules: list[re.Pattern] = field(default_factory=list)

    def add(self, line: str) -> None:
        host, cidr = _split_cidr(line)
        try:
            addr = ipaddress.ip_address(host)
        except ValueError:
            try:
                self.rules.append(re.compile(line))
            except re.error as exc:
                raise ValueError(f"invalid acl rule {line!r}: {exc}") from exc
            return
        prefix = addr.max_prefixlen if cidr is None or cidr < 0 else cidr
        try:
            network = ipaddress.ip_network(f"{addr}/{prefix}", strict=False)
        except ValueError:
            return
        (self.v4 if addr.version == 4 else self.v6).append(network)

    def match(self, host: str) -> bool:
        try:
            addr = ipaddress.ip_address(host)
        except ValueError:
            return any(rule.search(host) for rule in self.rules)
        networks = self.v4 if addr.version == 4 else self.v6
        return any(addr in net for net in networks)


class Acl:
    """Two rule sets: one listing hosts to bypass, one listing hosts to proxy."""

    def __init__(self):
        self.bypass = _RuleSet(AclMode.PROXY_ALL_BYPASS_LIST)
        self.proxy = _RuleSet(AclMode.BYPASS_ALL_PROXY_LIST)

    @classmethod
    def parse(cls, text: str) -> "Acl":
        """Build an ACL from the text of an acl file."""
        acl = cls()
        current: _RuleSet | None = None
        for raw in text.split("\n"):
            if len(raw) >= _MAX_LINE:
                continue
            line = raw.split("#", 1)[0].strip(_WHITESPACE)
            if not line:
                continue
            section = _SECTIONS.get(line)
            if section is not None:
                current = getattr(acl, section)
                continue
            if current is None:
                raise ValueError(f"acl rule {line!r} appears before any section")
            current.add(line)
        return acl

    @classmethod
    def load(cls, path) -> "Acl":
        """Read and parse an acl file; OSError if it cannot be read."""
        return cls.parse(Path(path).read_text(encoding="utf-8", errors="replace"))

    def match_host_bypass(self, host: str) -> bool:
        """True if ``host`` is listed to bypass the proxy."""
        return self.bypass.match(host)

    def match_host_proxy(self, host: str) -> bool:
        """True if ``host`` is listed to go through the proxy."""
        return self.proxy.match(host)