from __future__ import annotations

import ipaddress
from typing import Any, Optional, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class NetworkMask:
    """An IPv4/IPv6 CIDR block used as a literal in 'in' / 'not_in' comparisons."""
    __slots__ = ("text", "network")

    def __init__(self, text: str) -> None:
        self.text = text
        self.network: IPNetwork = ipaddress.ip_network(text.strip(), strict=False)

    @classmethod
    def parse(cls, text: str) -> Optional["NetworkMask"]:
        if "/" not in text:
            return None

        try:
            return cls(text)
        except ValueError:
            return None

    def contains(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False

        try:
            return ipaddress.ip_address(value.strip()) in self.network
        except ValueError:
            return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NetworkMask) and other.network == self.network

    def __hash__(self) -> int:
        return hash(self.network)

    def __repr__(self) -> str:
        return f"NetworkMask({self.text!r})"
