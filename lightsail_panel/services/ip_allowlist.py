"""Source address allowlist."""

import ipaddress
import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def _parse_address(value: str) -> IPAddress | None:
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


class IPAllowlist:
    """Match source addresses against literal IPs and CIDR ranges.

    An empty allowlist disables the check entirely. Ranges use real
    prefix-bit matching, so ``10.0.0.0/8`` admits ``10.200.1.1`` and
    ``192.168.1.128/25`` rejects ``192.168.1.5``.

    Entries that fail to parse are logged and ignored. If the configured
    list is non-empty but nothing in it parses, every address is rejected.
    """

    def __init__(self, entries: Iterable[str] = ()):
        self._configured = [e.strip() for e in entries if e.strip()]
        self._addresses: set[IPAddress] = set()
        self._networks: list[IPNetwork] = []

        for entry in self._configured:
            if "/" in entry:
                try:
                    self._networks.append(ipaddress.ip_network(entry, strict=False))
                except ValueError:
                    logger.warning(f"Ignoring invalid allowlist range: {entry}")
                continue

            address = _parse_address(entry)
            if address is None:
                logger.warning(f"Ignoring invalid allowlist address: {entry}")
            else:
                self._addresses.add(address)

    @property
    def enabled(self) -> bool:
        return bool(self._configured)

    def allowed(self, ip: str) -> bool:
        if not self.enabled:
            return True

        address = _parse_address(ip)
        if address is None:
            return False

        if address in self._addresses:
            return True
        return any(address in network for network in self._networks)
