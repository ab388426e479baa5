"""Virtual address configuration: the address, its lifetimes and its service."""

from __future__ import annotations

import ipaddress
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from vipkit.firewall import IGNORE_SECURITY_ANNOTATION, ServicePort
from vipkit.netutil import host_name, is_ip, is_ipv6, lookup_host
from vipkit.subnet import format_ip_with_mask, select_subnet

log = logging.getLogger(__name__)

DEFAULT_VALID_LFT = 60
FOREVER_LFT = 2**63 - 1
SCOPE_UNIVERSE = 0
SCOPE_HOST = 254

_Interface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]


@dataclass
class VirtualAddress:
    """One virtual IP to be held on a network interface.

    ``address`` is None for a dynamic DNS name whose address has not been
    allocated yet. Addresses are always deprecated (preferred lifetime 0) so
    they are never picked as a source address.
    """

    interface: str
    address: Optional[_Interface] = None
    valid_lft: int = FOREVER_LFT
    preferred_lft: int = 0
    scope: int = SCOPE_UNIVERSE
    dns_name: str = ""
    is_ddns: bool = False
    ports: Tuple[ServicePort, ...] = ()
    service_name: str = ""
    enable_security: bool = False
    ignore_security: bool = False
    forward_method: str = ""
    ipvs_enabled: bool = False
    has_endpoints: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def ip(self) -> str:
        """Return the address without its prefix, or "" if none is set."""
        with self._lock:
            return "" if self.address is None else str(self.address.ip)

    def cidr(self) -> str:
        """Return the address with its prefix length, or "" if none is set."""
        with self._lock:
            return "" if self.address is None else self.address.with_prefixlen

    def is_link_local(self) -> bool:
        """Return True if the address is a link-local unicast address."""
        with self._lock:
            return self.address is not None and self.address.ip.is_link_local

    def is_dns(self) -> bool:
        """Return True when the address comes from a DNS name."""
        return self.dns_name != ""

    def ddns_host_name(self) -> str:
        """Return the host part of the DNS name, used for dynamic DNS."""
        return host_name(self.dns_name)

    def arp_name(self) -> str:
        """Return the key identifying this address on its interface."""
        return f"{self.cidr()}-{self.interface}"

    def set_ip(self, ip: str) -> None:
        """Replace the address, keeping the current prefix length."""
        if "/" in ip:
            raise ValueError(f"ip should not contain CIDR notation got: {ip}")
        with self._lock:
            if self.address is not None:
                ones = self.address.network.prefixlen
            else:
                ones = 128 if is_ipv6(ip) else 32
            try:
                cidr = format_ip_with_mask(ip, str(ones))
            except ValueError as exc:
                raise ValueError(f"could not format address {ip!r} with subnetMask {ones!r}") from exc
            self.address = ipaddress.ip_interface(cidr)
            self.valid_lft = DEFAULT_VALID_LFT if self.is_dns() else FOREVER_LFT
            self.preferred_lft = 0

    def set_mask(self, mask: str) -> None:
        """Set the prefix length, chosen from ``mask`` by address family."""
        current = self.ip()
        try:
            selected = select_subnet(current, mask)
        except ValueError as exc:
            raise ValueError(f"failed to select mask {mask!r}: {exc}") from exc
        try:
            bits = int(selected)
        except ValueError:
            raise ValueError(f"invalid mask {selected!r}") from None
        size, family = (128, "IPv6") if is_ipv6(current) else (32, "IPv4")
        if bits > size:
            raise ValueError(
                f"provided CIDR mask '{bits}' is greater than the highest mask value "
                f"for the {family} family ({size})"
            )
        if bits < 0:
            raise ValueError(f"failed to create mask /{bits}")
        with self._lock:
            self.address = ipaddress.ip_interface(f"{self.address.ip}/{bits}")

    def set_service_ports(
        self,
        namespace: str,
        name: str,
        ports: Iterable[ServicePort],
        annotations: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Record the service this address belongs to and its allowed ports."""
        with self._lock:
            self.ports = tuple(ports)
            self.service_name = f"{namespace}/{name}"
            self.ignore_security = (annotations or {}).get(IGNORE_SECURITY_ANNOTATION) == "true"


def new_config(
    address: str,
    interface: str,
    subnet: str,
    is_ddns: bool,
    dns_mode: str,
    lo_global_scope: bool,
) -> List[VirtualAddress]:
    """Build the virtual addresses for ``address`` on ``interface``.

    An IP literal gives one address that never expires. A DNS name gives one
    address per resolved IP, expiring after a minute unless refreshed. A
    dynamic DNS name that does not resolve yet gives one address-less entry.
    """
    if is_ip(address):
        try:
            mask = select_subnet(address, subnet)
        except ValueError as exc:
            raise ValueError(f"unable to select subnet for IP {address!r} from {subnet!r}: {exc}") from exc
        try:
            cidr = format_ip_with_mask(address, mask)
        except ValueError as exc:
            raise ValueError(f"could not format address {address!r} with subnetMask {mask!r}") from exc
        scope = SCOPE_HOST if interface == "lo" and not lo_global_scope else SCOPE_UNIVERSE
        return [
            VirtualAddress(
                interface=interface,
                address=ipaddress.ip_interface(cidr),
                valid_lft=FOREVER_LFT,
                preferred_lft=0,
                scope=scope,
            )
        ]

    try:
        ips = lookup_host(address, dns_mode)
    except (OSError, LookupError):
        if is_ddns:
            return [VirtualAddress(interface=interface, dns_name=address, is_ddns=True)]
        raise

    result = []
    for ip in ips:
        try:
            parsed = ipaddress.ip_interface(f"{ip}/{subnet}")
        except ValueError as exc:
            raise ValueError(f"could not parse address {ip}/{subnet}") from exc
        result.append(
            VirtualAddress(
                interface=interface,
                address=parsed,
                valid_lft=DEFAULT_VALID_LFT,
                preferred_lft=0,
                dns_name=address,
                is_ddns=is_ddns,
            )
        )
    return result