"""Address helpers: parsing, family checks, name resolution and route lookup."""

from __future__ import annotations

import ipaddress
import itertools
import logging
import secrets
import socket
from pathlib import Path
from typing import Iterator, List, Optional, Union

log = logging.getLogger(__name__)

_IPV4_ROUTE_TABLE = Path("/proc/net/route")
_IPV6_ROUTE_TABLE = Path("/proc/net/ipv6_route")
_RTF_REJECT = 0x0200
_MAC_PREFIX = "00:00:6C"

_Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _parse_ip(address: str) -> Optional[_Address]:
    if not isinstance(address, str) or "%" in address:
        return None
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        return None


def _parse_cidr(cidr: str) -> Optional[_Address]:
    if not isinstance(cidr, str) or "%" in cidr or "/" not in cidr:
        return None
    addr, _, prefix = cidr.rpartition("/")
    if not prefix.isdigit():
        return None
    try:
        return ipaddress.ip_interface(f"{addr}/{int(prefix)}").ip
    except ValueError:
        return None


def _is_v4(ip: _Address) -> bool:
    if isinstance(ip, ipaddress.IPv4Address):
        return True
    return ip.ipv4_mapped is not None


def is_ip(address: str) -> bool:
    """Return True if ``address`` is an IPv4 or IPv6 literal."""
    return _parse_ip(address) is not None


def is_ipv4(address: str) -> bool:
    """Return True only if ``address`` is a valid IPv4 address."""
    ip = _parse_ip(address)
    return ip is not None and _is_v4(ip)


def is_ipv6(address: str) -> bool:
    """Return True only if ``address`` is a valid IPv6 address."""
    ip = _parse_ip(address)
    return ip is not None and not _is_v4(ip)


def is_ipv4_cidr(cidr: str) -> bool:
    """Return True if ``cidr`` is an address/prefix pair with an IPv4 address."""
    ip = _parse_cidr(cidr)
    return ip is not None and _is_v4(ip)


def is_ipv6_cidr(cidr: str) -> bool:
    """Return True if ``cidr`` is an address/prefix pair with an IPv6 address."""
    ip = _parse_cidr(cidr)
    return ip is not None and not _is_v4(ip)


def _resolve(dns_name: str) -> List[str]:
    infos = socket.getaddrinfo(dns_name, None, proto=socket.IPPROTO_TCP)
    addresses = dict.fromkeys(info[4][0].split("%", 1)[0] for info in infos)
    return list(addresses)


def _first_matching(addresses: List[str], family: str) -> str:
    check = is_ipv4 if family == "IPv4" else is_ipv6
    for address in addresses:
        if check(address):
            return address
    raise LookupError(f"error getting {family} address: address not found")


def lookup_host(dns_name: str, dns_mode: str) -> List[str]:
    """Resolve ``dns_name`` and pick addresses according to ``dns_mode``.

    Modes ``ipv4`` and ``ipv6`` return the first address of that family,
    ``dual`` returns the first IPv4 followed by the first IPv6 address, and
    any other mode returns the first address resolved.
    """
    results = _resolve(dns_name)
    if not results:
        raise LookupError(f"empty address for {dns_name}")
    if dns_mode not in ("ipv4", "ipv6", "dual"):
        return [results[0]]
    families = []
    if dns_mode in ("dual", "ipv4"):
        families.append("IPv4")
    if dns_mode in ("dual", "ipv6"):
        families.append("IPv6")
    return [_first_matching(results, family) for family in families]


def host_name(dns_name: str) -> str:
    """Return the host part (first label) of a fully qualified name."""
    if not dns_name:
        return ""
    return dns_name.split(".")[0]


def generate_mac() -> str:
    """Return a random MAC address under a fixed manufacturer prefix."""
    tail = ":".join(f"{b:02x}" for b in secrets.token_bytes(3))
    mac = f"{_MAC_PREFIX}:{tail}"
    log.info("Generated mac address=%s", mac)
    return mac


def split(values: str) -> List[str]:
    """Split a comma separated list, trimming whitespace around each item."""
    return [item.strip() for item in values.split(",")]


def _read_lines(path: Path) -> List[str]:
    try:
        return path.read_text().splitlines()
    except FileNotFoundError:
        return []


def _ipv4_default_interfaces() -> Iterator[str]:
    for line in _read_lines(_IPV4_ROUTE_TABLE)[1:]:
        fields = line.split()
        if len(fields) < 8:
            continue
        iface, dest, flags, mask = fields[0], fields[1], fields[3], fields[7]
        if int(flags, 16) & _RTF_REJECT:
            continue
        if int(dest, 16) == 0 and int(mask, 16) == 0:
            yield iface


def _ipv6_default_interfaces() -> Iterator[str]:
    for line in _read_lines(_IPV6_ROUTE_TABLE):
        fields = line.split()
        if len(fields) < 10:
            continue
        dest, prefix, flags, iface = fields[0], fields[1], fields[8], fields[9]
        if int(flags, 16) & _RTF_REJECT:
            continue
        if int(dest, 16) == 0 and int(prefix, 16) == 0:
            yield iface


def default_gateway_interface() -> str:
    """Return the name of the interface that carries the default route.

    IPv4 routes are searched before IPv6 routes.
    """
    candidates = itertools.chain(_ipv4_default_interfaces(), _ipv6_default_interfaces())
    for iface in candidates:
        if iface in ("", "*"):
            raise LookupError("Found default route but could not determine interface")
        return iface
    raise LookupError("Unable to find default route")