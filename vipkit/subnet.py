"""Choosing and applying subnet masks for virtual addresses."""

from __future__ import annotations

import ipaddress

from vipkit.netutil import is_ip, is_ipv4


def select_subnet(raw_ip: str, subnet_masks: str) -> str:
    """Pick the mask for ``raw_ip`` from ``subnet_masks``.

    ``subnet_masks`` is either one mask ("32", "128") or an IPv4,IPv6 pair
    ("32,128"). IPv4 addresses take the first mask; IPv6 addresses take the
    second when a pair is given, otherwise the only one.
    """
    parts = subnet_masks.split(",")
    if len(parts) > 2:
        raise ValueError(f"invalid subnetMasks provided got: {subnet_masks!r}")
    if "auto" in parts:
        raise ValueError(f"auto subnet discovery only works for services: {subnet_masks!r}")
    if not is_ip(raw_ip):
        raise ValueError(f"invalid IP address: {raw_ip}")
    if is_ipv4(raw_ip):
        return parts[0]
    return parts[1] if len(parts) == 2 else parts[0]


def format_ip_with_mask(ip: str, mask: str) -> str:
    """Join ``ip`` and prefix length ``mask`` into CIDR notation."""
    if not is_ip(ip):
        raise ValueError(f"invalid IP address: {ip}")
    mask = str(mask).strip()
    if not mask.isdigit():
        raise ValueError(f"invalid subnet mask: {mask!r}")
    limit = 32 if is_ipv4(ip) else 128
    if int(mask) > limit:
        raise ValueError(f"subnet mask /{mask} exceeds /{limit} for {ip}")
    ipaddress.ip_interface(f"{ip}/{int(mask)}")
    return f"{ip}/{int(mask)}"