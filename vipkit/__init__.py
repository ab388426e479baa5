"""Virtual IP helpers: address checks, subnets, gratuitous ARP, DNS-backed addresses and firewall rules."""

__version__ = "1.0.0"

__all__ = [
    "address",
    "arp",
    "dns",
    "firewall",
    "netutil",
    "protocols",
    "subnet",
]