"""Gratuitous ARP messages and their transmission on a link."""

from __future__ import annotations

import ipaddress
import logging
import socket
import struct
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Union

log = logging.getLogger(__name__)

OP_REQUEST = 1
OP_REPLY = 2
HARDWARE_TYPE_ETHERNET = 1
PROTOCOL_TYPE_IPV4 = 0x0800
HW_LEN = 6
IPV4_LEN = 4
ETH_P_ARP = 0x0806
ETHERNET_BROADCAST = b"\xff" * HW_LEN

_HEADER = struct.Struct(">HHBBH")
_SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)
_SYSFS_NET = Path("/sys/class/net")

_IPLike = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]
_MACLike = Union[str, bytes, bytearray]


@dataclass(frozen=True)
class ARPMessage:
    """An ARP packet for Ethernet hardware and IPv4 protocol addresses."""

    opcode: int
    sender_hardware_address: bytes
    sender_protocol_address: bytes
    target_hardware_address: bytes
    target_protocol_address: bytes
    hardware_type: int = HARDWARE_TYPE_ETHERNET
    protocol_type: int = PROTOCOL_TYPE_IPV4
    hardware_address_length: int = HW_LEN
    protocol_address_length: int = IPV4_LEN

    def to_bytes(self) -> bytes:
        """Return the wire representation of the message."""
        header = _HEADER.pack(
            self.hardware_type,
            self.protocol_type,
            self.hardware_address_length,
            self.protocol_address_length,
            self.opcode,
        )
        return b"".join(
            (
                header,
                bytes(self.sender_hardware_address),
                bytes(self.sender_protocol_address),
                bytes(self.target_hardware_address),
                bytes(self.target_protocol_address),
            )
        )


def _ipv4_bytes(ip: _IPLike) -> bytes:
    try:
        addr = ipaddress.ip_address(ip) if isinstance(ip, str) else ip
    except ValueError:
        raise ValueError(f"{ip!r} is not an IPv4 address") from None
    if isinstance(addr, ipaddress.IPv6Address):
        if addr.ipv4_mapped is None:
            raise ValueError(f"{str(addr)!r} is not an IPv4 address")
        addr = addr.ipv4_mapped
    return addr.packed


def _mac_bytes(mac: _MACLike) -> bytes:
    if isinstance(mac, str):
        try:
            raw = bytes(int(part, 16) for part in mac.replace("-", ":").split(":"))
        except ValueError:
            raise ValueError(f"{mac!r} is not an Ethernet MAC address") from None
    else:
        raw = bytes(mac)
    if len(raw) != HW_LEN:
        raise ValueError(f"{mac!r} is not an Ethernet MAC address")
    return raw


def gratuitous_arp(ip: _IPLike, mac: _MACLike, request: bool) -> ARPMessage:
    """Build a gratuitous ARP request or reply announcing ``ip`` at ``mac``.

    Sender and target protocol addresses are both ``ip``. A reply carries
    ``mac`` as target hardware address; a request carries broadcast there.
    """
    protocol_address = _ipv4_bytes(ip)
    hardware_address = _mac_bytes(mac)
    if request:
        return ARPMessage(
            opcode=OP_REQUEST,
            sender_hardware_address=hardware_address,
            sender_protocol_address=protocol_address,
            target_hardware_address=ETHERNET_BROADCAST,
            target_protocol_address=protocol_address,
        )
    return ARPMessage(
        opcode=OP_REPLY,
        sender_hardware_address=hardware_address,
        sender_protocol_address=protocol_address,
        target_hardware_address=hardware_address,
        target_protocol_address=protocol_address,
    )


def send_arp(interface: str, message: ARPMessage) -> None:
    """Broadcast ``message`` on the named interface.

    Raises OSError when the platform has no packet sockets or sending fails.
    """
    if not sys.platform.startswith("linux") or not hasattr(socket, "AF_PACKET"):
        raise OSError("Unsupported on this OS")
    data = message.to_bytes()
    try:
        sock = socket.socket(socket.AF_PACKET, socket.SOCK_DGRAM, socket.htons(ETH_P_ARP))
    except OSError as exc:
        raise OSError(f"failed to get raw socket: {exc}") from exc
    with sock:
        try:
            sock.setsockopt(socket.SOL_SOCKET, _SO_BINDTODEVICE, interface.encode())
        except OSError as exc:
            raise OSError(f"failed to bind to device: {exc}") from exc
        try:
            sock.bind((interface, ETH_P_ARP))
        except OSError as exc:
            raise OSError(f"failed to bind: {exc}") from exc
        destination = (
            interface,
            ETH_P_ARP,
            0,
            message.hardware_type,
            ETHERNET_BROADCAST,
        )
        try:
            sock.sendto(data, destination)
        except OSError as exc:
            raise OSError(f"failed to send: {exc}") from exc


class ARPAnnouncer:
    """Sends gratuitous ARP, alternating replies and requests.

    Different devices honour one or the other, so successive announcements
    switch between them, starting with a reply.
    """

    def __init__(self, sysfs_net: Path = _SYSFS_NET) -> None:
        self._sysfs_net = Path(sysfs_net)
        self._request = True

    def next_message(self, ip: _IPLike, mac: _MACLike) -> ARPMessage:
        """Return the next announcement for ``ip`` at ``mac``."""
        message = gratuitous_arp(ip, mac, not self._request)
        self._request = not self._request
        return message

    def _interface_mac(self, interface: str) -> str:
        path = self._sysfs_net / interface / "address"
        try:
            return path.read_text().strip()
        except OSError as exc:
            raise OSError(f"failed to get interface {interface!r}: {exc}") from exc

    def send(self, address: str, interface: str) -> None:
        """Announce ``address`` on ``interface`` with a gratuitous ARP."""
        mac = self._interface_mac(interface)
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            raise ValueError(f"failed to parse address {address}") from None
        message = self.next_message(ip, mac)
        log.debug("sending gratuitous ARP ip=%s interface=%s opcode=%d", address, interface, message.opcode)
        send_arp(interface, message)