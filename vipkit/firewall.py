"""Packet-filter rules that guard and masquerade virtual addresses.

Rules are built as plain data: each :class:`FirewallRule` names its table,
chain, insert position and the match/target arguments. Applying them is left
to the caller.
"""

from __future__ import annotations

import ipaddress
import shlex
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

TABLE_FILTER = "filter"
TABLE_NAT = "nat"
CHAIN_INPUT = "INPUT"
CHAIN_POSTROUTING = "POSTROUTING"

DHCP_CLIENT_PORT = "68"
COMMENT_TEMPLATE = "{} kube-vip load balancer IP"
MASQUERADE_MARK_COMMENT = "kube-vip load balancer IP set mark for masquerade"
IGNORE_SECURITY_ANNOTATION = "kube-vip.io/ignore-service-security"


def service_comment(name: str) -> str:
    """Return the rule comment used for a service or address ``name``."""
    return COMMENT_TEMPLATE.format(name)


@dataclass(frozen=True)
class ServicePort:
    """A protocol/port pair that traffic to a virtual address may use."""

    protocol: str
    port: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "protocol", str(self.protocol).upper())
        if not 0 <= int(self.port) <= 65535:
            raise ValueError(f"port {self.port} is out of range")
        object.__setattr__(self, "port", int(self.port))


@dataclass(frozen=True)
class FirewallRule:
    """One rule: where it goes and the arguments that define it."""

    table: str
    chain: str
    args: Tuple[str, ...]
    position: Optional[int] = None


@dataclass
class ReconcilePlan:
    """Rule specifications to delete from, and rules to insert into, INPUT."""

    delete: List[Tuple[str, ...]] = field(default_factory=list)
    insert: List[FirewallRule] = field(default_factory=list)


def _tokens(rule: str) -> List[str]:
    try:
        return shlex.split(rule)
    except ValueError:
        return rule.split()


def rule_option(rule: str, flag: str) -> str:
    """Return the value following ``flag`` in a listed rule, or "" if absent."""
    tokens = _tokens(rule)
    for index, token in enumerate(tokens[:-1]):
        if token == flag:
            return tokens[index + 1]
    return ""


def common_rules(vip: str, comment: str) -> List[FirewallRule]:
    """Rules every guarded address gets: accept DHCP client traffic, drop the rest."""
    accept_dhcp = FirewallRule(
        TABLE_FILTER,
        CHAIN_INPUT,
        ("-d", vip, "-p", "UDP", "--dport", DHCP_CLIENT_PORT,
         "-m", "comment", "--comment", comment, "-j", "ACCEPT"),
        position=1,
    )
    drop = FirewallRule(
        TABLE_FILTER,
        CHAIN_INPUT,
        ("-d", vip, "-m", "comment", "--comment", comment, "-j", "DROP"),
        position=2,
    )
    return [accept_dhcp, drop]


def port_rule(vip: str, comment: str, port: ServicePort) -> FirewallRule:
    """Rule accepting traffic to ``vip`` on one service port."""
    return FirewallRule(
        TABLE_FILTER,
        CHAIN_INPUT,
        ("-d", vip, "-p", port.protocol, "--dport", str(port.port),
         "-m", "comment", "--comment", comment, "-j", "ACCEPT"),
        position=1,
    )


def security_rules(vip: str, comment: str, ports: Iterable[ServicePort]) -> List[FirewallRule]:
    """All rules limiting traffic to ``vip`` to its service ports."""
    return common_rules(vip, comment) + [port_rule(vip, comment, p) for p in ports]


def masquerade_rule(vip: str, comment: str) -> FirewallRule:
    """NAT rule masquerading IPVS traffic addressed to ``vip``."""
    return FirewallRule(
        TABLE_NAT,
        CHAIN_POSTROUTING,
        ("-m", "ipvs", "--vaddr", vip, "-j", "MASQUERADE",
         "-m", "comment", "--comment", comment),
        position=1,
    )


def _same_address(listed: str, vip: str) -> bool:
    if listed == vip:
        return True
    try:
        iface = ipaddress.ip_interface(listed)
        addr = ipaddress.ip_address(vip)
    except ValueError:
        return False
    return iface.network.num_addresses == 1 and iface.ip == addr


def _rule_spec(rule: str) -> Tuple[str, ...]:
    tokens = _tokens(rule)
    if len(tokens) >= 2 and tokens[0] in ("-A", "-I"):
        tokens = tokens[2:]
    return tuple(tokens)


def reconcile_port_rules(
    rules: Iterable[str], vip: str, comment: str, ports: Sequence[ServicePort]
) -> ReconcilePlan:
    """Compare listed INPUT rules with the wanted service ports.

    Only rules carrying ``comment`` are considered. Those for another address
    are deleted; those for ``vip`` on a port not in ``ports`` are deleted,
    except the DHCP client rule and rules without a port. Ports with no rule
    yet are returned for insertion, in the order given.
    """
    plan = ReconcilePlan()
    existing = [False] * len(ports)

    for rule in rules:
        if rule_option(rule, "--comment") != comment:
            continue
        spec = _rule_spec(rule)
        if not _same_address(rule_option(rule, "-d"), vip):
            if spec not in plan.delete:
                plan.delete.append(spec)
            continue

        protocol = rule_option(rule, "-p")
        port = rule_option(rule, "--dport")
        if not port:
            continue
        if protocol.upper() == "UDP" and port == DHCP_CLIENT_PORT:
            continue

        keep = False
        for index, wanted in enumerate(ports):
            if wanted.protocol == protocol.upper() and str(wanted.port) == port:
                keep = True
                existing[index] = True
        if not keep and spec not in plan.delete:
            plan.delete.append(spec)

    plan.insert = [port_rule(vip, comment, p) for p, found in zip(ports, existing) if not found]
    return plan