# vipkit

Helpers for managing a virtual IP (VIP) on a Linux host: checking and
resolving addresses, picking the right subnet mask, building and sending
gratuitous ARP announcements, keeping a DNS-backed VIP up to date, and
building the packet-filter rules that restrict traffic to a VIP.

The package has no third-party dependencies. Sending ARP frames needs Linux
and the privilege to open packet sockets; everything else only computes
values and works anywhere.

## Address helpers (`vipkit.netutil`)

```python
from vipkit.netutil import is_ipv4, is_ipv6, is_ipv4_cidr, host_name, split

is_ipv4("192.168.0.10")          # True
is_ipv6("fd00::10")              # True
is_ipv4_cidr("10.0.0.0/24")      # True
host_name("api.cluster.local")   # "api"
split("10.0.0.1, fd00::1")       # ["10.0.0.1", "fd00::1"]
```

IPv4-mapped IPv6 addresses such as `::ffff:10.0.0.1` count as IPv4.

- `lookup_host(dns_name, dns_mode)` resolves a name. With mode `"ipv4"` or
  `"ipv6"` it returns the first address of that family, with `"dual"` the
  first IPv4 followed by the first IPv6 address, and with any other mode the
  first address found. A missing family raises `LookupError`.
- `generate_mac()` returns a random MAC address under the prefix `00:00:6C`.
- `default_gateway_interface()` reads the kernel route tables under `/proc`
  and returns the name of the interface carrying the default route, IPv4
  first; it raises `LookupError` when there is none.

`vipkit.protocols.IPProtocol` is an `IntEnum` of IANA protocol numbers
(`IPProtocol.TCP == 6`, `IPProtocol.UDP == 17`, `IPProtocol.SCTP == 132`).

## Subnet selection (`vipkit.subnet`)

A mask setting is either a single mask or a dual-stack pair such as
`"32,128"`; the first applies to IPv4 addresses and the second to IPv6.

```python
from vipkit.subnet import select_subnet, format_ip_with_mask

select_subnet("10.0.0.1", "32,128")   # "32"
select_subnet("fd00::1", "32,128")    # "128"
format_ip_with_mask("10.0.0.1", "32") # "10.0.0.1/32"
```

`"auto"`, more than two masks, invalid addresses and masks too long for the
family all raise `ValueError`.

## Gratuitous ARP (`vipkit.arp`)

```python
from vipkit.arp import gratuitous_arp, send_arp, ARPAnnouncer

message = gratuitous_arp("192.168.0.10", "02:00:00:00:00:01", request=False)
frame = message.to_bytes()          # 28-byte ARP packet
send_arp("eth0", message)           # broadcast on eth0

announcer = ARPAnnouncer()
announcer.send("192.168.0.10", "eth0")
```

A reply carries the MAC as target hardware address; a request carries the
broadcast address there. `ARPAnnouncer` alternates between the two, starting
with a reply, since different devices honour one or the other. `send()`
reads the interface's MAC from `/sys/class/net/<interface>/address`.
`send_arp` raises `OSError` on platforms without packet sockets.

## Virtual addresses (`vipkit.address`)

```python
from vipkit.address import new_config

vips = new_config("192.168.0.10", "eth0", "32,128",
                  is_ddns=False, dns_mode="ipv4", lo_global_scope=False)
vip = vips[0]
vip.cidr()        # "192.168.0.10/32"
vip.arp_name()    # "192.168.0.10/32-eth0"
```

An IP literal gives one `VirtualAddress` that never expires. A DNS name gives
one per resolved address, with a 60-second valid lifetime. A dynamic DNS name
that does not resolve yet gives a single entry without an address. On `lo`,
addresses get host scope unless `lo_global_scope` is set. All addresses have a
preferred lifetime of 0 so they are never used as a source address.

A `VirtualAddress` can be re-pointed with `set_ip()` (keeping its prefix
length) or `set_mask()`, and `set_service_ports(namespace, name, ports,
annotations)` records the service and its allowed ports; the annotation
`kube-vip.io/ignore-service-security: "true"` sets `ignore_security`.

## Keeping a DNS-backed address current (`vipkit.dns`)

```python
import threading
from vipkit.dns import IPUpdater

updater = IPUpdater(vip, apply=my_apply_function, interval=3.0)
updater.refresh()                  # resolve once, return the address
stop = threading.Event()
updater.run(stop)                  # repeat until stop is set
```

If resolution fails the current address is kept. `apply`, if given, is
called with the VIP after every refresh; its errors are logged, not raised.

## Firewall rules (`vipkit.firewall`)

Rules are built as data (`FirewallRule` with table, chain, position and
arguments):

```python
from vipkit.firewall import ServicePort, security_rules, masquerade_rule, service_comment

ports = [ServicePort(protocol="tcp", port=443)]
comment = service_comment("default/web")
for rule in security_rules("10.0.0.10", comment, ports):
    print(rule.table, rule.chain, rule.position, rule.args)
```

`security_rules` accepts DHCP client traffic (UDP 68) and each service port,
and drops everything else to the VIP. `masquerade_rule` builds the NAT rule
for IPVS traffic. `reconcile_port_rules(rules, vip, comment, ports)` compares
listed rules with the wanted ports and returns a `ReconcilePlan` of rule
specifications to `delete` and rules to `insert`. `rule_option(rule, flag)`
reads a flag's value from a listed rule.

## What the package does not do

- It does not add or remove addresses or routes on interfaces; putting a
  `VirtualAddress` on a link is left to the `apply` callback you supply.
- It does not run `iptables` or any other command: firewall rules are
  returned as data for the caller to apply.
- It has no source-NAT management for pod traffic, no conntrack handling,
  no DHCP client, no IPv6 neighbour advertisements and no command-line tool.