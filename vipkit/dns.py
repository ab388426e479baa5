"""Keeps a DNS-backed virtual address in step with its name."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from vipkit.address import VirtualAddress
from vipkit.netutil import is_ipv6, lookup_host

log = logging.getLogger(__name__)

Resolver = Callable[[str, str], List[str]]
Applier = Callable[[VirtualAddress], object]


class IPUpdater:
    """Periodically re-resolves a virtual address's DNS name.

    On each refresh the first resolved address of the VIP's family is set on
    it; if resolution fails the current address is kept, which renews it.
    ``apply`` is then called to put the address on the interface.
    """

    def __init__(
        self,
        vip: VirtualAddress,
        resolver: Optional[Resolver] = None,
        apply: Optional[Applier] = None,
        interval: float = 3.0,
    ) -> None:
        self.vip = vip
        self.resolver = resolver or lookup_host
        self.apply = apply
        self.interval = interval

    def refresh(self) -> str:
        """Resolve once, update the VIP and apply it; return its address."""
        mode = "ipv6" if is_ipv6(self.vip.ip()) else "ipv4"
        try:
            ips = self.resolver(self.vip.dns_name, mode)
        except (OSError, LookupError, ValueError) as exc:
            log.warning("cannot lookup name=%s err=%s", self.vip.dns_name, exc)
            ips = [self.vip.ip()]

        log.info("setting IP address=%s", ips)
        try:
            self.vip.set_ip(ips[0])
        except (ValueError, IndexError) as exc:
            log.error("setting IP address=%s err=%s", ips, exc)

        if self.apply is not None:
            try:
                self.apply(self.vip)
            except Exception as exc:  # keep the refresh loop alive
                log.error("error adding virtual IP err=%s", exc)
        return self.vip.ip()

    def run(self, stop_event: threading.Event) -> None:
        """Refresh every ``interval`` seconds until ``stop_event`` is set."""
        while not stop_event.is_set():
            self.refresh()
            stop_event.wait(self.interval)
        log.info("stop ipUpdater")