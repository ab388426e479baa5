import re
import socket
from unittest import mock

import pytest

from vipkit import netutil


def _infos(*addresses):
    result = []
    for address in addresses:
        if ":" in address:
            result.append((socket.AF_INET6, socket.SOCK_STREAM, 6, "", (address, 0, 0, 0)))
        else:
            result.append((socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)))
    return result


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("192.168.0.1", True),
        ("fd00::1", True),
        ("kube-vip.example.com", False),
        ("", False),
        ("300.1.1.1", False),
    ],
)
def test_is_ip(address, expected):
    assert netutil.is_ip(address) is expected


@pytest.mark.parametrize(
    ("address", "v4", "v6"),
    [
        ("192.168.0.1", True, False),
        ("fd00::1", False, True),
        ("::ffff:10.0.0.1", True, False),
        ("not-an-ip", False, False),
        ("fe80::1%eth0", False, False),
    ],
)
def test_family_checks(address, v4, v6):
    assert netutil.is_ipv4(address) is v4
    assert netutil.is_ipv6(address) is v6


@pytest.mark.parametrize(
    ("cidr", "v4", "v6"),
    [
        ("192.168.0.10/24", True, False),
        ("fd00::10/64", False, True),
        ("192.168.0.10", False, False),
        ("192.168.0.10/33", False, False),
        ("fd00::10/129", False, False),
        ("192.168.0.10/255.255.255.0", False, False),
    ],
)
def test_cidr_family_checks(cidr, v4, v6):
    assert netutil.is_ipv4_cidr(cidr) is v4
    assert netutil.is_ipv6_cidr(cidr) is v6


def test_host_name_takes_first_label():
    assert netutil.host_name("kube.example.com") == "kube"
    assert netutil.host_name("single") == "single"
    assert netutil.host_name("") == ""


def test_split_trims_items():
    assert netutil.split(" 10.0.0.1 , fd00::1") == ["10.0.0.1", "fd00::1"]
    assert netutil.split("10.0.0.1") == ["10.0.0.1"]


def test_generate_mac_format():
    mac = netutil.generate_mac()
    assert mac.startswith("00:00:6C:")
    assert re.fullmatch(r"00:00:6C(:[0-9a-f]{2}){3}", mac)


def test_lookup_host_default_mode_returns_first():
    with mock.patch("socket.getaddrinfo", return_value=_infos("fd00::5", "10.0.0.5")):
        assert netutil.lookup_host("vip.example.com", "") == ["fd00::5"]


def test_lookup_host_ipv4_mode():
    with mock.patch("socket.getaddrinfo", return_value=_infos("fd00::5", "10.0.0.5")):
        assert netutil.lookup_host("vip.example.com", "ipv4") == ["10.0.0.5"]


def test_lookup_host_ipv6_mode():
    with mock.patch("socket.getaddrinfo", return_value=_infos("10.0.0.5", "fd00::5")):
        assert netutil.lookup_host("vip.example.com", "ipv6") == ["fd00::5"]


def test_lookup_host_dual_mode_orders_ipv4_first():
    with mock.patch("socket.getaddrinfo", return_value=_infos("fd00::5", "10.0.0.5", "10.0.0.6")):
        assert netutil.lookup_host("vip.example.com", "dual") == ["10.0.0.5", "fd00::5"]


def test_lookup_host_deduplicates():
    with mock.patch("socket.getaddrinfo", return_value=_infos("10.0.0.5", "10.0.0.5", "10.0.0.6")):
        assert netutil.lookup_host("vip.example.com", "dual-less") == ["10.0.0.5"]


def test_lookup_host_missing_family_raises():
    with mock.patch("socket.getaddrinfo", return_value=_infos("10.0.0.5")):
        with pytest.raises(LookupError, match="IPv6"):
            netutil.lookup_host("vip.example.com", "dual")


def test_lookup_host_empty_result_raises():
    with mock.patch("socket.getaddrinfo", return_value=[]):
        with pytest.raises(LookupError, match="empty address"):
            netutil.lookup_host("vip.example.com", "ipv4")


def test_lookup_host_resolution_error_propagates():
    with mock.patch("socket.getaddrinfo", side_effect=socket.gaierror("no such host")):
        with pytest.raises(socket.gaierror):
            netutil.lookup_host("missing.example.com", "ipv4")


_V4_HEADER = "Iface\tDestination\tGateway\tFlags\tRefCnt\tUse\tMetric\tMask\tMTU\tWindow\tIRTT\n"


def _patch_tables(tmp_path, v4_text, v6_text):
    v4 = tmp_path / "route"
    v6 = tmp_path / "ipv6_route"
    v4.write_text(v4_text)
    v6.write_text(v6_text)
    return (
        mock.patch.object(netutil, "_IPV4_ROUTE_TABLE", v4),
        mock.patch.object(netutil, "_IPV6_ROUTE_TABLE", v6),
    )


def test_default_gateway_interface_ipv4(tmp_path):
    v4_text = (
        _V4_HEADER
        + "eth1\t0000A8C0\t00000000\t0001\t0\t0\t0\t00FFFFFF\t0\t0\t0\n"
        + "eth0\t00000000\t0100A8C0\t0003\t0\t0\t0\t00000000\t0\t0\t0\n"
    )
    p4, p6 = _patch_tables(tmp_path, v4_text, "")
    with p4, p6:
        assert netutil.default_gateway_interface() == "eth0"


def test_default_gateway_interface_falls_back_to_ipv6(tmp_path):
    zeros = "0" * 32
    v6_text = (
        f"{zeros} 00 {zeros} 00 {zeros} ffffffff 00000001 00000000 00200200 lo\n"
        f"{zeros} 00 {zeros} 00 fd000000000000000000000000000001 00000400 00000001 00000000 00000003 ens5\n"
    )
    p4, p6 = _patch_tables(tmp_path, _V4_HEADER, v6_text)
    with p4, p6:
        assert netutil.default_gateway_interface() == "ens5"


def test_default_gateway_interface_missing_raises(tmp_path):
    v4_text = _V4_HEADER + "eth1\t0000A8C0\t00000000\t0001\t0\t0\t0\t00FFFFFF\t0\t0\t0\n"
    p4, p6 = _patch_tables(tmp_path, v4_text, "")
    with p4, p6:
        with pytest.raises(LookupError, match="Unable to find default route"):
            netutil.default_gateway_interface()


def test_default_gateway_interface_without_device_raises(tmp_path):
    v4_text = _V4_HEADER + "*\t00000000\t0100A8C0\t0003\t0\t0\t0\t00000000\t0\t0\t0\n"
    p4, p6 = _patch_tables(tmp_path, v4_text, "")
    with p4, p6:
        with pytest.raises(LookupError, match="could not determine interface"):
            netutil.default_gateway_interface()