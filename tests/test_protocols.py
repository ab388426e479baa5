import pytest

from vipkit.protocols import IPProtocol


@pytest.mark.parametrize(
    ("member", "number"),
    [
        (IPProtocol.ICMP, 1),
        (IPProtocol.TCP, 6),
        (IPProtocol.UDP, 17),
        (IPProtocol.IPV6_ICMP, 58),
        (IPProtocol.SCTP, 132),
        (IPProtocol.RESERVED, 255),
    ],
)
def test_well_known_numbers(member, number):
    assert int(member) == number


def test_lookup_by_number_returns_member():
    assert IPProtocol(6) is IPProtocol.TCP
    assert IPProtocol(17) is IPProtocol.UDP


def test_aliases_share_members():
    assert IPProtocol(0) is IPProtocol.HOPOPT
    assert IPProtocol(0) is IPProtocol.IP
    assert IPProtocol(84) is IPProtocol.IPTM
    assert IPProtocol(84) is IPProtocol.TTP


def test_all_numbers_fit_in_a_byte():
    for protocol in IPProtocol:
        number = int(protocol)
        assert 0 <= number <= 255
        assert IPProtocol(number) is protocol


def test_unassigned_number_rejected():
    with pytest.raises(ValueError):
        IPProtocol(13)